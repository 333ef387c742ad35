"""
Shared fixtures for rin tests.
"""

from pathlib import Path

import pytest

from rin.capabilities import build_handlers
from rin.core.tools import CallerCapabilities, ToolContext, ToolExecutor, build_default_registry
from rin.storage import InMemoryStore
from tests.fakes import RecordingTransport


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def executor(registry):
    return ToolExecutor(registry, build_handlers())


@pytest.fixture
def sandbox_root(tmp_path) -> Path:
    root = tmp_path / "uploads" / "42"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def make_context(store, transport, sandbox_root, registry):
    """Factory for a ToolContext with sensible defaults."""

    def _make(
        admin: bool = False,
        linked: bool = False,
        account=None,
        cancel_token=None,
        oauth_base_url: str = "",
        **overrides,
    ) -> ToolContext:
        caps = CallerCapabilities(admin=admin, has_linked_account=linked)
        fields = {
            "caller_id": 42,
            "capabilities": caps,
            "sandbox_root": sandbox_root,
            "store": store,
            "account": account,
            "transport": transport,
            "oauth_base_url": oauth_base_url,
            "visible_tools": frozenset(registry.names(caps)),
            "cancel_token": cancel_token,
        }
        fields.update(overrides)
        return ToolContext(**fields)

    return _make
