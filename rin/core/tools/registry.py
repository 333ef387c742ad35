"""
rin.core.tools.registry - Tool Registry

Immutable catalog snapshot plus the capability gate deciding which
declarations a caller sees.
"""

import logging
from collections.abc import Iterable, Iterator

from rin.core.tools.base import CallerCapabilities, ToolDeclaration
from rin.errors import ToolRegistryError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry of tool declarations grouped by capability gate.

    Visible order for a caller is: admin tools (admins only), meta-cognitive
    tools, base tools, account status tools, linked-account tools (linked
    callers only), file tools. The order is deterministic for identical
    capabilities and the result is memoised per capability set.

    Design: the snapshot is built once at startup and never mutated, so it
    can be shared between concurrent runs.

    Example:
        >>> registry = ToolRegistry(meta=META_TOOLS, base=BASE_TOOLS, admin=ADMIN_TOOLS)
        >>> caps = CallerCapabilities(admin=True)
        >>> names = registry.names(caps)
        >>> names[0]
        'run_command'
        >>> "think" in registry
        True
    """

    def __init__(
        self,
        *,
        meta: Iterable[ToolDeclaration] = (),
        base: Iterable[ToolDeclaration] = (),
        account_status: Iterable[ToolDeclaration] = (),
        account: Iterable[ToolDeclaration] = (),
        files: Iterable[ToolDeclaration] = (),
        admin: Iterable[ToolDeclaration] = (),
    ) -> None:
        """
        Initialize the registry snapshot.

        Raises:
            ToolRegistryError: If two declarations share a name
        """
        self._meta = tuple(meta)
        self._base = tuple(base)
        self._account_status = tuple(account_status)
        self._account = tuple(account)
        self._files = tuple(files)
        self._admin = tuple(admin)

        self._by_name: dict[str, ToolDeclaration] = {}
        for decl in self._all_groups():
            if decl.name in self._by_name:
                raise ToolRegistryError(f"Tool with name '{decl.name}' declared more than once")
            self._by_name[decl.name] = decl

        self._visible: dict[CallerCapabilities, tuple[ToolDeclaration, ...]] = {}

        logger.info(
            f"Tool registry built with {len(self._by_name)} tools",
            extra={"admin_tools": len(self._admin), "account_tools": len(self._account)},
        )

    def _all_groups(self) -> Iterator[ToolDeclaration]:
        yield from self._admin
        yield from self._meta
        yield from self._base
        yield from self._account_status
        yield from self._account
        yield from self._files

    def declarations(self, caps: CallerCapabilities) -> list[ToolDeclaration]:
        """
        Return the declarations visible to a caller.

        Args:
            caps: Capability gate for this turn

        Returns:
            Ordered list of visible declarations
        """
        visible = self._visible.get(caps)
        if visible is None:
            groups: list[tuple[ToolDeclaration, ...]] = []
            if caps.admin:
                groups.append(self._admin)
            groups.extend([self._meta, self._base, self._account_status])
            if caps.has_linked_account:
                groups.append(self._account)
            groups.append(self._files)
            visible = tuple(decl for group in groups for decl in group)
            self._visible[caps] = visible
        return list(visible)

    def names(self, caps: CallerCapabilities) -> list[str]:
        return [decl.name for decl in self.declarations(caps)]

    def is_visible(self, name: str, caps: CallerCapabilities) -> bool:
        return any(decl.name == name for decl in self.declarations(caps))

    def schemas(self, caps: CallerCapabilities) -> list[dict]:
        """Provider-neutral declarations handed to the model client."""
        return [decl.to_schema() for decl in self.declarations(caps)]

    def get(self, name: str) -> ToolDeclaration | None:
        return self._by_name.get(name)

    def __len__(self) -> int:
        return len(self._by_name)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._by_name

    def __iter__(self) -> Iterator[ToolDeclaration]:
        return iter(self._by_name.values())
