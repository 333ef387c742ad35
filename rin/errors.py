"""
rin.errors - Exception hierarchy

Domain-specific exceptions shared across the runtime. Only model-client
failures and cancellation ever leave an orchestration run; everything else
is recovered inside the loop.

Example:
    >>> from rin.errors import RunCancelledError
    >>>
    >>> try:
    ...     reply = await orchestrator.run(messages, context, cancel_token=token)
    ... except RunCancelledError:
    ...     return  # user asked to cancel, stay silent
"""


class RinError(Exception):
    """Base exception for all rin errors."""


class ConfigurationError(RinError):
    """
    Raised when the runtime is wired incorrectly.

    This can occur due to:
    - Missing API keys for the selected provider
    - Unknown provider or model names
    - Invalid settings values
    """


class ToolRegistryError(ConfigurationError):
    """Raised when a tool catalog is invalid (e.g. two declarations share a name)."""


class ModelError(RinError):
    """
    Raised when a model completion fails.

    Attributes:
        status: HTTP status reported by the provider, or None for
            network-level failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_transient(self) -> bool:
        """5xx-class and status-less (network) failures are worth retrying."""
        return self.status is None or self.status >= 500


class TransientModelError(ModelError):
    """Raised after transient failures exhausted every retry attempt."""


class ToolCallingUnsupportedError(ModelError):
    """Raised when the model rejects a request because it carried tool declarations."""


class RunCancelledError(RinError):
    """
    Raised when an in-flight run was cancelled on purpose.

    Kept outside the ModelError branch so callers can suppress user-visible
    error messages for intentional cancellation.
    """


class SandboxViolation(ValueError):
    """Raised when a file path escapes the caller's sandbox root."""


__all__ = [
    "ConfigurationError",
    "ModelError",
    "RinError",
    "RunCancelledError",
    "SandboxViolation",
    "ToolCallingUnsupportedError",
    "ToolRegistryError",
    "TransientModelError",
]
