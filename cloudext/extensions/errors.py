"""Error taxonomy for extension reconciliation."""

__all__ = [
    "AllocationExhausted",
    "CertificateParseError",
    "ExtensionError",
    "IdentityInUse",
    "RemoteOperationError",
    "ValidationError",
]


class ExtensionError(Exception):
    """Base class for all reconciliation errors."""


class ValidationError(ExtensionError):
    """A batch binds two distinct extension types to the same role. Raised before any mutation."""

    def __init__(self, conflict: str) -> None:
        super().__init__(
            f"Cannot apply extensions of different types to the same role: {conflict}"
        )
        self.conflict = conflict


class AllocationExhausted(ExtensionError):
    """The rotation window is configured below one id. Indicates a configuration bug."""


class IdentityInUse(ExtensionError):
    """Every id in the rotation window is assigned and backed by a live instance.

    Aborts the current input only.
    """


class RemoteOperationError(ExtensionError):
    """A Deployment Service call failed. Not retried here."""

    def __init__(self, operation: str, target: str, message: str = "") -> None:
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} failed for {target}{detail}")
        self.operation = operation
        self.target = target


class CertificateParseError(ExtensionError):
    """Certificate bytes could not be parsed.

    Raised for an explicitly supplied certificate; store certificates that fail to
    parse are skipped.
    """
