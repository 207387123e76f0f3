"""Domain-specific exceptions for the RouterOS gateway.

Domain exceptions represent malformed input and lookup failures detected
before any device I/O. They are separate from infrastructure (RouterOS
client) errors and are converted to HTTP responses at the API layer.
"""


class DomainError(Exception):
    """Base exception for domain layer errors.

    Domain errors represent violations of business rules or constraints
    that are enforced at the service layer.
    """

    status_code: int = 400

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message
            context: Additional context about the error
        """
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ConfigurationError(DomainError):
    """Raised when a device record cannot be turned into a protocol client.

    Example:
        raise ConfigurationError(
            "Device record requires a non-empty host",
            context={"router_id": "7", "field": "host"},
        )
    """

    status_code = 400


class RouterNotFoundError(DomainError):
    """Raised when the router directory has no record for a router ID."""

    status_code = 404

    def __init__(self, router_id: str) -> None:
        super().__init__("Router not found", context={"router_id": router_id})
        self.router_id = router_id


class ScriptValidationError(DomainError):
    """Raised when a value cannot be safely embedded in a device script.

    Context should include:
        - field: Name of the offending value
        - value: The rejected value
    """

    status_code = 422


class DirectoryError(DomainError):
    """Raised when the router directory cannot be queried."""

    status_code = 502

    def __init__(self, message: str, *, status_code: int | None = None, context: dict | None = None):
        super().__init__(message, context=context)
        if status_code is not None:
            self.status_code = status_code
