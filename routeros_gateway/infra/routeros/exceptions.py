"""Protocol error taxonomy shared by the legacy and REST clients.

Whatever the router speaks, a failed device call surfaces as a
`ProtocolError` with an HTTP-style status and the most descriptive message
the device gave. The legacy API has no status codes; its failures report
`GENERIC_FAILURE_STATUS`.

    ProtocolError
    ├── RouterOSConnectionError        retryable, no upstream status
    │   ├── RouterOSTimeoutError
    │   └── RouterOSNetworkError
    ├── RouterOSClientError            4xx
    │   ├── RouterOSAuthenticationError   401
    │   ├── RouterOSAuthorizationError    403
    │   ├── RouterOSNotFoundError         404
    │   └── RouterOSValidationError       400, 422
    ├── RouterOSServerError            5xx, undecodable bodies
    └── RouterOSTrapError              legacy !trap / !fatal

`TransientEmptyResult` is internal to the legacy client.
"""

# Status reported when the upstream protocol has no status of its own
GENERIC_FAILURE_STATUS = 500

# Marker the legacy API uses for "no matching records"
EMPTY_REPLY_MARKER = "!empty"


class RouterOSError(Exception):
    """Base exception for all RouterOS client errors."""


class ProtocolError(RouterOSError):
    """Device or protocol level failure.

    Attributes:
        message: Human-readable message (richest field available upstream)
        status_code: Upstream status, or the class default
        response_body: Raw response body (if available)
        retryable: Whether the caller may retry (timeouts, connectivity loss)
    """

    default_status: int = GENERIC_FAILURE_STATUS
    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status
        self.response_body = response_body

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, status_code={self.status_code})"


class RouterOSConnectionError(ProtocolError):
    """Device unreachable or too slow; nothing was answered."""

    retryable = True


class RouterOSTimeoutError(RouterOSConnectionError):
    pass


class RouterOSNetworkError(RouterOSConnectionError):
    """DNS, TCP, TLS or a dropped connection."""


class RouterOSClientError(ProtocolError):
    """The device rejected the request (4xx)."""

    default_status = 400


class RouterOSAuthenticationError(RouterOSClientError):
    default_status = 401


class RouterOSAuthorizationError(RouterOSClientError):
    default_status = 403


class RouterOSNotFoundError(RouterOSClientError):
    default_status = 404


class RouterOSValidationError(RouterOSClientError):
    """Malformed command or invalid attribute value (400, 422)."""


class RouterOSServerError(ProtocolError):
    """The device failed to process the request (5xx)."""


class RouterOSTrapError(ProtocolError):
    """The legacy API answered with !trap or !fatal.

    Covers malformed commands, unknown items and login failures.
    """

    def __init__(self, message: str, category: int | None = None) -> None:
        super().__init__(message)
        self.category = category


class TransientEmptyResult(RouterOSError):
    """Legacy "no matching records" reply.

    Raised while classifying legacy errors and turned into an empty result
    by the safe executor; never reaches callers.
    """


_STATUS_ERRORS: dict[int, type[ProtocolError]] = {
    400: RouterOSValidationError,
    401: RouterOSAuthenticationError,
    403: RouterOSAuthorizationError,
    404: RouterOSNotFoundError,
    422: RouterOSValidationError,
}


def error_for_status(
    status_code: int, message: str, response_body: str | None = None
) -> ProtocolError:
    """Build the ProtocolError matching an HTTP error status.

    Example:
        >>> error_for_status(404, "no such item").__class__.__name__
        'RouterOSNotFoundError'
    """
    error_cls = _STATUS_ERRORS.get(status_code)
    if error_cls is None:
        error_cls = RouterOSClientError if 400 <= status_code < 500 else RouterOSServerError
    return error_cls(message, status_code, response_body)
