from typing import Optional


class TransporterError(Exception):
    """Base exception for every failure raised while migrating a dashboard."""


class TransportError(TransporterError):
    """Raised when the Grafana instance could not be reached at all."""


class UpstreamError(TransporterError):
    """
    Raised when Grafana answers with a non-success HTTP status.

    The raw response body is kept so it can be surfaced in item results.
    A request that timed out is reported with ``status_code=None``.
    """

    def __init__(self, status_code: Optional[int], body: str = "", context: str = "grafana api") -> None:
        self.status_code = status_code
        self.body = body or ""
        self.context = context
        if status_code is None:
            message = f"{context}: {self.body}"
        else:
            message = f"{context} {status_code}: {self.body}"
        super().__init__(message)


class DecodeError(TransporterError):
    """Raised when a response body is not JSON or has an unexpected shape."""


class EmptyResultError(TransporterError):
    """Raised when a well-formed response carries no usable payload."""


class ResolveError(TransporterError):
    """Raised when a dashboard's numeric id could not be determined."""


class GranteeLookupError(TransporterError, LookupError):
    """Raised when a login or email does not map to a Grafana user."""

    def __init__(self, grantee: str, reason: str) -> None:
        self.grantee = grantee
        self.reason = reason
        super().__init__(f"{grantee}: {reason}")
