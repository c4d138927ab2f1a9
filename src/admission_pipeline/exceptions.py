"""AdmissionException hierarchy for controlled pipeline short-circuits."""

from __future__ import annotations

from collections.abc import Mapping


class AdmissionException(Exception):
    """Base for all admission exceptions."""


class AdmissionAbort(AdmissionException):
    """Controlled rejection with HTTP status code and detail."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int = 400,
        headers: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(detail)
        self.status_code = status_code
        self.detail = detail
        self.headers = dict(headers or {})


class OriginRejected(AdmissionAbort):
    """Origin header is not on the allow-list (403).

    The detail sent to the client is fixed; ``origin`` and ``reason`` are for
    logs only and never include the allow-list.
    """

    def __init__(
        self,
        origin: str,
        *,
        reason: str = "Origin not allowed",
        status_code: int = 403,
    ) -> None:
        super().__init__("Not allowed by CORS", status_code=status_code)
        self.origin = origin
        self.reason = reason


class MalformedPayload(AdmissionAbort):
    """Request body could not be decoded (400)."""

    def __init__(self, detail: str = "Malformed request body") -> None:
        super().__init__(detail, status_code=400)


class PayloadTooLarge(AdmissionAbort):
    """Request body or parameter count exceeds the configured limit (413)."""

    def __init__(self, detail: str = "Request body too large") -> None:
        super().__init__(detail, status_code=413)


class UnsupportedCharset(AdmissionAbort):
    """Request body charset is unknown (415)."""

    def __init__(self, charset: str) -> None:
        super().__init__(f"Unsupported charset {charset!r}", status_code=415)
        self.charset = charset


class SessionStoreUnavailable(AdmissionAbort):
    """Session store could not be reached (503). Safe to retry."""

    def __init__(
        self,
        detail: str = "Session store unavailable",
        *,
        retry_after: int | None = None,
    ) -> None:
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        super().__init__(detail, status_code=503, headers=headers)
        self.retry_after = retry_after


class AuthenticationRequired(AdmissionAbort):
    """No authenticated identity is bound to the request (401)."""

    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(detail, status_code=401)


class PreflightHandled(AdmissionException):
    """CORS preflight answered by the origin gate; not an error."""

    def __init__(
        self, *, status_code: int = 200, headers: Mapping[str, str] | None = None
    ) -> None:
        super().__init__("Preflight handled")
        self.status_code = status_code
        self.headers = dict(headers or {})


class RequestAbandoned(AdmissionException):
    """Client disconnected before admission finished."""


class AdmissionInternalError(AdmissionException):
    """Engine-level error wrapping unexpected exceptions."""

    def __init__(self, detail: str, *, cause: Exception | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.cause = cause


class StartupConnectivityFailure(Exception):
    """Data store connectivity could not be confirmed at startup. Fatal."""

    def __init__(self, detail: str, *, cause: BaseException | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.cause = cause
