"""
Error taxonomy shared by the backend services and the console client.

Every error carries the HTTP status code the API answers with, so routes can
raise service errors directly and the console can map responses back.
"""

from typing import Dict, Optional, Type


class ConsoleError(Exception):
    """Base class for all expected Civic Console failures."""

    status_code: int = 500
    code: str = "console_error"

    def __init__(self, message: str = "", detail: Optional[Dict] = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.detail = detail or {}

    def to_dict(self) -> Dict:
        body = {"detail": self.message, "error": self.code}
        if self.detail:
            body["context"] = self.detail
        return body


class Unauthenticated(ConsoleError):
    """No session, or the identity token was rejected."""
    status_code = 401
    code = "unauthenticated"


class RoleUndetermined(ConsoleError):
    """Token is valid but no role record grants access."""
    status_code = 403
    code = "role_undetermined"


class NotFound(ConsoleError):
    status_code = 404
    code = "not_found"


class Conflict(ConsoleError):
    """Stored state does not allow the requested transition."""
    status_code = 409
    code = "conflict"


class ValidationFailed(ConsoleError):
    """A required input is missing; raised before any backend call."""
    status_code = 422
    code = "validation_failed"


class UploadError(ConsoleError):
    status_code = 502
    code = "upload_error"


class BackendError(ConsoleError):
    status_code = 502
    code = "backend_error"


class ClassificationError(ConsoleError):
    """Classifier call failed or returned a malformed prediction."""
    status_code = 502
    code = "classification_error"


_BY_STATUS: Dict[int, Type[ConsoleError]] = {
    401: Unauthenticated,
    403: RoleUndetermined,
    404: NotFound,
    409: Conflict,
    422: ValidationFailed,
}

_BY_CODE: Dict[str, Type[ConsoleError]] = {
    cls.code: cls
    for cls in (
        Unauthenticated,
        RoleUndetermined,
        NotFound,
        Conflict,
        ValidationFailed,
        UploadError,
        BackendError,
        ClassificationError,
    )
}


def error_for_response(status_code: int, body: Optional[Dict] = None) -> ConsoleError:
    """
    Rebuild a ConsoleError from an API error response.

    The `error` code in the body wins; otherwise the status code decides,
    and anything unrecognised becomes a BackendError.
    """
    body = body if isinstance(body, dict) else {}
    detail = body.get("detail")
    if not isinstance(detail, str):
        detail = f"Request failed with status {status_code}" if detail is None else str(detail)

    error_cls = _BY_CODE.get(body.get("error") or "") or _BY_STATUS.get(status_code, BackendError)
    error = error_cls(detail, detail={"status_code": status_code})
    return error
