from typing import Any, Dict, Optional
from fastapi import HTTPException, status


def _error_detail(code: str, message: str, **extra: Any) -> Dict[str, Any]:
    detail = {"code": code, "message": message}
    detail.update({k: v for k, v in extra.items() if v is not None})
    return detail


class UnauthorizedException(HTTPException):
    code = "unauthenticated"

    def __init__(self, message: str = "Authentication required", headers: Optional[Dict[str, str]] = None):
        self.headers = headers or {"WWW-Authenticate": "Bearer"}
        self.status_code = status.HTTP_401_UNAUTHORIZED
        self.detail = _error_detail(self.code, message)


class ForbiddenException(HTTPException):
    code = "forbidden"

    def __init__(self, message: str = "Forbidden", headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_403_FORBIDDEN
        self.detail = _error_detail(self.code, message)


class NotFoundException(HTTPException):
    code = "not_found"

    def __init__(self, message: str = "Not found", headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_404_NOT_FOUND
        self.detail = _error_detail(self.code, message)


class ConflictException(HTTPException):
    code = "conflict"

    def __init__(self, message: str = "Conflict", reason: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_409_CONFLICT
        self.reason = reason
        self.detail = _error_detail(self.code, message, reason=reason)


class BadRequestException(HTTPException):
    code = "invalid"

    def __init__(self, message: str = "Bad request", fields: Optional[Dict[str, str]] = None, headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_400_BAD_REQUEST
        self.fields = fields or {}
        self.detail = _error_detail(self.code, message, fields=fields)


class ServiceUnavailableException(HTTPException):
    code = "unavailable"

    def __init__(self, message: str = "Service unavailable", headers: Optional[Dict[str, str]] = None):
        self.headers = headers
        self.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        self.detail = _error_detail(self.code, message)


def validation_error_fields(errors: list) -> Dict[str, str]:
    """Flatten pydantic error dicts into {field_path: message}."""
    fields = {}
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(location) or "__root__"] = error.get("msg", "Invalid value")
    return fields
