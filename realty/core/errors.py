from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    UPSTREAM = "upstream"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INTERNAL = "internal"


class AppError(Exception):
    """
    Base of the service error taxonomy.

    Every error carries a kind tag, the HTTP status it renders as, a
    human message and a context map (e.g. the storage key a delete failed on).
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})

    def with_context(self, **extra: Any) -> "AppError":
        self.context.update(extra)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "error": self.message, "context": self.context}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, context={self.context!r})"


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class ImageProcessingError(ValidationError):
    pass


class AuthenticationError(AppError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401


class ForbiddenError(AppError):
    kind = ErrorKind.FORBIDDEN
    status_code = 403


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class ConflictError(AppError):
    kind = ErrorKind.CONFLICT
    status_code = 409


class UpstreamError(AppError):
    kind = ErrorKind.UPSTREAM
    status_code = 502
    retryable = True


class ServiceUnavailableError(AppError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    status_code = 502


class InternalError(AppError):
    kind = ErrorKind.INTERNAL
    status_code = 500


_BY_KIND: dict[ErrorKind, type[AppError]] = {
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.UNAUTHORIZED: AuthenticationError,
    ErrorKind.FORBIDDEN: ForbiddenError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.CONFLICT: ConflictError,
    ErrorKind.UPSTREAM: UpstreamError,
    ErrorKind.SERVICE_UNAVAILABLE: ServiceUnavailableError,
    ErrorKind.INTERNAL: InternalError,
}


def aggregate_error(message: str, errors: list[AppError], *, context: Mapping[str, Any] | None = None) -> AppError:
    """
    Build the single error reported when every item of a batch failed.
    Takes the shared kind of the item errors when they all agree, else internal.
    """
    kinds = {e.kind for e in errors}
    cls = _BY_KIND[kinds.pop()] if len(kinds) == 1 else InternalError
    return cls(message, context=context)
