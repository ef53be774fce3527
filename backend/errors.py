from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import status


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message}


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "internal_error"

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_error(self) -> Dict[str, Any]:
        return {"code": self.code}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"

    def __init__(self, fields: List[FieldError], message: str = "Validation failed") -> None:
        super().__init__(message)
        self.fields = list(fields)

    def to_error(self) -> Dict[str, Any]:
        return {"code": self.code, "fields": [item.to_dict() for item in self.fields]}


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthorized"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class UpstreamError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "upstream_error"
