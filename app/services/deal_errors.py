from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException

from app.core.errors import ErrorCode


_STATUS_BY_CODE = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_TRANSITION: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONFLICT: 409,
    ErrorCode.DB_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


@dataclass(eq=False)
class DealWorkflowError(ValueError):
    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    @property
    def status_code(self) -> int:
        return _STATUS_BY_CODE.get(self.code, 500)

    def to_http(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={"code": self.code, "message": self.message, "details": self.details},
        )


def deal_not_found(deal_id: Any) -> DealWorkflowError:
    return DealWorkflowError(
        code=ErrorCode.NOT_FOUND,
        message="Deal not found",
        details={"deal_id": str(deal_id)},
    )
