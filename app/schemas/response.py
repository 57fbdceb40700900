import uuid
from typing import Any, List, Optional
from pydantic import BaseModel, Field


def new_request_id() -> str:
    """Unique id echoed in every envelope for tracing."""
    return uuid.uuid4().hex


class SuccessResponse(BaseModel):
    """Envelope for successful order API responses."""
    success: Optional[bool] = Field(default=True)
    request_id: str = Field(default_factory=new_request_id)
    data: Optional[Any] = None


class ErrorDetail(BaseModel):
    code: str
    message: Any
    details: Optional[List[Any]] = None


class ErrorResponse(BaseModel):
    """Envelope produced by the registered exception handlers."""
    success: bool = False
    error: ErrorDetail
    request_id: str = Field(default_factory=new_request_id)

    @classmethod
    def of(cls, code: str, message: Any, details: Optional[List[Any]] = None) -> dict:
        body = cls(error=ErrorDetail(code=code, message=message, details=details)).model_dump()
        if details is None:
            body["error"].pop("details")
        return body
