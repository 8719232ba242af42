"""
Common Schemas
==============

Envelope models for API responses (``{ok, data, error}``).
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    """Standard success response format"""

    ok: bool = Field(default=True, description="Request success status")
    data: T = Field(..., description="Response data")
    error: None = Field(default=None, description="Always null on success")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ok": True,
                "data": {"anomaly_id": 1, "anomaly_type": "SHADING"},
                "error": None,
            }
        }
    )


class ErrorDetail(BaseModel):
    """Error payload carried in ``error``."""

    message: str
    timestamp: str

    model_config = ConfigDict(extra="allow")


class ErrorResponse(BaseModel):
    """Standard error response format"""

    ok: bool = Field(default=False, description="Request success status")
    data: Any | None = Field(default=None, description="Data (null on error)")
    error: ErrorDetail = Field(..., description="Error details")
    message: str = Field(..., description="Error message")

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "ok": False,
                "data": None,
                "error": {"message": "Resource not found", "timestamp": "2024-06-01T00:00:00+00:00"},
                "message": "Resource not found",
            }
        },
    )
