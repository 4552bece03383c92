"""
Common Pydantic schemas used across the application.
"""
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Schema for health check response."""
    success: bool = Field(..., description="Whether service is healthy")
    data: Dict[str, Any] = Field(..., description="Health check data")
    message: str = Field(..., description="Health check message")


class ApiResponse(BaseModel):
    """Generic success envelope."""
    success: bool = Field(True, description="Whether the request succeeded")
    data: Dict[str, Any] = Field(default_factory=dict, description="Response payload")
    message: str = Field("OK", description="Human readable status")


class ErrorDetail(BaseModel):
    """Body of the error envelope."""
    id: str = Field(..., description="Error id for log correlation")
    code: str = Field(..., description="Application error code")
    message: str = Field(..., description="Error message")
    timestamp: str = Field(..., description="ISO-8601 time of the error")
    path: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    suggestion: Optional[str] = None


class ErrorResponse(BaseModel):
    """Schema for error responses."""
    success: bool = Field(False, description="Always false for errors")
    error: ErrorDetail
