"""
API models and schemas for the FastAPI application.

Shelf payloads and pages are the domain models themselves; this module
holds the envelopes that only exist at the HTTP boundary.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from bookshelf.models import ShelfState


class LoginRequest(BaseModel):
    """Provider access token obtained by the client."""
    access_token: str = Field(..., min_length=1, description="OAuth2 access token issued by the provider")


class TokenResponse(BaseModel):
    """Access token issued after a successful social login."""
    access_token: str = Field(..., description="Bearer token for this API")
    token_type: str = Field("bearer", description="Token type")
    user_id: int = Field(..., description="Internal user id")
    email: Optional[str] = Field(None, description="User email")
    role: str = Field(..., description="User role")


class MessageResponse(BaseModel):
    """Acknowledgement for operations without a body."""
    message: str = Field(..., description="Outcome message")
    id: Optional[int] = Field(None, description="Id of the created or resulting entry")


class ShelfStateResponse(BaseModel):
    """Where a book currently sits for the caller."""
    book_id: int = Field(..., description="Local book id")
    state: ShelfState = Field(..., description="Shelf state")
    can_shift: bool = Field(..., description="Whether the book can be shifted to the read shelf")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    code: Optional[str] = Field(None, description="Stable message key")
    detail: Optional[Any] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
    collections: Optional[Dict[str, int]] = Field(None, description="Document counts per collection")
