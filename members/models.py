"""
Pydantic models for local users and provider profiles.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SocialProvider(str, Enum):
    """Supported OAuth2 identity providers."""
    KAKAO = "kakao"
    NAVER = "naver"
    GOOGLE = "google"


class Role(str, Enum):
    """Member role."""
    USER = "USER"
    ADMIN = "ADMIN"


class SocialProfile(BaseModel):
    """Identity attributes mapped from an OAuth2 provider's userinfo."""
    provider: SocialProvider = Field(..., description="Identity provider")
    social_id: str = Field(..., min_length=1, description="Provider-scoped user id")
    email: Optional[str] = Field(None, description="Email reported by the provider")
    nickname: Optional[str] = Field(None, description="Display name reported by the provider")


class User(BaseModel):
    """Local member record."""
    id: int = Field(..., description="Internal user id")
    email: Optional[str] = None
    social_id: str
    social_provider: SocialProvider
    nickname: Optional[str] = None
    role: Role = Role.USER
    created_at: Optional[datetime] = None
