"""
Bearer-token authentication for the FastAPI API.

Tokens are HS256 JWTs issued after a successful social login. They carry the
internal user id in ``sub``; every protected route resolves that id once and
passes it explicitly into the services.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from api.config import config
from members.models import User

logger = structlog.get_logger(__name__)

# Security scheme
security = HTTPBearer()


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    """
    Issue an access token for a provisioned user.

    Args:
        user: Local user
        expires_minutes: Lifetime override

    Returns:
        Encoded JWT
    """
    lifetime = expires_minutes if expires_minutes is not None else config.access_token_expire_minutes
    expire = datetime.now(timezone.utc) + timedelta(minutes=lifetime)
    claims = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": expire,
    }
    return jwt.encode(claims, config.secret_key, algorithm=config.algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        ValueError: if the token is invalid, expired or lacks a subject
    """
    try:
        claims = jwt.decode(token, config.secret_key, algorithms=[config.algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if not claims.get("sub"):
        raise ValueError("Token has no subject")
    return claims


async def get_current_user_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> int:
    """
    Resolve the caller's internal user id from the bearer token.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    try:
        claims = decode_access_token(credentials.credentials)
        return int(claims["sub"])
    except ValueError:
        logger.warning("Invalid access token presented", token_prefix=credentials.credentials[:10] + "...")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired access token",
            headers={"WWW-Authenticate": "Bearer"},
        )
