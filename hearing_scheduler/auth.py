"""
Request authentication.

Tokens are issued by the firm's auth service; this module only verifies them
and extracts the owner (attorney) id the scheduling engine partitions by.

Authorization Flow:
1. `Authorization: Bearer <jwt>` (preferred) - owner is the `sub` claim
2. `X-User-Id` header (internal callers / backwards compatibility); only honoured
   when ALLOW_USER_ID_HEADER is on, which by default means APP_ENV=development
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from .config import get_settings

logger = logging.getLogger(__name__)

JWT_ACCESS_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token (used by tests and internal tooling)"""
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and validate a JWT token"""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as e:
        logger.warning(f"Invalid JWT token: {e}")
        return None


# =============================================================================
# AUTH CONTEXT
# =============================================================================

@dataclass
class AuthContext:
    """Authorization context for a request"""
    owner_id: str
    email: Optional[str] = None
    via_token: bool = False


async def get_auth_context(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    authorization: Optional[str] = Header(None, alias="Authorization"),
) -> AuthContext:
    """
    Get auth context from either:
    - `Authorization: Bearer <jwt>` (preferred when present)
    - `X-User-Id` (legacy, development only unless ALLOW_USER_ID_HEADER is set)
    """
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        payload = decode_token(token)
        if not payload or not payload.get("sub"):
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return AuthContext(
            owner_id=str(payload["sub"]),
            email=payload.get("email"),
            via_token=True,
        )

    if x_user_id and x_user_id.strip():
        if not get_settings().user_id_header_enabled():
            logger.warning("Rejected X-User-Id authentication (header fallback disabled)")
            raise HTTPException(status_code=401, detail="Authentication required")
        return AuthContext(owner_id=x_user_id.strip())

    raise HTTPException(status_code=401, detail="Authentication required")
