"""
JWT Token Management
====================

Bearer tokens carry the caller's member roles and active organization.
Organization-scoped endpoints take the organization from here, never from
the request body.

Version: 0.1.0
"""

from datetime import datetime

from jose import JWTError, jwt
from pydantic import BaseModel, Field, ValidationError

from shared.config import settings
from shared.logging import get_logger


logger = get_logger(__name__)


class TokenData(BaseModel):
    """Validated JWT claims."""

    sub: str = Field(..., description="Subject (user ID)")
    exp: datetime = Field(..., description="Expiration time")
    iat: datetime | None = Field(default=None, description="Issued at")
    roles: list[str] = Field(default_factory=list, description="Member and platform roles")
    email: str | None = None
    organization_id: str | None = None


def decode_token(token: str) -> TokenData | None:
    """
    Verify a token's signature and expiry and validate its claims.

    Returns:
        TokenData, or None for any invalid, expired or malformed token
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt.secret_key.get_secret_value(),
            algorithms=[settings.jwt.algorithm],
            options={"require_exp": True, "require_sub": True},
        )
        return TokenData.model_validate(payload)
    except (JWTError, ValidationError) as e:
        logger.warning("token_decode_failed", error=str(e))
        return None
