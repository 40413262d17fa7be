"""
FastAPI Authentication Dependencies
===================================

Route guards for the three caller kinds FormaOS serves:

- organization members (``get_organization_user``)
- organization owners/admins (``require_org_admin``)
- platform founders (``require_founder``), who need no organization

Version: 0.1.0
"""

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel, Field

from shared.auth.jwt import TokenData, decode_token
from shared.logging import get_logger


logger = get_logger(__name__)

# auto_error off: get_current_user rejects a missing token itself
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class User(BaseModel):
    """The authenticated caller."""

    id: str = Field(..., description="User ID")
    email: str | None = Field(default=None, description="User email")
    roles: list[str] = Field(default_factory=list, description="Member and platform roles")
    organization_id: str | None = Field(default=None, description="Active organization ID")
    is_active: bool = Field(default=True, description="Whether user is active")

    @classmethod
    def from_token(cls, token_data: TokenData) -> "User":
        return cls(
            id=token_data.sub,
            email=token_data.email,
            roles=token_data.roles,
            organization_id=token_data.organization_id,
        )

    def has_roles(self, roles: set[str], require_all: bool = False) -> bool:
        held = set(self.roles)
        return roles <= held if require_all else bool(roles & held)


async def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
) -> User:
    """
    Resolve the bearer token to a User.

    Raises:
        HTTPException: 401 if the token is missing or invalid
    """
    token_data = decode_token(token) if token else None
    if token_data is None:
        logger.warning("auth_rejected", reason="missing_token" if token is None else "invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return User.from_token(token_data)


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_active:
        logger.warning("inactive_user_access_attempt", user_id=current_user.id)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return current_user


async def get_organization_user(
    current_user: Annotated[User, Depends(get_current_active_user)],
) -> User:
    """
    Require an active organization on the token.

    Raises:
        HTTPException: 403 if the token carries no organization
    """
    if not current_user.organization_id:
        logger.warning("organization_missing", user_id=current_user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Organization membership required",
        )
    return current_user


def require_roles(
    required_roles: list[str],
    require_all: bool = False,
) -> Callable[[User], Awaitable[User]]:
    """
    Build a dependency that requires any (or, with ``require_all``, every) role.

    Usage:
        @router.post("/scheduled/{check}")
        async def run_check(user: User = Depends(require_roles(["owner", "admin"]))):
            ...
    """
    required = set(required_roles)

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_active_user)],
    ) -> User:
        if not current_user.has_roles(required, require_all=require_all):
            logger.warning(
                "insufficient_roles",
                user_id=current_user.id,
                user_roles=current_user.roles,
                required_roles=required_roles,
                require_all=require_all,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return role_checker


require_org_admin = require_roles(["owner", "admin"])
require_founder = require_roles(["founder"])
