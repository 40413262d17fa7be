"""
Authentication Module
=====================

JWT-based authentication and authorization for FormaOS services.

Features:
- JWT token validation (tokens are issued by the identity provider)
- Organization and role claims
- FastAPI dependencies for route protection

Usage:
    from shared.auth import get_organization_user, require_founder

    @app.get("/score")
    async def score(user: User = Depends(get_organization_user)):
        return {"organization": user.organization_id}

    @app.get("/admin")
    async def admin(user: User = Depends(require_founder)):
        return {"founder": True}
"""

from shared.auth.dependencies import (
    User,
    get_current_active_user,
    get_current_user,
    get_organization_user,
    oauth2_scheme,
    require_founder,
    require_org_admin,
    require_roles,
)
from shared.auth.jwt import TokenData, decode_token


__all__ = [
    # JWT
    "decode_token",
    "TokenData",
    # Dependencies
    "User",
    "get_current_user",
    "get_current_active_user",
    "get_organization_user",
    "require_roles",
    "require_org_admin",
    "require_founder",
    "oauth2_scheme",
]
