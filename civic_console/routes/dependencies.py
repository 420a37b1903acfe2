"""
FastAPI dependencies for authentication and role gating.

The current user is resolved per request from the bearer token and handed
to services explicitly; nothing reads a module-level "current user".
"""

from typing import Optional

from fastapi import Depends, Header

from civic_console.core.errors import RoleUndetermined
from civic_console.models.user import ConsoleUser, UserRole
from civic_console.services.auth_resolver import AuthResolver, get_auth_resolver


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Extract the token from `Authorization: Bearer <token>`."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def get_current_user(
    token: Optional[str] = Depends(bearer_token),
    resolver: AuthResolver = Depends(get_auth_resolver),
) -> ConsoleUser:
    return resolver.resolve(token)


def get_token_claims(
    token: Optional[str] = Depends(bearer_token),
    resolver: AuthResolver = Depends(get_auth_resolver),
) -> dict:
    """Verified claims for callers that need no role (own reports)."""
    return resolver.decode(token)


def require_role(*roles: UserRole):
    """Dependency factory: the resolved user must hold one of `roles`."""

    def dependency(user: ConsoleUser = Depends(get_current_user)) -> ConsoleUser:
        if user.role not in roles:
            raise RoleUndetermined(
                "Access denied for this role",
                detail={"role": user.role.value, "required": [r.value for r in roles]},
            )
        return user

    return dependency


def probe_role(role: UserRole):
    """Dependency factory for a single role probe (/admin/me, /supervisor/me)."""

    def dependency(
        token: Optional[str] = Depends(bearer_token),
        resolver: AuthResolver = Depends(get_auth_resolver),
    ) -> ConsoleUser:
        return resolver.probe_role(token, role)

    return dependency
