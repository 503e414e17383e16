"""Authentication dependencies for API user scoping."""

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from services.errors import Forbidden, Unauthorized
from services.session_token import decode_access_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: Optional[str] = None
    email: Optional[str] = None


def ensure_user_scope(auth_user_id: Optional[str], supplied_user_id: Optional[str]) -> Optional[str]:
    """Return the effective user_id and reject cross-user attempts.

    Without a verified token (AUTH_REQUIRED off) the supplied id is trusted.
    """
    if auth_user_id is None:
        return supplied_user_id
    if supplied_user_id and supplied_user_id != auth_user_id:
        raise Forbidden("user_id does not match authenticated session.")
    return auth_user_id


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Resolve the caller from a Supabase Bearer access token, if any."""
    if not credentials or credentials.scheme.lower() != "bearer":
        if settings.AUTH_REQUIRED:
            raise Unauthorized("Missing Bearer access token.")
        return AuthContext()

    try:
        payload = decode_access_token(credentials.credentials)
    except ValueError as exc:
        raise Unauthorized(str(exc)) from exc

    return AuthContext(
        user_id=str(payload.get("sub", "")),
        email=str(payload.get("email", "")) or None,
    )


async def require_admin(x_admin_key: Optional[str] = Header(default=None)) -> None:
    """Guard admin-only routes with the shared ADMIN_API_KEY."""
    expected = (settings.ADMIN_API_KEY or "").strip()
    if not expected:
        return
    if not x_admin_key or not hmac.compare_digest(x_admin_key.strip(), expected):
        raise Forbidden("Admin key required.")
