from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from .errors import AuthRequired
from .settings import get_settings

_security = HTTPBasic(auto_error=False)


# PUBLIC_INTERFACE
def require_owner(owner_id: Optional[str]) -> str:
    """
    Return the owner id, or raise AuthRequired when there is none.
    Callers must not touch the store without an owner.
    """
    if owner_id is None or not str(owner_id).strip():
        raise AuthRequired()
    return str(owner_id).strip()


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class AuthState:
    """
    What the authentication collaborator reports: the current user (or none)
    and whether it is still resolving.
    """

    user_id: Optional[str] = None
    loading: bool = False

    def resolve(self) -> Optional[str]:
        """
        Return the owner id once known.
        - While loading: None (nothing should be fetched yet)
        - Loaded without a user: raises AuthRequired (redirect to sign-in)
        """
        if self.loading:
            return None
        return require_owner(self.user_id)


# PUBLIC_INTERFACE
def get_owner_dependency():
    """
    Return a FastAPI dependency callable that yields the current owner id.

    Behavior:
    - If settings.enable_basic_auth is False (default): the owner id is the
      opaque identity forwarded by the sign-in provider in the X-User-Id header.
    - If True: HTTP Basic credentials are checked against
      BASIC_AUTH_USERNAME/BASIC_AUTH_PASSWORD and the username is the owner id.
    Either way a missing or invalid identity raises AuthRequired, which the
    app turns into a 401 with a sign-in redirect hint.

    Usage:
        owner_dep = get_owner_dependency()
        @router.get("/")
        def handler(owner_id: str = Depends(owner_dep)): ...
    """
    settings = get_settings()

    if not settings.enable_basic_auth:
        async def _from_header(x_user_id: Optional[str] = Header(default=None)) -> str:
            """Owner id from the X-User-Id header."""
            return require_owner(x_user_id)

        return _from_header

    expected_user: Optional[str] = settings.basic_auth_username
    expected_pass: Optional[str] = settings.basic_auth_password

    async def _from_basic(creds: Optional[HTTPBasicCredentials] = Depends(_security)) -> str:
        """
        Owner id from verified HTTP Basic credentials.

        Raises:
            AuthRequired if credentials are missing, invalid, or not configured.
        """
        if creds is None or not creds.username or creds.password is None:
            raise AuthRequired()

        if expected_user is None or expected_pass is None:
            raise AuthRequired("Server authentication not configured")

        user_ok = secrets.compare_digest(creds.username, expected_user)
        pass_ok = secrets.compare_digest(creds.password, expected_pass)
        if not (user_ok and pass_ok):
            raise AuthRequired("Invalid authentication credentials")
        return require_owner(creds.username)

    return _from_basic
