# comicshelf/deps/admin.py
from typing import Optional

from fastapi import Depends

from comicshelf.utils.token_utils import admin_oauth2_scheme, decode_admin_token


async def require_admin(token: Optional[str] = Depends(admin_oauth2_scheme)) -> dict:
    """
    Requires an admin bearer token (signed with ADMIN_JWT_SECRET, role=admin).
    Returns the decoded claims. 401 for a missing/invalid token, 403 when the
    token is valid but not an admin one.
    """
    return decode_admin_token(token)


def forwarded_token(token: Optional[str] = Depends(admin_oauth2_scheme)) -> Optional[str]:
    """The caller's admin token, passed on to the image service for cleanup."""
    return token
