from __future__ import annotations
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from treasure_hunt.db import get_session
from treasure_hunt.errors import PermissionDenied, Unauthenticated
from treasure_hunt.security import decode_token
from treasure_hunt.models.user import User

# auto_error off so a missing header renders as our own unauthenticated error
bearer = HTTPBearer(auto_error=False)

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    session: AsyncSession = Depends(get_session)
) -> User:
    if credentials is None:
        raise Unauthenticated("Authentication required.")
    data = decode_token(credentials.credentials, "access")
    user = await session.get(User, data["sub"])
    if not user:
        raise Unauthenticated("User not found.")
    return user

def require_role(*roles: str):
    """Dependency factory: the caller's stored role claim must be one of `roles`."""
    async def dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise PermissionDenied("Insufficient permissions.")
        return user
    return dep

require_admin = require_role("admin")
