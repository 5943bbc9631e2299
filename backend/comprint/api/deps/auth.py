import uuid

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from comprint.core.errors import AuthenticationError
from comprint.core.security import bearer_scheme, decode_access_token
from comprint.db.session import get_db
from comprint.models.user import User


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for protected endpoints.
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Unauthorized")

    user_id = decode_access_token(credentials.credentials)  # returns sub string

    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    user = await db.get(User, user_uuid)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User inactive")

    return user
