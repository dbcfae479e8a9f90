import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import User
from school_admin.auth.schemas import CurrentUser
from school_admin.auth.security import decode_access_token
from school_admin.db.session import get_db

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login-oauth")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """Resolve the authenticated user from the bearer token. Role is read from the database, not the token."""
    try:
        payload = decode_access_token(token)
    except ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except JWTError:
        raise _unauthorized("Token is not valid")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise _unauthorized("Token is not valid")
    try:
        user_id = int(user_id_str)
    except (TypeError, ValueError):
        raise _unauthorized("Token is not valid")

    user = await db.get(User, user_id)
    if not user:
        raise _unauthorized("Token is not valid")
    if not user.is_active:
        logger.warning("Rejected token for deactivated user id=%s", user.id)
        raise _unauthorized("Account is deactivated. Please contact administrator.")

    return CurrentUser(id=user.id, email=user.email, role=user.role)
