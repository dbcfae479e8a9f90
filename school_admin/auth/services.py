import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.models import User
from school_admin.auth.schemas import (
    AuthResponse,
    LoginRequest,
    RegisterRequest,
    UserInfo,
    UserProfile,
)
from school_admin.auth.security import (
    build_token_claims,
    create_access_token,
    hash_password,
    verify_password,
)
from school_admin.core.exceptions import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
DEACTIVATED_MESSAGE = "Account is deactivated. Please contact administrator."


async def _get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(func.lower(User.email) == email.strip().lower()))
    return result.scalar_one_or_none()


def _auth_response(user: User) -> AuthResponse:
    token = create_access_token(subject=build_token_claims(user.id, user.role))
    return AuthResponse(
        token=token,
        user=UserInfo(
            id=user.id,
            username=user.username,
            email=user.email,
            role=user.role,
            full_name=user.full_name,
        ),
    )


async def register_user(db: AsyncSession, payload: RegisterRequest) -> AuthResponse:
    if await _get_user_by_email(db, payload.email):
        raise ConflictError("User already exists")

    user = User(
        username=payload.username.strip(),
        email=payload.email.strip().lower(),
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        full_name=(payload.full_name or "").strip() or None,
        phone=(payload.phone or "").strip() or None,
        is_active=True,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("User already exists") from e
    await db.refresh(user)
    logger.info("Registered user id=%s role=%s", user.id, user.role)
    return _auth_response(user)


async def login_user(db: AsyncSession, payload: LoginRequest) -> AuthResponse:
    # 1. Find user by email (case-insensitive)
    user = await _get_user_by_email(db, payload.email)
    if not user:
        logger.info("Login failed: unknown email")
        raise ValidationError(INVALID_CREDENTIALS_MESSAGE)

    # 2. Verify password hash; same message as unknown email
    if not verify_password(payload.password, user.password_hash):
        logger.info("Login failed: bad password for user id=%s", user.id)
        raise ValidationError(INVALID_CREDENTIALS_MESSAGE)

    # 3. Check user status
    if not user.is_active:
        raise UnauthorizedError(DEACTIVATED_MESSAGE)

    return _auth_response(user)


async def get_user_profile(db: AsyncSession, user_id: int) -> UserProfile:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return UserProfile.model_validate(user)
