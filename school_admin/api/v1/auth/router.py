from fastapi import APIRouter, Depends, HTTPException
from fastapi import status as http_status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from school_admin.auth.dependencies import get_current_user
from school_admin.auth.rbac import Permission, check_permission
from school_admin.auth.schemas import AuthResponse, CurrentUser, LoginRequest, RegisterRequest, UserProfile
from school_admin.auth.services import get_user_profile, login_user, register_user
from school_admin.core.exceptions import ServiceError
from school_admin.core.schemas import DataResponse
from school_admin.db.session import get_db

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=http_status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission(Permission.USER_REGISTER))],
)
async def register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    try:
        return await register_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/login",
    response_model=AuthResponse,
    status_code=http_status.HTTP_200_OK,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    try:
        return await login_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/login-oauth")
async def login_oauth(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    try:
        payload = LoginRequest(
            email=form_data.username.strip(),
            password=form_data.password,
        )
    except ValueError:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")
    try:
        result = await login_user(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return {
        "access_token": result.token,
        "token_type": "bearer",
    }


@router.get("/me", response_model=DataResponse[UserProfile])
async def me(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DataResponse[UserProfile]:
    try:
        return DataResponse[UserProfile](data=await get_user_profile(db, current_user.id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
