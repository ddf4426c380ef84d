from fastapi import APIRouter, Depends, status
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_admin.api.deps import get_current_principal
from clinic_admin.api.v1.auth.schemas import LoginRequest, TokenResponse
from clinic_admin.api.v1.users.schemas import UserResponse
from clinic_admin.core.config import settings
from clinic_admin.core.exceptions import AuthenticationError
from clinic_admin.core.permissions import Principal
from clinic_admin.core.security import create_access_token
from clinic_admin.domain.users.repository import UserRepository
from clinic_admin.domain.users.service import UserDirectoryService
from clinic_admin.infrastructure.database import get_db

router = APIRouter()


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
async def login(
    login_data: LoginRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange email and password for a bearer token"""
    user = await UserRepository(db).get_by_email(login_data.email)

    if not user or not user.verify_password(login_data.password):
        logger.warning("Failed login attempt")
        raise AuthenticationError(
            message="Invalid email or password",
            error_code="INVALID_CREDENTIALS"
        )

    access_token = create_access_token(str(user.id), {"role": user.role_name})

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    )


@router.get("/me", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db)
):
    """Get current user profile"""
    user = await UserDirectoryService(db).get_user(principal.user_id)
    return UserResponse.model_validate(user)
