from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from clinic_admin.api.deps import require_user_manager
from clinic_admin.api.v1.users.schemas import (
    RoleListResponse,
    RoleResponse,
    UserActionResponse,
    UserCreate,
    UserFormResponse,
    UserListResponse,
    UserResponse,
    UserUpdate
)
from clinic_admin.core.config import settings
from clinic_admin.core.exception_handlers import remember_form_input
from clinic_admin.core.permissions import Principal
from clinic_admin.domain.users.service import UserDirectoryService
from clinic_admin.infrastructure.database import get_db

router = APIRouter()
roles_router = APIRouter()

USERS_INDEX_PATH = f"{settings.API_V1_STR}/users"


@router.get("", response_model=UserListResponse, status_code=status.HTTP_200_OK)
async def list_users(
    request: Request,
    search: Optional[str] = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """List users, searching name, email and role name"""
    service = UserDirectoryService(db)
    result = await service.list_users(search=search, page=page)
    roles = await service.list_roles()

    # Page links keep the search term
    next_page_url = str(request.url.include_query_params(page=result.page + 1)) if result.has_next else None
    prev_page_url = str(request.url.include_query_params(page=result.page - 1)) if result.has_prev else None

    return UserListResponse(
        items=[UserResponse.model_validate(user) for user in result.items],
        total=result.total,
        page=result.page,
        per_page=result.per_page,
        pages=result.pages,
        search=result.search,
        next_page_url=next_page_url,
        prev_page_url=prev_page_url,
        roles=[RoleResponse.model_validate(role) for role in roles]
    )


@router.get("/create", response_model=UserFormResponse, status_code=status.HTTP_200_OK)
async def create_form(
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """Roles offered by the create form"""
    roles = await UserDirectoryService(db).get_assignable_roles(actor)
    return UserFormResponse(roles=[RoleResponse.model_validate(role) for role in roles])


@router.post("", response_model=UserActionResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    request: Request,
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """Create a new user"""
    remember_form_input(request, user_data)
    user = await UserDirectoryService(db).create_user(user_data, actor)
    return UserActionResponse(
        message="User created successfully.",
        redirect_to=USERS_INDEX_PATH,
        user=UserResponse.model_validate(user)
    )


@router.get("/{user_id}", response_model=UserResponse, status_code=status.HTTP_200_OK)
async def get_user(
    user_id: int,
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """Get user by ID"""
    user = await UserDirectoryService(db).get_user(user_id)
    return UserResponse.model_validate(user)


@router.get("/{user_id}/edit", response_model=UserFormResponse, status_code=status.HTTP_200_OK)
async def edit_form(
    user_id: int,
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """User plus the roles offered by the edit form"""
    service = UserDirectoryService(db)
    user = await service.get_user(user_id)
    roles = await service.get_assignable_roles(actor)
    return UserFormResponse(
        roles=[RoleResponse.model_validate(role) for role in roles],
        user=UserResponse.model_validate(user)
    )


@router.api_route(
    "/{user_id}",
    methods=["PATCH", "PUT"],
    response_model=UserActionResponse,
    status_code=status.HTTP_200_OK
)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    request: Request,
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """Update any subset of name, email, password and role"""
    remember_form_input(request, user_data)
    user = await UserDirectoryService(db).update_user(user_id, user_data, actor)
    return UserActionResponse(
        message="User updated successfully.",
        redirect_to=USERS_INDEX_PATH,
        user=UserResponse.model_validate(user)
    )


@router.delete("/{user_id}", response_model=UserActionResponse, status_code=status.HTTP_200_OK)
async def delete_user(
    user_id: int,
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """Permanently delete a user"""
    await UserDirectoryService(db).delete_user(user_id, actor)
    return UserActionResponse(
        message="User deleted successfully.",
        redirect_to=USERS_INDEX_PATH
    )


@roles_router.get("", response_model=RoleListResponse, status_code=status.HTTP_200_OK)
async def list_roles(
    actor: Principal = Depends(require_user_manager),
    db: AsyncSession = Depends(get_db)
):
    """All roles, in id order"""
    roles = await UserDirectoryService(db).list_roles()
    return RoleListResponse(
        items=[RoleResponse.model_validate(role) for role in roles],
        total=len(roles)
    )
