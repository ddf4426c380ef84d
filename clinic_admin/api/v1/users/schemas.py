from pydantic import BaseModel, ConfigDict, field_validator
from typing import Any, Optional, List
from datetime import datetime


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class RoleResponse(BaseModel):
    """Schema for role response data"""
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class RoleListResponse(BaseModel):
    """Schema for role list response"""
    items: List[RoleResponse]
    total: int


class UserCreate(BaseModel):
    """Schema for creating a new user.

    Only the types are checked here. Length, email syntax, uniqueness and
    role rules are checked together by the directory service so every
    failing field is reported at once. ``role_id`` may be omitted; the
    service then assigns the configured default role.
    """
    name: str
    email: str
    password: str
    role_id: Optional[int] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)


class UserUpdate(BaseModel):
    """Schema for a partial update; omitted fields keep their stored values"""
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role_id: Optional[int] = None

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_text(cls, v):
        return _strip(v)

    @field_validator("name", "email", "role_id")
    @classmethod
    def reject_null(cls, v, info):
        # A null password means "keep the current one"; the rest must be real values
        if v is None:
            raise ValueError(f"The {info.field_name} field may not be null")
        return v


class UserResponse(BaseModel):
    """Schema for user response data; never carries the password"""
    id: int
    name: str
    email: str
    role_id: int
    role: RoleResponse
    email_verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """Schema for paginated user list response"""
    items: List[UserResponse]
    total: int
    page: int
    per_page: int
    pages: int
    search: Optional[str] = None
    next_page_url: Optional[str] = None
    prev_page_url: Optional[str] = None
    roles: List[RoleResponse] = []


class UserFormResponse(BaseModel):
    """Data needed to render the create and edit forms"""
    roles: List[RoleResponse]
    user: Optional[UserResponse] = None


class UserActionResponse(BaseModel):
    """Acknowledgement of a create, update or delete"""
    success: bool = True
    message: str
    redirect_to: str
    user: Optional[UserResponse] = None
