from dataclasses import dataclass
from typing import Any, Optional, List, Dict
import math

from loguru import logger
from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_admin.api.v1.users.schemas import UserCreate, UserUpdate
from clinic_admin.core.config import settings
from clinic_admin.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    handle_integrity_error
)
from clinic_admin.core.permissions import Principal, RoleName, assignable_role_names
from clinic_admin.core.security import generate_remember_token
from clinic_admin.domain.users.models import Role, User, utcnow
from clinic_admin.domain.users.repository import RoleRepository, UserRepository

DEFAULT_ROLE_NAME = settings.DEFAULT_ROLE
FIELD_MAX_LENGTH = 255

NAME_REQUIRED = "The name field is required."
NAME_TOO_LONG = f"The name may not be greater than {FIELD_MAX_LENGTH} characters."
EMAIL_INVALID = "The email must be a valid email address."
EMAIL_TOO_LONG = f"The email may not be greater than {FIELD_MAX_LENGTH} characters."
EMAIL_TAKEN = "The email has already been taken."
PASSWORD_TOO_SHORT = f"The password must be at least {settings.PASSWORD_MIN_LENGTH} characters."
PASSWORD_TOO_LONG = f"The password may not be greater than {settings.PASSWORD_MAX_LENGTH} characters."
ROLE_INVALID = "The selected role is invalid."
ROLE_ESCALATION = "You are not allowed to assign the admin role."
ADMIN_PROTECTED = "You are not allowed to change or delete an admin user."

_email_adapter = TypeAdapter(EmailStr)


def check_fields(values: Dict[str, Any], errors: Dict[str, List[str]]) -> Dict[str, Any]:
    """Apply the per-field rules to whichever of name, email and password are present.

    Problems are appended to ``errors``; the returned copy carries the
    normalized email.
    """
    checked = dict(values)

    if "name" in values:
        if not values["name"]:
            errors.setdefault("name", []).append(NAME_REQUIRED)
        elif len(values["name"]) > FIELD_MAX_LENGTH:
            errors.setdefault("name", []).append(NAME_TOO_LONG)

    if "email" in values:
        try:
            checked["email"] = _email_adapter.validate_python(values["email"])
        except SchemaValidationError:
            errors.setdefault("email", []).append(EMAIL_INVALID)
        else:
            if len(checked["email"]) > FIELD_MAX_LENGTH:
                errors.setdefault("email", []).append(EMAIL_TOO_LONG)

    if values.get("password") is not None:
        if len(values["password"]) < settings.PASSWORD_MIN_LENGTH:
            errors.setdefault("password", []).append(PASSWORD_TOO_SHORT)
        elif len(values["password"]) > settings.PASSWORD_MAX_LENGTH:
            errors.setdefault("password", []).append(PASSWORD_TOO_LONG)

    return checked


@dataclass
class UserPage:
    """One page of the user directory"""
    items: List[User]
    total: int
    page: int
    per_page: int
    search: Optional[str] = None

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.per_page > 0 else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class UserDirectoryService:
    """Service layer for user management operations.

    Every entry point assumes the caller already passed the role gate; the
    acting principal is still passed in so role assignment can be checked
    again here.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.user_repo = UserRepository(db)
        self.role_repo = RoleRepository(db)

    async def list_users(
        self,
        search: Optional[str] = None,
        page: int = 1,
        per_page: Optional[int] = None
    ) -> UserPage:
        """List users, optionally filtered by name, email or role name"""
        per_page = per_page or settings.USERS_PAGE_SIZE
        page = max(page, 1)
        search = search.strip() if search and search.strip() else None

        total = await self.user_repo.count(search=search)
        items = await self.user_repo.get_all(
            skip=(page - 1) * per_page,
            limit=per_page,
            search=search
        )
        return UserPage(items=items, total=total, page=page, per_page=per_page, search=search)

    async def get_user(self, user_id: int) -> User:
        """Get a user with its role, or raise NotFoundError"""
        user = await self.user_repo.get_by_id(user_id)
        if not user:
            raise NotFoundError(message="User not found", details={"user_id": user_id})
        return user

    async def list_roles(self) -> List[Role]:
        return await self.role_repo.get_all()

    async def get_assignable_roles(self, actor: Principal) -> List[Role]:
        """Roles the actor may pick in the create and edit forms"""
        roles = await self.role_repo.get_all()
        allowed = assignable_role_names(actor, {role.name for role in roles})
        return [role for role in roles if role.name in allowed]

    async def create_user(
        self,
        user_data: UserCreate,
        actor: Principal,
        default_role: str = DEFAULT_ROLE_NAME
    ) -> User:
        """Create a new, pre-verified user.

        When ``user_data.role_id`` is omitted the user gets ``default_role``.
        All field problems are reported together and nothing is written.
        """
        errors: Dict[str, List[str]] = {}
        values = check_fields(user_data.model_dump(), errors)

        if "email" not in errors and await self.user_repo.email_taken(values["email"]):
            errors.setdefault("email", []).append(EMAIL_TAKEN)

        if user_data.role_id is None:
            role = await self.role_repo.get_by_name(default_role)
            if role is None:
                errors.setdefault("role_id", []).append(
                    f"The default role '{default_role}' does not exist."
                )
        else:
            role = await self.role_repo.get_by_id(user_data.role_id)
            if role is None:
                errors.setdefault("role_id", []).append(ROLE_INVALID)

        if role is not None and not self._may_assign(actor, role):
            errors.setdefault("role_id", []).append(ROLE_ESCALATION)

        if errors:
            raise ValidationError(field_errors=errors)

        try:
            user = await self.user_repo.create({
                "name": values["name"],
                "email": values["email"],
                "password": values["password"],
                "role_id": role.id,
                "email_verified_at": utcnow(),
                "remember_token": generate_remember_token()
            })
        except IntegrityError as e:
            raise await self._conflict(e, values["email"]) from e

        logger.info(f"User {user.id} created with role {role.name!r} by user {actor.user_id}")
        return user

    async def update_user(self, user_id: int, user_data: UserUpdate, actor: Principal) -> User:
        """Partially update a user; omitted fields keep their stored values"""
        user = await self.get_user(user_id)
        self._check_may_modify(actor, user)

        changes = user_data.model_dump(exclude_unset=True)
        if changes.get("password") is None:
            changes.pop("password", None)

        errors: Dict[str, List[str]] = {}
        changes = check_fields(changes, errors)

        if "email" in changes and "email" not in errors:
            if await self.user_repo.email_taken(changes["email"], exclude_user_id=user.id):
                errors.setdefault("email", []).append(EMAIL_TAKEN)

        if "role_id" in changes and changes["role_id"] != user.role_id:
            role = await self.role_repo.get_by_id(changes["role_id"])
            if role is None:
                errors.setdefault("role_id", []).append(ROLE_INVALID)
            elif not self._may_assign(actor, role):
                errors.setdefault("role_id", []).append(ROLE_ESCALATION)

        if errors:
            raise ValidationError(field_errors=errors)

        changes = {
            field: value for field, value in changes.items()
            if field == "password" or getattr(user, field) != value
        }
        if not changes:
            return user

        try:
            updated = await self.user_repo.update(user, dict(changes))
        except IntegrityError as e:
            raise await self._conflict(e, changes.get("email"), exclude_user_id=user_id) from e

        logger.info(f"User {user_id} updated by user {actor.user_id}: {sorted(changes)}")
        return updated

    async def delete_user(self, user_id: int, actor: Principal) -> None:
        """Permanently delete a user"""
        user = await self.get_user(user_id)
        self._check_may_modify(actor, user)

        deleted = await self.user_repo.delete(user_id)
        if not deleted:
            raise NotFoundError(message="User not found", details={"user_id": user_id})

        logger.info(f"User {user_id} deleted by user {actor.user_id}")

    @staticmethod
    def _check_may_modify(actor: Principal, user: User) -> None:
        # Admin accounts are changed and deleted by admins only
        if user.role_name == RoleName.ADMIN.value and not actor.is_admin:
            logger.warning(f"User {actor.user_id} with role {actor.role!r} tried to modify admin user {user.id}")
            raise AuthorizationError(
                message=ADMIN_PROTECTED,
                details={"user_id": user.id},
                error_code="FORBIDDEN"
            )

    @staticmethod
    def _may_assign(actor: Principal, role: Role) -> bool:
        return role.name != RoleName.ADMIN.value or actor.is_admin

    async def _conflict(
        self,
        error: IntegrityError,
        email: Optional[str],
        exclude_user_id: Optional[int] = None
    ) -> ValidationError:
        """Map a failed write to the field that lost the race"""
        await self.user_repo.rollback()
        if email is not None and await self.user_repo.email_taken(email, exclude_user_id=exclude_user_id):
            logger.warning(f"Concurrent write claimed email for user {exclude_user_id or 'new'}")
            return handle_integrity_error(error, "email", EMAIL_TAKEN)
        return handle_integrity_error(error, "role_id", ROLE_INVALID)
