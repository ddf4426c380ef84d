from typing import Optional, List, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_, text
from sqlalchemy.orm import contains_eager, selectinload
from clinic_admin.core.permissions import SEEDED_ROLE_IDS
from clinic_admin.domain.users.models import User, Role

ROLE_ID_SEQUENCE_RESET = (
    "SELECT setval(pg_get_serial_sequence('roles', 'id'), (SELECT MAX(id) FROM roles))"
)


class UserRepository:
    """Repository for user data access operations"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_data: Dict[str, Any]) -> User:
        """Create a new user"""
        password = user_data.pop("password", None)
        user = User(**user_data)
        if password is not None:
            user.set_password(password)

        self.db.add(user)
        await self.db.commit()

        return await self.get_by_id(user.id)

    async def get_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID with its role attached"""
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.role))
            .where(User.id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get user by email"""
        result = await self.db.execute(
            select(User)
            .options(selectinload(User.role))
            .where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def email_taken(self, email: str, exclude_user_id: Optional[int] = None) -> bool:
        """Whether another user already uses ``email``"""
        query = select(User.id).where(User.email == email)
        if exclude_user_id is not None:
            query = query.where(User.id != exclude_user_id)

        result = await self.db.execute(query.limit(1))
        return result.first() is not None

    @staticmethod
    def _search_clause(search: Optional[str]):
        term = (search or "").strip().lower()
        if not term:
            return None
        # Name, email or role name; LIKE wildcards in the term match literally
        return or_(
            func.lower(User.name).contains(term, autoescape=True),
            func.lower(User.email).contains(term, autoescape=True),
            func.lower(Role.name).contains(term, autoescape=True)
        )

    async def get_all(
        self,
        skip: int = 0,
        limit: int = 10,
        search: Optional[str] = None
    ) -> List[User]:
        """Get users with optional search and pagination, in id order"""
        query = select(User).join(User.role).options(contains_eager(User.role))

        clause = self._search_clause(search)
        if clause is not None:
            query = query.where(clause)

        query = query.order_by(User.id).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.unique().scalars().all())

    async def count(self, search: Optional[str] = None) -> int:
        """Count users matching the optional search term"""
        query = select(func.count(User.id)).select_from(User).join(User.role)

        clause = self._search_clause(search)
        if clause is not None:
            query = query.where(clause)

        result = await self.db.execute(query)
        return result.scalar_one()

    async def update(self, user: User, update_data: Dict[str, Any]) -> User:
        """Apply changed fields to ``user``; a plaintext password is hashed here"""
        password = update_data.pop("password", None)
        for field, value in update_data.items():
            setattr(user, field, value)
        if password is not None:
            user.set_password(password)

        await self.db.commit()
        return await self.get_by_id(user.id)

    async def delete(self, user_id: int) -> bool:
        """Hard-delete a user"""
        result = await self.db.execute(
            delete(User).where(User.id == user_id)
        )
        await self.db.commit()
        return result.rowcount > 0

    async def rollback(self) -> None:
        await self.db.rollback()


class RoleRepository:
    """Read-only access to the role lookup table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_all(self) -> List[Role]:
        result = await self.db.execute(select(Role).order_by(Role.id))
        return list(result.scalars().all())

    async def get_by_id(self, role_id: int) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.id == role_id))
        return result.scalar_one_or_none()

    async def get_by_name(self, name: str) -> Optional[Role]:
        result = await self.db.execute(select(Role).where(Role.name == name))
        return result.scalar_one_or_none()

    async def seed_defaults(self) -> List[Role]:
        """Insert any missing seeded roles, keeping their fixed ids"""
        existing = {role.name for role in await self.get_all()}
        created = []
        for role_name, role_id in SEEDED_ROLE_IDS.items():
            if role_name.value in existing:
                continue
            role = Role(id=role_id, name=role_name.value)
            self.db.add(role)
            created.append(role)

        if created:
            await self.db.flush()
            if self._dialect_name() == "postgresql":
                await self._reset_id_sequence()
            await self.db.commit()

        return created

    def _dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    async def _reset_id_sequence(self) -> None:
        # Explicit ids leave the serial sequence behind
        await self.db.execute(text(ROLE_ID_SEQUENCE_RESET))
