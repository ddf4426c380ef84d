from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from clinic_admin.infrastructure.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(Base):
    """Fixed lookup table of user roles, seeded at deployment time"""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), unique=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Role id={self.id} name={self.name!r}>"


class User(Base):
    """Application user; always carries exactly one role"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)

    role_id = Column(Integer, ForeignKey("roles.id"), nullable=False, index=True)
    role = relationship("Role", lazy="selectin")

    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    remember_token = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def set_password(self, password: str) -> None:
        """Store only the hash of ``password``"""
        from clinic_admin.core.security import get_password_hash
        self.password_hash = get_password_hash(password)

    def verify_password(self, password: str) -> bool:
        from clinic_admin.core.security import verify_password
        return verify_password(password, self.password_hash)

    @property
    def role_name(self) -> str:
        return self.role.name if self.role is not None else ""

    def __repr__(self) -> str:
        # Never include the password hash
        return f"<User id={self.id} email={self.email!r} role_id={self.role_id}>"
