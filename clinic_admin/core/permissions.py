from dataclasses import dataclass
from typing import AbstractSet, FrozenSet, Iterable, Optional
import enum
import logging

from clinic_admin.core.exceptions import AuthenticationError, AuthorizationError

logger = logging.getLogger(__name__)

UNAUTHENTICATED_MESSAGE = "You must sign in."
FORBIDDEN_MESSAGE = "You do not have permission to access this section."


class RoleName(str, enum.Enum):
    """Roles seeded into the roles table, with their fixed ids"""
    ADMIN = "admin"
    PRACTITIONER = "practitioner"
    ASSISTANT = "assistant"
    RECEPTIONIST = "receptionist"
    MANAGER = "manager"
    PATIENT = "patient"
    CLIENT = "client"


SEEDED_ROLE_IDS = {
    RoleName.ADMIN: 1,
    RoleName.PRACTITIONER: 2,
    RoleName.ASSISTANT: 3,
    RoleName.RECEPTIONIST: 4,
    RoleName.MANAGER: 5,
    RoleName.PATIENT: 6,
    RoleName.CLIENT: 7,
}


@dataclass(frozen=True)
class Principal:
    """The authenticated actor behind a request"""
    user_id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value


@dataclass(frozen=True)
class AuthContext:
    """Authentication state of a single request, passed explicitly to the gate"""
    principal: Optional[Principal] = None

    @property
    def is_authenticated(self) -> bool:
        return self.principal is not None


class RoleGate:
    """Allow-list check on the current principal's role.

    Role names are compared as exact strings. There is no hierarchy:
    ``admin`` grants nothing that is not listed.
    """

    def __init__(self, allowed_roles: Iterable[str]):
        roles = frozenset(
            role.value if isinstance(role, RoleName) else str(role)
            for role in allowed_roles
        )
        if not roles:
            raise ValueError("A role gate needs at least one allowed role")
        self.allowed_roles: FrozenSet[str] = roles

    def permits(self, context: AuthContext) -> bool:
        return context.principal is not None and context.principal.role in self.allowed_roles

    def authorize(self, context: AuthContext) -> Principal:
        """Return the principal or raise Unauthenticated / Forbidden"""
        principal = context.principal
        if principal is None:
            raise AuthenticationError(
                message=UNAUTHENTICATED_MESSAGE,
                error_code="UNAUTHENTICATED"
            )

        if principal.role not in self.allowed_roles:
            logger.warning(
                f"Role gate denied user {principal.user_id} with role "
                f"{principal.role!r}; allowed: {sorted(self.allowed_roles)}"
            )
            raise AuthorizationError(
                message=FORBIDDEN_MESSAGE,
                details={"required_roles": sorted(self.allowed_roles)},
                error_code="FORBIDDEN"
            )

        return principal

    def __repr__(self) -> str:
        return f"RoleGate({sorted(self.allowed_roles)!r})"


def assignable_role_names(actor: Principal, role_names: AbstractSet[str]) -> FrozenSet[str]:
    """Roles the actor may give to another user; only admins hand out admin"""
    if actor.is_admin:
        return frozenset(role_names)
    return frozenset(name for name in role_names if name != RoleName.ADMIN.value)
