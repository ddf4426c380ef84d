from typing import Callable, Iterable, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_admin.core.config import settings
from clinic_admin.core.exceptions import AuthenticationError
from clinic_admin.core.permissions import UNAUTHENTICATED_MESSAGE, AuthContext, Principal, RoleGate
from clinic_admin.core.security import verify_token
from clinic_admin.domain.users.repository import UserRepository
from clinic_admin.infrastructure.database import get_db

reusable_bearer = HTTPBearer(auto_error=False)


async def get_auth_context(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(reusable_bearer)
) -> AuthContext:
    """Resolve the request's principal; an unusable token means no principal"""
    if credentials is None:
        return AuthContext()

    payload = verify_token(credentials.credentials, "access")
    if not payload:
        return AuthContext()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return AuthContext()

    # Role comes from the database so a role change applies to live tokens
    user = await UserRepository(db).get_by_id(user_id)
    if user is None:
        return AuthContext()

    return AuthContext(principal=Principal(user_id=user.id, email=user.email, role=user.role_name))


async def get_current_principal(
    context: AuthContext = Depends(get_auth_context)
) -> Principal:
    """Any signed-in user"""
    if context.principal is None:
        raise AuthenticationError(message=UNAUTHENTICATED_MESSAGE, error_code="UNAUTHENTICATED")
    return context.principal


def require_roles(allowed_roles: Iterable[str]) -> Callable:
    """Dependency factory guarding a route with a fixed role allow-list"""
    gate = RoleGate(allowed_roles)

    async def role_checker(context: AuthContext = Depends(get_auth_context)) -> Principal:
        return gate.authorize(context)

    role_checker.gate = gate
    return role_checker


require_user_manager = require_roles(settings.USER_MANAGEMENT_ROLES)
