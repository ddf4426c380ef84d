from fastapi import APIRouter
from clinic_admin.api.v1.auth import routes as auth
from clinic_admin.api.v1.users import routes as users

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(users.roles_router, prefix="/roles", tags=["roles"])
