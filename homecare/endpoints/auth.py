from fastapi import APIRouter, Depends

from homecare.schemas.response import APIResponse
from homecare.schemas.user import LoginRequest, LoginResult, User, UserContext
from homecare.services.auth import AuthService
from homecare.utils import deps

router = APIRouter()


@router.post("/login", response_model=APIResponse[LoginResult])
async def login(
    *,
    credentials: LoginRequest,
    auth_service: AuthService = Depends(deps.get_auth_service)
):
    result = await auth_service.login(credentials)
    return APIResponse(message="Login successful", data=result)


@router.post("/logout", response_model=APIResponse[None])
async def logout(
    *,
    auth_service: AuthService = Depends(deps.get_auth_service),
    context: UserContext = Depends(deps.get_current_user_with_context)
):
    await auth_service.logout(user_id=context.user_id)
    return APIResponse(message="Logged out successfully")


@router.get("/me", response_model=APIResponse[User])
async def me(context: UserContext = Depends(deps.get_current_user_with_context)):
    return APIResponse(message="User retrieved successfully", data=context.user)
