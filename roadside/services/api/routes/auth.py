from fastapi import APIRouter, Depends, status

from roadside.core.users.models import LoginInput, RegisterInput
from roadside.core.users.service import UserService
from roadside.services.api.dependencies import get_bearer_token, get_user_service
from roadside.shared.models import AuthResponse, StatusResponse

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterInput,
    users: UserService = Depends(get_user_service),
):
    user, token = await users.register(data)
    return AuthResponse(token=token, user=user.public())


@router.post("/login", response_model=AuthResponse)
async def login(
    data: LoginInput,
    users: UserService = Depends(get_user_service),
):
    user, token = await users.authenticate(data)
    return AuthResponse(token=token, user=user.public())


@router.post("/logout", response_model=StatusResponse)
async def logout(
    token: str = Depends(get_bearer_token),
    users: UserService = Depends(get_user_service),
):
    await users.logout(token)
    return StatusResponse()
