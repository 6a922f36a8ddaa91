from fastapi import APIRouter, Depends

from roadside.core.presence import PresenceDirectory
from roadside.core.users.models import (
    BaseLocationInput,
    LocationInput,
    OnlineInput,
    PayoutDestinationInput,
    User,
    UserPublic,
)
from roadside.core.users.service import UserService
from roadside.services.api.dependencies import get_current_user, get_presence, get_user_service
from roadside.shared.models import StatusResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserPublic)
async def get_me(user: User = Depends(get_current_user)):
    return user.public()


@router.patch("/me/payout", response_model=UserPublic)
async def update_payout(
    data: PayoutDestinationInput,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return (await users.update_payout(user, data)).public()


@router.patch("/me/base", response_model=UserPublic)
async def update_base(
    data: BaseLocationInput,
    user: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return (await users.update_base(user, data)).public()


@router.post("/me/online", response_model=UserPublic)
async def set_online(
    data: OnlineInput,
    user: User = Depends(get_current_user),
    presence: PresenceDirectory = Depends(get_presence),
    users: UserService = Depends(get_user_service),
):
    """Механик начинает или прекращает принимать вызовы."""
    await presence.set_online(user, data.is_online)
    return (await users.get_user(user.id)).public()


@router.post("/me/location", response_model=StatusResponse)
async def update_location(
    data: LocationInput,
    user: User = Depends(get_current_user),
    presence: PresenceDirectory = Depends(get_presence),
):
    await presence.update_location(user.id, data.lat, data.lng)
    return StatusResponse()


@router.get("/{user_id}", response_model=UserPublic)
async def get_profile(
    user_id: str,
    _: User = Depends(get_current_user),
    users: UserService = Depends(get_user_service),
):
    return await users.get_profile(user_id)
