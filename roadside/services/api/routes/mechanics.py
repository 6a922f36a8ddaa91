from fastapi import APIRouter, Depends, Query

from roadside.core.presence import PresenceDirectory
from roadside.core.users.models import NearbyMechanic, User, UserPublic
from roadside.services.api.dependencies import get_current_user, get_presence

router = APIRouter(prefix="/mechanics", tags=["Mechanics"])


@router.get("/online", response_model=list[UserPublic])
async def list_online(
    _: User = Depends(get_current_user),
    presence: PresenceDirectory = Depends(get_presence),
):
    return [worker.public() for worker in await presence.online_workers()]


@router.get("/nearby", response_model=list[NearbyMechanic])
async def list_nearby(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10.0, gt=0, le=100),
    limit: int | None = Query(None, ge=1, le=100),
    _: User = Depends(get_current_user),
    presence: PresenceDirectory = Depends(get_presence),
):
    """Механики онлайн по текущему положению, ближайшие первыми."""
    return await presence.online_workers_near(lat, lng, radius_km, limit=limit)
