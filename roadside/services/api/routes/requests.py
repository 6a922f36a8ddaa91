from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from roadside.core.dispatch import DispatchCoordinator
from roadside.core.requests import CancelInput, CreateRequestInput, RateInput, ServiceRequest
from roadside.core.users.models import User
from roadside.services.api.dependencies import get_coordinator, get_current_user

router = APIRouter(prefix="/requests", tags=["Service Requests"])


@router.post("", response_model=ServiceRequest, status_code=status.HTTP_201_CREATED)
async def create_request(
    data: CreateRequestInput,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.create(user, data)


@router.get("", response_model=list[ServiceRequest])
async def list_requests(
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.list_for_user(user)


@router.get("/history", response_model=list[ServiceRequest])
async def list_history(
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.list_history(user)


@router.get("/active", response_model=Optional[ServiceRequest])
async def get_active(
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.get_active(user)


@router.get("/pending", response_model=list[ServiceRequest])
async def list_pending(
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    """Ожидающие заявки в радиусе от базы механика."""
    return await coordinator.list_pending_for_worker(user)


@router.get("/{request_id}", response_model=ServiceRequest)
async def get_request(
    request_id: str,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.get_request(user, request_id)


# =============================================================================
# ПЕРЕХОДЫ
# =============================================================================

@router.post("/{request_id}/accept", response_model=ServiceRequest)
async def accept_request(
    request_id: str,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.accept(user, request_id)


@router.post("/{request_id}/arrive", response_model=ServiceRequest)
async def arrive(
    request_id: str,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.arrive(user, request_id)


@router.post("/{request_id}/complete", response_model=ServiceRequest)
async def complete(
    request_id: str,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.complete(user, request_id)


@router.post("/{request_id}/confirm", response_model=ServiceRequest)
async def confirm(
    request_id: str,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.confirm(user, request_id)


@router.post("/{request_id}/rate", response_model=ServiceRequest)
async def rate(
    request_id: str,
    data: RateInput,
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.rate(user, request_id, data)


@router.post("/{request_id}/cancel", response_model=ServiceRequest)
async def cancel(
    request_id: str,
    data: Optional[CancelInput] = Body(None),
    user: User = Depends(get_current_user),
    coordinator: DispatchCoordinator = Depends(get_coordinator),
):
    return await coordinator.cancel(user, request_id, data.reason if data else None)
