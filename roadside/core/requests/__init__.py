from roadside.core.requests.models import (
    CancelInput,
    CreateRequestInput,
    RateInput,
    RequestDraft,
    ServiceRequest,
)
from roadside.core.requests.repository import ServiceRequestRepository

__all__ = [
    "CancelInput",
    "CreateRequestInput",
    "RateInput",
    "RequestDraft",
    "ServiceRequest",
    "ServiceRequestRepository",
]
