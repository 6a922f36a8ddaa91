from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from roadside.core.pricing import PricingPolicy, PricingSnapshot
from roadside.services.api.dependencies import get_pricing

router = APIRouter(prefix="/pricing", tags=["Pricing"])


@router.get("/quote", response_model=PricingSnapshot)
async def get_quote(
    at: Optional[datetime] = None,
    pricing: PricingPolicy = Depends(get_pricing),
):
    """Стоимость заявки, созданной сейчас или в момент at."""
    return pricing.compute(at)
