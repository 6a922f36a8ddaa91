"""
Тарифная политика.
"""

from roadside.core.pricing.policy import PricingPolicy, PricingSnapshot

__all__ = ["PricingPolicy", "PricingSnapshot"]
