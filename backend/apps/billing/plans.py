"""
Pricing plan catalog.

Update these IDs to match the products and prices configured in the
Stripe and Creem dashboards.
"""

from dataclasses import dataclass

DEFAULT_PLAN_NAME = "Plan"


@dataclass(frozen=True)
class PricingPlan:
    """A sellable plan and every provider ID that bills for it."""

    id: str
    name: str
    stripe_price_ids: tuple[str, ...]
    creem_product_ids: tuple[str, ...] = ()

    @property
    def provider_ids(self) -> tuple[str, ...]:
        return self.stripe_price_ids + self.creem_product_ids


PRICING_PLANS: tuple[PricingPlan, ...] = (
    PricingPlan(
        id="starter",
        name="Starter",
        stripe_price_ids=("price_starter_monthly", "price_starter_yearly"),
        creem_product_ids=("prod_starter",),
    ),
    PricingPlan(
        id="pro",
        name="Pro",
        stripe_price_ids=("price_pro_monthly", "price_pro_yearly"),
        creem_product_ids=("prod_pro",),
    ),
    PricingPlan(
        id="enterprise",
        name="Enterprise",
        stripe_price_ids=("price_enterprise_monthly", "price_enterprise_yearly"),
        creem_product_ids=("prod_enterprise",),
    ),
)


def get_plan_name(price_id: str | None) -> str:
    """Resolve a display name from a Stripe price ID or Creem product ID."""
    if price_id:
        for plan in PRICING_PLANS:
            if price_id in plan.provider_ids:
                return plan.name
    return DEFAULT_PLAN_NAME
