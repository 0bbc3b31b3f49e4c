"""
buildix/features/plans/service.py

Plan catalog.

Handles:
- Static plan definitions (FREE, PRO, MAX, ULTRA)
- Limit lookup with FREE fallback (never raises)
- Stripe price id -> plan mapping (price ids come from settings)
"""

from typing import Dict, Optional, Union

from buildix.core.config import settings
from buildix.models.plan import Plan, PlanLimits, PlanType, UNLIMITED
from buildix.models.usage import CountLimitKind, Feature


PLANS: Dict[PlanType, Plan] = {
    PlanType.FREE: Plan(
        id=PlanType.FREE,
        name="Free",
        description="Para começar a explorar o Buildix",
        price=0,
        price_yearly=0,
        limits=PlanLimits(
            prompts_per_month=5,
            images_per_month=0,
            figma_exports_per_month=0,
            html_exports_per_month=2,
            pages_per_project=2,
            image_uploads_limit=20,
            can_access_pro=False,
        ),
    ),
    PlanType.PRO: Plan(
        id=PlanType.PRO,
        name="Pro",
        description="Para criadores e freelancers",
        price=108,
        price_yearly=1080,
        limits=PlanLimits(
            prompts_per_month=120,
            images_per_month=30,
            figma_exports_per_month=20,
            html_exports_per_month=UNLIMITED,
            pages_per_project=100,
            image_uploads_limit=200,
            can_access_pro=True,
        ),
        highlighted=True,
        badge="Mais Popular",
    ),
    PlanType.MAX: Plan(
        id=PlanType.MAX,
        name="Max",
        description="Para agências e equipes",
        price=217,
        price_yearly=2170,
        limits=PlanLimits(
            prompts_per_month=240,
            images_per_month=60,
            figma_exports_per_month=50,
            html_exports_per_month=UNLIMITED,
            pages_per_project=100,
            image_uploads_limit=500,
            can_access_pro=True,
        ),
    ),
    PlanType.ULTRA: Plan(
        id=PlanType.ULTRA,
        name="Ultra",
        description="Para uso intensivo e empresas",
        price=543,
        price_yearly=5430,
        limits=PlanLimits(
            prompts_per_month=560,
            images_per_month=140,
            figma_exports_per_month=100,
            html_exports_per_month=UNLIMITED,
            pages_per_project=UNLIMITED,
            image_uploads_limit=UNLIMITED,
            can_access_pro=True,
        ),
        badge="Melhor Valor",
    ),
}

# Feature -> PlanLimits field
FEATURE_LIMIT_FIELDS = {
    Feature.PROMPTS: "prompts_per_month",
    Feature.IMAGES: "images_per_month",
    Feature.FIGMA_EXPORTS: "figma_exports_per_month",
    Feature.HTML_EXPORTS: "html_exports_per_month",
}

COUNT_LIMIT_FIELDS = {
    CountLimitKind.PAGES: "pages_per_project",
    CountLimitKind.IMAGE_UPLOADS: "image_uploads_limit",
}


def coerce_plan_id(plan_id: Union[PlanType, str, None]) -> PlanType:
    if isinstance(plan_id, PlanType):
        return plan_id
    if plan_id:
        try:
            return PlanType(str(plan_id).upper())
        except ValueError:
            pass
    return PlanType.FREE


def _stripe_price_ids(plan_id: PlanType) -> Dict[str, Optional[str]]:
    if plan_id == PlanType.FREE:
        return {"monthly": None, "yearly": None}
    return {
        "monthly": getattr(settings, f"STRIPE_PRICE_{plan_id.value}_MONTHLY", None),
        "yearly": getattr(settings, f"STRIPE_PRICE_{plan_id.value}_YEARLY", None),
    }


def get_plan(plan_id: Union[PlanType, str, None]) -> Plan:
    """Get plan definition with configured Stripe price ids. Unknown ids resolve to FREE."""
    plan = PLANS[coerce_plan_id(plan_id)]
    prices = _stripe_price_ids(plan.id)
    return plan.model_copy(
        update={
            "stripe_price_id_monthly": prices["monthly"],
            "stripe_price_id_yearly": prices["yearly"],
        }
    )


def get_plan_limits(plan_id: Union[PlanType, str, None]) -> PlanLimits:
    """Limits for a plan. Pure and total: unknown or missing plan ids get FREE limits."""
    return PLANS[coerce_plan_id(plan_id)].limits


def get_feature_limit(limits: PlanLimits, feature: Feature) -> int:
    return getattr(limits, FEATURE_LIMIT_FIELDS[feature])


def get_count_limit(limits: PlanLimits, kind: CountLimitKind) -> int:
    return getattr(limits, COUNT_LIMIT_FIELDS[kind])


def get_plan_by_stripe_price_id(price_id: Optional[str]) -> Optional[Plan]:
    """Find the plan billed under a Stripe price id (monthly or yearly)."""
    if not price_id:
        return None
    for plan_id in PLANS:
        plan = get_plan(plan_id)
        if price_id in (plan.stripe_price_id_monthly, plan.stripe_price_id_yearly):
            return plan
    return None


def is_unlimited(limit: int) -> bool:
    return limit == UNLIMITED


def format_limit(limit: int) -> str:
    return "Ilimitado" if is_unlimited(limit) else str(limit)


def get_yearly_discount(plan: Plan) -> int:
    """Yearly discount in whole percent versus twelve monthly payments."""
    if plan.price == 0:
        return 0
    monthly_total = plan.price * 12
    return round((monthly_total - plan.price_yearly) / monthly_total * 100)
