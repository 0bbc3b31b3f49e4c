"""
buildix/models/plan.py

Plan catalog models.

Plans are static tiers (FREE, PRO, MAX, ULTRA); they are not persisted.
Limits use -1 for "unlimited".
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


UNLIMITED = -1


class PlanType(str, Enum):
    FREE = "FREE"
    PRO = "PRO"
    MAX = "MAX"
    ULTRA = "ULTRA"


class PlanLimits(BaseModel):
    """
    Numeric limits for a plan.

    Monthly counters (reset every billing period):
    - prompts_per_month: AI prompt invocations
    - images_per_month: AI image generations
    - figma_exports_per_month / html_exports_per_month

    Count limits (checked against a current total, never reset):
    - pages_per_project
    - image_uploads_limit: images uploaded to the user's gallery
    """
    model_config = ConfigDict(frozen=True)

    prompts_per_month: int = Field(ge=UNLIMITED)
    images_per_month: int = Field(ge=UNLIMITED)
    figma_exports_per_month: int = Field(ge=UNLIMITED)
    html_exports_per_month: int = Field(ge=UNLIMITED)
    pages_per_project: int = Field(ge=UNLIMITED)
    image_uploads_limit: int = Field(ge=UNLIMITED)
    can_access_pro: bool = False


class Plan(BaseModel):
    """A product tier. Prices are monthly/yearly amounts in BRL."""
    model_config = ConfigDict(frozen=True)

    id: PlanType
    name: str
    description: str
    price: int
    price_yearly: int
    limits: PlanLimits
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_yearly: Optional[str] = None
    highlighted: bool = False
    badge: Optional[str] = None
