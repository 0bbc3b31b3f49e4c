"""
buildix/models/usage.py

Usage metering models.

Field names serialize in camelCase (``isLimitReached``, ``percentUsed``)
because the editor frontend reads them directly from the JSON.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from buildix.models.plan import PlanType


class Feature(str, Enum):
    """Metered capabilities with a monthly quota."""
    PROMPTS = "prompts"
    IMAGES = "images"
    FIGMA_EXPORTS = "figmaExports"
    HTML_EXPORTS = "htmlExports"


class CountLimitKind(str, Enum):
    """Capabilities capped by a running total instead of a monthly counter."""
    PAGES = "pages"
    IMAGE_UPLOADS = "imageUploads"


class _CamelModel(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class UsageStatus(_CamelModel):
    used: int
    limit: int
    remaining: int
    is_limit_reached: bool
    percent_used: int


class UsagePeriod(_CamelModel):
    """
    Ledger row for one user and one billing cycle.

    Window is half-open: [period_start, period_end).
    """
    id: int
    user_id: str
    period_start: datetime
    period_end: datetime
    prompts_used: int = 0
    images_used: int = 0
    figma_exports_used: int = 0
    html_exports_used: int = 0

    def contains(self, moment: datetime) -> bool:
        return self.period_start <= moment < self.period_end


class FeatureCheck(_CamelModel):
    """Gate decision for one feature."""
    allowed: bool
    usage: UsageStatus
    plan: PlanType
    bypassed: bool = Field(default=False, exclude=True)


class CountLimitCheck(_CamelModel):
    allowed: bool
    usage: UsageStatus
    plan: PlanType
    message: Optional[str] = None


class UserUsageInfo(_CamelModel):
    plan: PlanType
    prompts: UsageStatus
    images: UsageStatus
    figma_exports: UsageStatus
    html_exports: UsageStatus
    period_start: datetime
    period_end: datetime
