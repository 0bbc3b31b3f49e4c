"""
Export API routes.

- POST /api/exports/html: meter one HTML export (429 when the plan is exhausted)
- GET  /api/exports/html: HTML export gate status

The export itself is rendered client-side; this endpoint only records it.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header

from buildix.core.auth import get_current_user
from buildix.features.usage.evaluator import evaluate
from buildix.features.usage.service import can_use_feature, run_metered
from buildix.models.usage import Feature
from buildix.models.user import User


logger = logging.getLogger("buildix")

router = APIRouter(prefix="/api/exports", tags=["exports"])


def _preferred_locale(accept_language: Optional[str]) -> Optional[str]:
    if not accept_language:
        return None
    return accept_language.split(",")[0].split(";")[0].strip() or None


@router.post("/html")
def export_html(
    user: User = Depends(get_current_user),
    accept_language: Optional[str] = Header(None),
):
    outcome = run_metered(
        user.user_id,
        Feature.HTML_EXPORTS,
        lambda: None,
        locale=_preferred_locale(accept_language),
    )
    before = outcome.check.usage
    used = before.used + 1 if outcome.usage_recorded else before.used
    after = evaluate(used, before.limit)

    if not outcome.usage_recorded and not outcome.check.bypassed:
        logger.warning("exports.html_usage_not_recorded", extra={"user_id": user.user_id})

    return {
        "success": True,
        "usage": {"used": after.used, "limit": after.limit, "remaining": after.remaining},
        "usage_recorded": outcome.usage_recorded,
    }


@router.get("/html")
def export_html_status(user: User = Depends(get_current_user)):
    return can_use_feature(user.user_id, Feature.HTML_EXPORTS).model_dump(by_alias=True, mode="json")
