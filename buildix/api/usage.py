"""
Usage API routes.

- GET /api/user/usage: dashboard view (plan, four features, period window)
- GET /api/usage/{feature}: gate status for one feature
"""
from fastapi import APIRouter, Depends

from buildix.core.auth import get_current_user
from buildix.features.usage.service import can_use_feature, get_user_usage_info
from buildix.models.usage import Feature
from buildix.models.user import User


router = APIRouter(prefix="/api", tags=["usage"])


@router.get("/user/usage")
def user_usage(user: User = Depends(get_current_user)):
    return get_user_usage_info(user.user_id).model_dump(by_alias=True, mode="json")


@router.get("/usage/{feature}")
def feature_usage(feature: Feature, user: User = Depends(get_current_user)):
    """Gate status without consuming anything (feature keys: prompts, images, figmaExports, htmlExports)."""
    return can_use_feature(user.user_id, feature).model_dump(by_alias=True, mode="json")
