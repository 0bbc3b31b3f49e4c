"""
AI configuration API routes.

- GET /api/admin/ai-config: current toggles (admin)
- PUT /api/admin/ai-config: partial update (admin)
- GET /api/ai-config: enabled models for the editor's model picker
"""
from fastapi import APIRouter, Depends

from buildix.core.auth import require_admin
from buildix.features.ai_config.service import get_ai_config, update_ai_config
from buildix.models.ai_config import AIConfigUpdate
from buildix.models.user import User


router = APIRouter(prefix="/api/admin", tags=["admin"])
public_router = APIRouter(prefix="/api", tags=["ai-config"])


@router.get("/ai-config")
def read_ai_config(admin: User = Depends(require_admin)):
    return get_ai_config().model_dump(by_alias=True)


@router.put("/ai-config")
def write_ai_config(changes: AIConfigUpdate, admin: User = Depends(require_admin)):
    update_ai_config(changes)
    return {"success": True}


@public_router.get("/ai-config")
def enabled_ai_models():
    config = get_ai_config()
    return {"enabledModels": config.enabled_models, "defaultModel": config.default_ai_model}
