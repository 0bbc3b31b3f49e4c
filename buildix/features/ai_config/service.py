"""
buildix/features/ai_config/service.py

Admin-editable AI model configuration.

Reads go through the process-wide TTL cache (AI_CONFIG_CACHE_TTL_SECONDS);
update_ai_config() invalidates the key so the next read sees the write.
"""

import logging
from typing import List

from sqlalchemy import select, insert, update

from buildix.core.cache import get_config_cache
from buildix.core.config import settings
from buildix.core.database import get_db_session, storage_guard, site_settings
from buildix.core.errors import StorageUnavailableError, ValidationError
from buildix.models.ai_config import AI_MODELS, AIConfig, AIConfigUpdate


logger = logging.getLogger("buildix")

CACHE_KEY = "ai_config"
SETTINGS_ROW_ID = "default"
DEFAULT_CONFIG = AIConfig()


def _load_ai_config() -> AIConfig:
    with storage_guard("ai_config.load"):
        with get_db_session() as session:
            row = session.execute(
                select(site_settings).where(site_settings.c.id == SETTINGS_ROW_ID)
            ).first()
    if row is None:
        return DEFAULT_CONFIG
    return AIConfig(
        enable_gemini=bool(row.enable_gemini),
        enable_claude=bool(row.enable_claude),
        default_ai_model=row.default_ai_model,
    )


def get_ai_config() -> AIConfig:
    """Cached config; falls back to defaults (uncached) when storage is down."""
    try:
        return get_config_cache().get_or_refresh(
            CACHE_KEY, settings.AI_CONFIG_CACHE_TTL_SECONDS, _load_ai_config
        )
    except StorageUnavailableError:
        logger.warning("ai_config.load_failed_using_defaults")
        return DEFAULT_CONFIG


def get_enabled_models() -> List[str]:
    return get_ai_config().enabled_models


def validate_update(current: AIConfig, changes: AIConfigUpdate) -> AIConfig:
    """Merge a partial update and enforce the model invariants."""
    merged = current.model_copy(update=changes.model_dump(exclude_none=True))

    if not merged.enable_gemini and not merged.enable_claude:
        raise ValidationError("At least one AI model must be enabled")
    if merged.default_ai_model not in AI_MODELS:
        raise ValidationError("Invalid default AI model")
    if merged.default_ai_model not in merged.enabled_models:
        raise ValidationError("Cannot set disabled model as default")
    return merged


def update_ai_config(changes: AIConfigUpdate) -> AIConfig:
    """Validate, upsert the settings row, then drop the cached entry."""
    current = _load_ai_config()
    merged = validate_update(current, changes)
    values = {
        "enable_gemini": merged.enable_gemini,
        "enable_claude": merged.enable_claude,
        "default_ai_model": merged.default_ai_model,
    }

    with storage_guard("ai_config.update"):
        with get_db_session() as session:
            exists = session.execute(
                select(site_settings.c.id).where(site_settings.c.id == SETTINGS_ROW_ID)
            ).first()
            if exists:
                session.execute(
                    update(site_settings).where(site_settings.c.id == SETTINGS_ROW_ID).values(**values)
                )
            else:
                session.execute(insert(site_settings).values(id=SETTINGS_ROW_ID, **values))

    get_config_cache().invalidate(CACHE_KEY)
    logger.info("ai_config.updated", extra=values)
    return merged
