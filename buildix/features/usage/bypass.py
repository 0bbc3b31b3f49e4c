"""
buildix/features/usage/bypass.py

Operator identities exempt from gating and metering.

The list comes from configuration (USAGE_BYPASS_IDENTITIES) and is
installed once at startup with configure_bypass().
"""

import logging
from typing import Iterable, Optional


logger = logging.getLogger("buildix")


class BypassList:
    """Case-insensitive set of user ids and emails."""

    def __init__(self, identities: Optional[Iterable[str]] = None):
        self._identities = frozenset(
            item.strip().lower() for item in (identities or []) if item and item.strip()
        )

    def __len__(self) -> int:
        return len(self._identities)

    def contains(self, user_id: Optional[str], email: Optional[str] = None) -> bool:
        for candidate in (user_id, email):
            if candidate and candidate.strip().lower() in self._identities:
                return True
        return False


_bypass = BypassList()


def configure_bypass(identities: Optional[Iterable[str]]) -> BypassList:
    """Replace the process-wide bypass list."""
    global _bypass
    _bypass = BypassList(identities)
    logger.info("usage.bypass_configured", extra={"identity_count": len(_bypass)})
    return _bypass


def get_bypass() -> BypassList:
    return _bypass


def is_bypassed(user_id: Optional[str], email: Optional[str] = None) -> bool:
    return _bypass.contains(user_id, email)
