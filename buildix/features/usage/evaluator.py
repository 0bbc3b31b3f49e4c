"""
buildix/features/usage/evaluator.py

Usage status arithmetic shared by the gate and the dashboard.
"""

from buildix.models.plan import UNLIMITED
from buildix.models.usage import UsageStatus


def percent_of(used: int, limit: int) -> int:
    """Whole percent of limit consumed, rounded half-up, capped at 100."""
    if limit == 0:
        return 100
    # Integer half-up rounding of used * 100 / limit
    return min(100, (used * 200 + limit) // (2 * limit))


def evaluate(used: int, limit: int) -> UsageStatus:
    """
    Build a UsageStatus for a counter against a plan limit.

    - limit == -1 (unlimited): remaining -1, never reached, 0 percent
    - otherwise: remaining clamped at 0, reached once used >= limit
    """
    used = max(0, used)
    if limit == UNLIMITED:
        return UsageStatus(
            used=used,
            limit=UNLIMITED,
            remaining=UNLIMITED,
            is_limit_reached=False,
            percent_used=0,
        )

    return UsageStatus(
        used=used,
        limit=limit,
        remaining=max(0, limit - used),
        is_limit_reached=used >= limit,
        percent_used=percent_of(used, limit),
    )
