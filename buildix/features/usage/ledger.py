"""
buildix/features/usage/ledger.py

Usage ledger access and the billing-period rollover rule.

Handles:
- Latest-period lookup and lazy period creation
- Atomic counter increments (single UPDATE ... SET col = col + n)
- Monthly window computation anchored to a subscription/account date

resolve_current_period() is the only way gate and incrementer find a
period, so both always agree on boundaries.
"""

import calendar
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError

from buildix.core.database import get_db_session, storage_guard, usage_periods
from buildix.core.errors import StorageUnavailableError
from buildix.core.metrics import usage_periods_created_total
from buildix.models.usage import Feature, UsagePeriod


logger = logging.getLogger("buildix")

# Feature -> usage_periods counter column
FEATURE_COLUMNS = {
    Feature.PROMPTS: "prompts_used",
    Feature.IMAGES: "images_used",
    Feature.FIGMA_EXPORTS: "figma_exports_used",
    Feature.HTML_EXPORTS: "html_exports_used",
}


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on the way back)."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def normalize_now(now: Optional[datetime] = None) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return as_utc(now)


def add_months(anchor: datetime, months: int) -> datetime:
    """Shift anchor by whole months, clamping the day to the target month's length."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return anchor.replace(year=year, month=month, day=day)


def compute_period_window(anchor: datetime, now: datetime):
    """
    Return (start, end) of the monthly cycle containing now.

    Boundaries are always derived from the anchor itself (anchor + k months),
    so a 31st anchor yields Jan 31, Feb 28, Mar 31 instead of drifting.
    An anchor in the future starts the cycle at now.
    """
    anchor = as_utc(anchor)
    now = as_utc(now)
    if anchor > now:
        anchor = now

    months = (now.year - anchor.year) * 12 + (now.month - anchor.month)
    start = add_months(anchor, months)
    if start > now:
        months -= 1
        start = add_months(anchor, months)
    return start, add_months(anchor, months + 1)


def _row_to_period(row) -> UsagePeriod:
    return UsagePeriod(
        id=row.id,
        user_id=row.user_id,
        period_start=as_utc(row.period_start),
        period_end=as_utc(row.period_end),
        prompts_used=max(0, row.prompts_used or 0),
        images_used=max(0, row.images_used or 0),
        figma_exports_used=max(0, row.figma_exports_used or 0),
        html_exports_used=max(0, row.html_exports_used or 0),
    )


def find_latest_period(user_id: str) -> Optional[UsagePeriod]:
    """The user's period with the latest period_end, or None."""
    with storage_guard("usage.find_latest_period", user_id=user_id):
        with get_db_session() as session:
            row = session.execute(
                select(usage_periods)
                .where(usage_periods.c.user_id == user_id)
                .order_by(usage_periods.c.period_end.desc())
                .limit(1)
            ).first()
    return _row_to_period(row) if row else None


def create_period(user_id: str, start: datetime, end: datetime) -> UsagePeriod:
    """
    Insert a zeroed period row.

    If a concurrent request created the same (user_id, period_start) first,
    the existing row is returned instead.
    """
    start = as_utc(start)
    end = as_utc(end)
    with storage_guard("usage.create_period", user_id=user_id):
        try:
            with get_db_session() as session:
                result = session.execute(
                    insert(usage_periods).values(
                        user_id=user_id,
                        period_start=start,
                        period_end=end,
                        prompts_used=0,
                        images_used=0,
                        figma_exports_used=0,
                        html_exports_used=0,
                    )
                )
                period_id = result.inserted_primary_key[0]
        except IntegrityError:
            logger.info(
                "usage.period_create_race",
                extra={"user_id": user_id, "period_start": start.isoformat()},
            )
            existing = find_latest_period(user_id)
            if existing is not None:
                return existing
            raise

    usage_periods_created_total.inc()
    logger.info(
        "usage.period_created",
        extra={"user_id": user_id, "period_start": start.isoformat(), "period_end": end.isoformat()},
    )
    return UsagePeriod(id=period_id, user_id=user_id, period_start=start, period_end=end)


def resolve_current_period(user_id: str, anchor: datetime, now: Optional[datetime] = None) -> UsagePeriod:
    """
    Fetch the current period, creating the next one when the latest has ended.

    1. Latest row by period_end.
    2. None, or now >= period_end: create the anchored window containing now,
       never starting before the previous row's period_end.
    3. Otherwise reuse the latest row.
    """
    now = normalize_now(now)
    latest = find_latest_period(user_id)
    if latest is not None and now < latest.period_end:
        return latest

    start, end = compute_period_window(anchor, now)
    if latest is not None and start < latest.period_end:
        start = latest.period_end
    return create_period(user_id, start, end)


def atomic_increment(period_id: int, feature: Feature, amount: int = 1) -> None:
    """Add amount to one counter in place; no read-modify-write."""
    column_name = FEATURE_COLUMNS[feature]
    column = usage_periods.c[column_name]
    with storage_guard("usage.atomic_increment", period_id=period_id, feature=feature.value):
        with get_db_session() as session:
            result = session.execute(
                update(usage_periods)
                .where(usage_periods.c.id == period_id)
                .values({column_name: column + amount})
            )
            updated = result.rowcount
    if updated != 1:
        raise StorageUnavailableError(f"Usage period {period_id} not found for increment")
