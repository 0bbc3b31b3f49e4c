"""
User mirror service.

Users live in the identity provider; this table keeps the fields metering
needs (email for the bypass list, role for admin routes, created_at as the
period anchor).
- get_user(user_id)
- upsert_user(user_id, email, role)
"""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import select, insert, update

from buildix.core.database import get_db_session, storage_guard, users as app_users
from buildix.models.user import User


def _row_to_user(row) -> User:
    created_at = row.created_at
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return User(
        user_id=row.user_id,
        created_at=created_at,
        email=row.email,
        role=row.role or "user",
    )


def get_user(user_id: str) -> Optional[User]:
    with storage_guard("users.get_user", user_id=user_id):
        with get_db_session() as session:
            row = session.execute(select(app_users).where(app_users.c.user_id == user_id)).first()
    return _row_to_user(row) if row else None


def upsert_user(
    user_id: str,
    email: Optional[str] = None,
    role: Optional[str] = None,
    created_at: Optional[datetime] = None,
) -> User:
    """
    Create the user on first sight, otherwise refresh email/role from the
    latest identity claims. created_at is only written on insert.
    """
    email = User.normalized_email(email)
    existing = get_user(user_id)

    if existing is None:
        now = created_at or datetime.now(timezone.utc)
        with storage_guard("users.insert", user_id=user_id):
            with get_db_session() as session:
                session.execute(
                    insert(app_users).values(
                        user_id=user_id,
                        email=email,
                        role=role or "user",
                        created_at=now,
                    )
                )
        return User(user_id=user_id, created_at=now, email=email, role=role or "user")

    changes = {}
    if email and email != existing.email:
        changes["email"] = email
    if role and role != existing.role:
        changes["role"] = role
    if not changes:
        return existing

    with storage_guard("users.update", user_id=user_id):
        with get_db_session() as session:
            session.execute(
                update(app_users).where(app_users.c.user_id == user_id).values(**changes)
            )
    return existing.model_copy(update=changes)
