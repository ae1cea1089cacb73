"""
Subscription repository - user_subscriptions rows written by billing webhooks.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import UserSubscription

logger = logging.getLogger(__name__)


def _row_to_dict(row: UserSubscription) -> Dict[str, Any]:
    return {
        "user_id": row.user_id,
        "stripe_customer_id": row.stripe_customer_id,
        "stripe_subscription_id": row.stripe_subscription_id,
        "tier": row.tier,
        "interval": row.interval,
        "status": row.status,
        "current_period_end": row.current_period_end,
        "updated_at": row.updated_at,
    }


class SubscriptionRepository:
    """Repository for user subscription state."""

    @staticmethod
    async def get_by_user_id(db: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
        result = await db.execute(
            select(UserSubscription)
            .where(UserSubscription.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return _row_to_dict(row) if row else None

    @staticmethod
    async def upsert_subscription(
        db: AsyncSession,
        user_id: str,
        stripe_customer_id: Optional[str],
        stripe_subscription_id: Optional[str],
        tier: Optional[str],
        interval: Optional[str],
        status: str,
        current_period_end: Optional[datetime],
    ) -> Dict[str, Any]:
        """Insert or replace the subscription row keyed by user_id."""
        values = {
            "stripe_customer_id": stripe_customer_id,
            "stripe_subscription_id": stripe_subscription_id,
            "tier": tier,
            "interval": interval,
            "status": status,
            "current_period_end": current_period_end,
            "updated_at": datetime.now(timezone.utc),
        }
        result = await db.execute(
            update(UserSubscription).where(UserSubscription.user_id == user_id).values(**values)
        )
        if (result.rowcount or 0) == 0:
            await db.execute(UserSubscription.__table__.insert().values(user_id=user_id, **values))
        await db.commit()
        logger.info(f"Upserted subscription for user {user_id}: tier={tier} status={status}")
        return await SubscriptionRepository.get_by_user_id(db, user_id)

    @staticmethod
    async def update_by_stripe_subscription_id(
        db: AsyncSession,
        stripe_subscription_id: str,
        status: str,
        current_period_end: Optional[datetime],
    ) -> int:
        """Update status/period end for the row(s) linked to a Stripe subscription."""
        result = await db.execute(
            update(UserSubscription)
            .where(UserSubscription.stripe_subscription_id == stripe_subscription_id)
            .values(
                status=status,
                current_period_end=current_period_end,
                updated_at=datetime.now(timezone.utc),
            )
        )
        await db.commit()
        updated = result.rowcount or 0
        logger.info(f"Updated {updated} subscription(s) for {stripe_subscription_id} to {status}")
        return updated
