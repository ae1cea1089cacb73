"""
Billing service - Stripe checkout sessions and webhook-driven subscription state.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
import json
import logging

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import BillingError, ValidationError, WebhookVerificationError
from ..models import SubscriptionStatus
from ..pricing import BILLING_INTERVALS
from ..repositories.subscription_repository import SubscriptionRepository

logger = logging.getLogger(__name__)
CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _from_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def _subscription_period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    # Newer Stripe API versions report the period on the subscription items.
    period_end = subscription.get("current_period_end")
    if period_end is None:
        items = (subscription.get("items") or {}).get("data") or []
        if items:
            period_end = items[0].get("current_period_end")
    return _from_timestamp(period_end)


def validate_checkout_params(price_id: Optional[str], tier_name: Optional[str], interval: Optional[str]) -> None:
    if not (price_id or "").strip():
        raise ValidationError("Price ID is required")
    if not (tier_name or "").strip():
        raise ValidationError("Tier name is required")
    if interval not in BILLING_INTERVALS:
        raise ValidationError("Billing interval must be 'month' or 'year'")


class BillingService:
    """Creates checkout sessions and applies Stripe webhook events."""

    def __init__(
        self,
        stripe_client: stripe.StripeClient,
        webhook_secret: str,
        app_origin: str,
    ):
        self.stripe_client = stripe_client
        self.webhook_secret = webhook_secret
        self.app_origin = app_origin.rstrip("/")
        self.subscription_repo = SubscriptionRepository()

    async def _get_or_create_customer(self, email: str) -> str:
        customers = await self.stripe_client.customers.list_async(params={"email": email, "limit": 1})
        if customers.data:
            return customers.data[0].id
        customer = await self.stripe_client.customers.create_async(params={"email": email})
        logger.info(f"Created Stripe customer {customer.id} for {email}")
        return customer.id

    async def create_checkout_session(
        self,
        price_id: str,
        tier_name: str,
        interval: str,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, str]:
        """Open a subscription-mode checkout and return its redirect URL."""
        validate_checkout_params(price_id, tier_name, interval)
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")

        metadata = {"tierName": tier_name, "interval": interval}
        if user_id:
            metadata["userId"] = user_id

        try:
            customer_id = await self._get_or_create_customer(email)
            session = await self.stripe_client.checkout.sessions.create_async(
                params={
                    "customer": customer_id,
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "mode": "subscription",
                    "success_url": f"{self.app_origin}/signup?session_id={{CHECKOUT_SESSION_ID}}",
                    "cancel_url": f"{self.app_origin}/pricing",
                    "metadata": metadata,
                    "subscription_data": {"metadata": metadata},
                    "allow_promotion_codes": True,
                    "billing_address_collection": "required",
                    "automatic_tax": {"enabled": True},
                }
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session error: {e}")
            raise BillingError(f"Failed to create checkout session: {e.user_message or str(e)}") from e

        if not getattr(session, "url", None):
            raise BillingError("Failed to create checkout session")

        logger.info(f"Created checkout session {session.id} for {email} ({tier_name}/{interval})")
        return {"url": session.url}

    async def get_checkout_customer_email(self, session_id: str) -> Dict[str, Optional[str]]:
        """Email Stripe collected for a checkout session, used to prefill signup."""
        try:
            session = await self.stripe_client.checkout.sessions.retrieve_async(session_id)
        except stripe.InvalidRequestError as e:
            raise ValidationError("Invalid checkout session") from e
        except stripe.StripeError as e:
            raise BillingError(f"Failed to verify checkout session: {e}") from e

        customer_details = getattr(session, "customer_details", None)
        email = getattr(session, "customer_email", None) or getattr(customer_details, "email", None)
        return {"customer_email": email}

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Check the stripe-signature header and return the event as a plain dict."""
        if not signature:
            raise WebhookVerificationError("Missing stripe signature")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookVerificationError("Invalid stripe signature") from e
        except ValueError as e:
            raise WebhookVerificationError("Invalid webhook payload") from e
        return json.loads(payload)

    async def handle_webhook(self, db: AsyncSession, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        event = self.verify_webhook(payload, signature)
        event_type = event.get("type")
        data_object = (event.get("data") or {}).get("object") or {}
        logger.info(f"Received Stripe event {event.get('id')} ({event_type})")

        if event_type == CHECKOUT_COMPLETED:
            metadata = data_object.get("metadata") or {}
            user_id = metadata.get("userId")
            if not user_id:
                logger.warning(f"Checkout session {data_object.get('id')} has no userId metadata; skipping")
                return {"received": True, "handled": False}
            await self.subscription_repo.upsert_subscription(
                db,
                user_id=user_id,
                stripe_customer_id=data_object.get("customer"),
                stripe_subscription_id=data_object.get("subscription"),
                tier=metadata.get("tierName"),
                interval=metadata.get("interval"),
                status=SubscriptionStatus.ACTIVE.value,
                current_period_end=_from_timestamp(data_object.get("expires_at")),
            )
            return {"received": True, "handled": True}

        if event_type in (SUBSCRIPTION_UPDATED, SUBSCRIPTION_DELETED):
            status = (
                SubscriptionStatus.ACTIVE.value
                if data_object.get("status") == "active"
                else SubscriptionStatus.CANCELED.value
            )
            await self.subscription_repo.update_by_stripe_subscription_id(
                db,
                stripe_subscription_id=data_object.get("id"),
                status=status,
                current_period_end=_subscription_period_end(data_object),
            )
            return {"received": True, "handled": True}

        return {"received": True, "handled": False}

    async def get_subscription(self, db: AsyncSession, user_id: str) -> Optional[Dict[str, Any]]:
        return await self.subscription_repo.get_by_user_id(db, user_id)
