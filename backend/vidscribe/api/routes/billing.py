"""
Billing API routes: pricing, Stripe checkout and webhook.
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from ...errors import VidscribeError
from ...pricing import list_tiers
from ...services.auth_service import AuthUser
from ...services.container import AppServices
from ..deps import get_current_user, get_db, get_optional_user, get_services, read_json_object

logger = logging.getLogger(__name__)
router = APIRouter(tags=["billing"])


@router.get("/pricing")
async def get_pricing():
    """Subscription tiers with monthly/annual prices and annual savings."""
    return {"tiers": list_tiers()}


@router.post("/billing/checkout-session")
async def create_checkout_session(
    request: Request,
    user: Optional[AuthUser] = Depends(get_optional_user),
    services: AppServices = Depends(get_services),
):
    """
    Create a Stripe checkout session and return its redirect URL.
    Anonymous visitors must supply an email; signed-in users default to theirs.
    """
    data = await read_json_object(request)

    email = data.get("email") or (user.email if user else None)
    try:
        return await services.billing.create_checkout_session(
            price_id=data.get("price_id"),
            tier_name=data.get("tier_name"),
            interval=data.get("interval"),
            email=email,
            user_id=user.id if user else None,
        )
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Checkout session error: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error creating checkout session: {str(e)}")


@router.get("/billing/checkout-session/{session_id}")
async def get_checkout_session(session_id: str, services: AppServices = Depends(get_services)):
    """Customer email collected by a checkout session, for signup prefill."""
    return await services.billing.get_checkout_customer_email(session_id)


@router.get("/billing/subscription")
async def get_subscription(
    user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    subscription = await services.billing.get_subscription(db, user.id)
    return {"subscription": subscription}


@router.post("/billing/webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    services: AppServices = Depends(get_services),
):
    """Stripe webhook. The signature is verified before anything is written."""
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    try:
        return await services.billing.handle_webhook(db, payload, signature)
    except VidscribeError:
        raise
    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        raise HTTPException(status_code=400, detail=f"Webhook error: {str(e)}")
