import hashlib
import hmac
import json
import time
from types import SimpleNamespace

import pytest
import stripe

from vidscribe.errors import BillingError, ValidationError, WebhookVerificationError
from vidscribe.repositories.subscription_repository import SubscriptionRepository
from vidscribe.services.billing_service import BillingService, validate_checkout_params

WEBHOOK_SECRET = "whsec_test"


def sign(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def event(event_type: str, data_object: dict) -> bytes:
    return json.dumps({
        "id": "evt_1",
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }).encode()


class FakeStripe:
    """Just the slice of StripeClient the billing service calls."""

    def __init__(self, existing_customer=None):
        self.calls = []
        self.checkout_error = None
        self.session_url = "https://checkout.stripe.test/c/cs_1"
        self.existing_customer = existing_customer
        self.customers = SimpleNamespace(list_async=self._list_customers, create_async=self._create_customer)
        self.checkout = SimpleNamespace(
            sessions=SimpleNamespace(create_async=self._create_session, retrieve_async=self._retrieve_session)
        )

    async def _list_customers(self, params=None):
        self.calls.append(("customers.list", params))
        data = [SimpleNamespace(id=self.existing_customer)] if self.existing_customer else []
        return SimpleNamespace(data=data)

    async def _create_customer(self, params=None):
        self.calls.append(("customers.create", params))
        return SimpleNamespace(id="cus_new")

    async def _create_session(self, params=None):
        self.calls.append(("checkout.sessions.create", params))
        if self.checkout_error:
            raise self.checkout_error
        return SimpleNamespace(id="cs_1", url=self.session_url)

    async def _retrieve_session(self, session_id, params=None):
        self.calls.append(("checkout.sessions.retrieve", session_id))
        if session_id == "missing":
            raise stripe.InvalidRequestError("No such checkout session", "id")
        return SimpleNamespace(customer_email=None, customer_details=SimpleNamespace(email="buyer@example.com"))


@pytest.fixture
def fake_stripe():
    return FakeStripe()


@pytest.fixture
def billing(fake_stripe):
    return BillingService(fake_stripe, webhook_secret=WEBHOOK_SECRET, app_origin="https://app.test/")


@pytest.mark.parametrize(
    "price_id,tier,interval,message",
    [
        ("", "Nano", "month", "Price ID is required"),
        ("price_1", "", "month", "Tier name is required"),
        ("price_1", "Nano", "week", "Billing interval must be 'month' or 'year'"),
    ],
)
def test_validate_checkout_params(price_id, tier, interval, message):
    with pytest.raises(ValidationError, match=message):
        validate_checkout_params(price_id, tier, interval)


async def test_checkout_session_uses_subscription_mode_and_metadata(billing, fake_stripe):
    result = await billing.create_checkout_session("price_1", "Nano", "month", email="a@b.co", user_id="user-1")

    assert result == {"url": "https://checkout.stripe.test/c/cs_1"}
    _, params = fake_stripe.calls[-1]
    assert params["customer"] == "cus_new"
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_1", "quantity": 1}]
    assert params["metadata"] == {"tierName": "Nano", "interval": "month", "userId": "user-1"}
    assert params["subscription_data"] == {"metadata": params["metadata"]}
    assert params["success_url"] == "https://app.test/signup?session_id={CHECKOUT_SESSION_ID}"
    assert params["cancel_url"] == "https://app.test/pricing"


async def test_checkout_reuses_existing_customer():
    fake = FakeStripe(existing_customer="cus_old")
    billing = BillingService(fake, webhook_secret=WEBHOOK_SECRET, app_origin="https://app.test")

    await billing.create_checkout_session("price_1", "Mega", "year", email="a@b.co")

    assert [name for name, _ in fake.calls] == ["customers.list", "checkout.sessions.create"]
    assert fake.calls[-1][1]["customer"] == "cus_old"


async def test_checkout_validation_happens_before_stripe(billing, fake_stripe):
    with pytest.raises(ValidationError):
        await billing.create_checkout_session("price_1", "Nano", "daily", email="a@b.co")
    with pytest.raises(ValidationError):
        await billing.create_checkout_session("price_1", "Nano", "month", email="  ")
    assert fake_stripe.calls == []


async def test_checkout_stripe_error_becomes_billing_error(billing, fake_stripe):
    fake_stripe.checkout_error = stripe.StripeError("Card network down")

    with pytest.raises(BillingError, match="Card network down"):
        await billing.create_checkout_session("price_1", "Nano", "month", email="a@b.co")


async def test_checkout_without_url_is_billing_error(billing, fake_stripe):
    fake_stripe.session_url = None

    with pytest.raises(BillingError):
        await billing.create_checkout_session("price_1", "Nano", "month", email="a@b.co")


async def test_checkout_customer_email(billing):
    assert await billing.get_checkout_customer_email("cs_1") == {"customer_email": "buyer@example.com"}
    with pytest.raises(ValidationError):
        await billing.get_checkout_customer_email("missing")


async def test_webhook_checkout_completed_upserts_subscription(billing, db):
    payload = event("checkout.session.completed", {
        "id": "cs_1",
        "customer": "cus_1",
        "subscription": "sub_1",
        "expires_at": 1767225600,
        "metadata": {"userId": "user-1", "tierName": "Nano", "interval": "month"},
    })

    result = await billing.handle_webhook(db, payload, sign(payload))

    assert result == {"received": True, "handled": True}
    row = await billing.get_subscription(db, "user-1")
    assert row["stripe_customer_id"] == "cus_1"
    assert row["stripe_subscription_id"] == "sub_1"
    assert row["tier"] == "Nano"
    assert row["interval"] == "month"
    assert row["status"] == "active"
    assert row["current_period_end"].replace(tzinfo=None).year == 2026


async def test_webhook_checkout_completed_twice_keeps_one_row(billing, db):
    for tier in ("Nano", "Mega"):
        payload = event("checkout.session.completed", {
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"userId": "user-1", "tierName": tier, "interval": "year"},
        })
        await billing.handle_webhook(db, payload, sign(payload))

    row = await SubscriptionRepository.get_by_user_id(db, "user-1")
    assert row["tier"] == "Mega"


async def test_webhook_subscription_deleted_cancels(billing, db):
    await SubscriptionRepository.upsert_subscription(
        db, "user-1", "cus_1", "sub_1", "Nano", "month", "active", None,
    )
    payload = event("customer.subscription.deleted", {
        "id": "sub_1",
        "status": "canceled",
        "items": {"data": [{"current_period_end": 1767225600}]},
    })

    await billing.handle_webhook(db, payload, sign(payload))

    row = await billing.get_subscription(db, "user-1")
    assert row["status"] == "canceled"
    assert row["current_period_end"] is not None


async def test_webhook_subscription_updated_active(billing, db):
    await SubscriptionRepository.upsert_subscription(
        db, "user-1", "cus_1", "sub_1", "Nano", "month", "canceled", None,
    )
    payload = event("customer.subscription.updated", {"id": "sub_1", "status": "active", "current_period_end": 1767225600})

    await billing.handle_webhook(db, payload, sign(payload))

    assert (await billing.get_subscription(db, "user-1"))["status"] == "active"


async def test_webhook_without_user_metadata_is_not_handled(billing, db):
    payload = event("checkout.session.completed", {"customer": "cus_1", "metadata": {}})

    assert await billing.handle_webhook(db, payload, sign(payload)) == {"received": True, "handled": False}


async def test_webhook_unknown_event_is_acknowledged(billing, db):
    payload = event("invoice.paid", {"id": "in_1"})

    assert await billing.handle_webhook(db, payload, sign(payload)) == {"received": True, "handled": False}


async def test_webhook_bad_signature_rejected_before_any_write(billing, db):
    payload = event("checkout.session.completed", {
        "customer": "cus_1",
        "metadata": {"userId": "user-1", "tierName": "Nano", "interval": "month"},
    })

    with pytest.raises(WebhookVerificationError):
        await billing.handle_webhook(db, payload, sign(payload, secret="whsec_other"))
    with pytest.raises(WebhookVerificationError):
        await billing.handle_webhook(db, payload, None)

    assert await billing.get_subscription(db, "user-1") is None
