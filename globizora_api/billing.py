"""Stripe checkout and webhook handling.

Checkout sessions carry the user id as ``client_reference_id`` (and again in
metadata, together with the plan) so the asynchronous completion event can be
mapped back to a local user. A completion is applied at most once per
checkout session id; see ``ProcessedCheckout``.
"""
from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Literal, Optional, Tuple
import json
import logging
import stripe

from .config import Settings
from .db import get_db
from .deps import get_current_user, get_settings
from .errors import ExternalServiceError, ValidationError
from .models import ProcessedCheckout, User
from . import store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["billing"])

# USD cents
PLAN_PRICES = {"free": 0, "pro": 2900, "enterprise": 9900}
COMPLETED_EVENT = "checkout.session.completed"
FALLBACK_TIER = "paid"


def create_checkout(settings: Settings, user: User, plan: str, origin: Optional[str] = None) -> str:
    if plan not in PLAN_PRICES:
        raise ValidationError("Invalid plan")
    if not settings.stripe_configured:
        raise ExternalServiceError("Stripe not configured", status_code=400)

    origin = (origin or settings.default_origin).rstrip("/")
    try:
        session = stripe.checkout.Session.create(
            api_key=settings.stripe_secret_key,
            payment_method_types=["card"],
            line_items=[{
                "price_data": {
                    "currency": "usd",
                    "product_data": {"name": f"{plan.capitalize()} Plan"},
                    "unit_amount": PLAN_PRICES[plan],
                },
                "quantity": 1,
            }],
            mode="payment",
            success_url=origin + "/success?session_id={CHECKOUT_SESSION_ID}",
            cancel_url=origin + "/cancel",
            client_reference_id=str(user.id),
            metadata={"user_id": str(user.id), "plan": plan},
        )
    except stripe.InvalidRequestError as e:
        logger.warning("Stripe rejected checkout for user %s: %s", user.id, e)
        raise ExternalServiceError(e.user_message or str(e), status_code=400)
    except stripe.StripeError as e:
        logger.error("Stripe checkout failed for user %s: %s", user.id, e)
        raise ExternalServiceError(e.user_message or "Payment provider error")

    logger.info("Created checkout session %s (%s) for user %s", session.id, plan, user.id)
    return session.id


def verify_event(settings: Settings, payload: bytes, signature: Optional[str]) -> dict:
    """Check the Stripe-Signature header before trusting anything in the payload."""
    if not settings.stripe_webhook_secret:
        raise ValidationError("Webhook Error: webhook secret not configured")
    if not signature:
        raise ValidationError("Webhook Error: missing Stripe-Signature header")
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            text, signature, settings.stripe_webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
        )
        event = json.loads(text)
    except stripe.SignatureVerificationError as e:
        logger.warning("Rejected Stripe webhook with bad signature")
        raise ValidationError(f"Webhook Error: {e.user_message or 'signature verification failed'}")
    except ValueError:
        raise ValidationError("Webhook Error: invalid payload")
    if not isinstance(event, dict):
        raise ValidationError("Webhook Error: invalid payload")
    return event


def handle_webhook(settings: Settings, db: Session, payload: bytes, signature: Optional[str]) -> Tuple[str, bool]:
    """Verify + process a Stripe webhook.

    Returns: (event_type, applied)
    """
    event = verify_event(settings, payload, signature)
    event_type = str(event.get("type") or "")
    if event_type != COMPLETED_EVENT:
        logger.info("Ignoring Stripe event %s", event_type)
        return event_type, False
    return event_type, _apply_checkout_completed(db, event)


def _apply_checkout_completed(db: Session, event: dict) -> bool:
    data = event.get("data")
    session = data.get("object") if isinstance(data, dict) else None
    if not isinstance(session, dict):
        raise ValidationError("Webhook Error: invalid payload")
    metadata = session.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    session_id = session.get("id")
    user_id = session.get("client_reference_id") or metadata.get("user_id")

    if session_id and db.get(ProcessedCheckout, session_id) is not None:
        logger.info("Checkout session %s already applied", session_id)
        return False

    user = store.find_by_id(db, user_id)
    if user is None:
        logger.warning("checkout.session.completed: could not map session %s to a user", session_id)
        return False

    plan = metadata.get("plan")
    tier = plan if plan in PLAN_PRICES else FALLBACK_TIER
    user.subscription = tier
    if session_id:
        db.add(ProcessedCheckout(session_id=session_id, user_id=user.id, event_id=event.get("id"), plan=tier))
    try:
        db.commit()
    except IntegrityError:
        # concurrent delivery of the same session recorded it first
        db.rollback()
        return False
    logger.info("User %s subscription set to %s", user.id, tier)
    return True


class SubscribeIn(BaseModel):
    plan: Literal["free", "pro", "enterprise"]


@router.post("/subscribe")
def subscribe(
    payload: SubscribeIn,
    request: Request,
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    session_id = create_checkout(settings, user, payload.plan, request.headers.get("origin"))
    return {"success": True, "sessionId": session_id, "plan": payload.plan}


@router.post("/webhook/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db), settings: Settings = Depends(get_settings)):
    payload = await request.body()
    signature = request.headers.get("stripe-signature")
    await run_in_threadpool(handle_webhook, settings, db, payload, signature)
    return {"received": True}
