"""
Billing API routes.

- POST /api/stripe/webhook: Stripe subscription webhooks

Checkout and portal sessions are created by the web app.
"""
from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool

from buildix.features.billing.service import process_webhook_event


router = APIRouter(prefix="/api/stripe", tags=["billing"])


@router.post("/webhook")
async def stripe_webhook(request: Request):
    """
    Handle Stripe webhook (signature verified, idempotent per event id).

    Errors:
        400: Missing/invalid signature or payload
        503: Billing disabled (Stripe keys not set)
        500: Event could not be applied (Stripe retries it)
    """
    body = await request.body()
    result = await run_in_threadpool(process_webhook_event, dict(request.headers), body)
    return {"received": True, "event_id": result.event_id, "duplicate": result.duplicate}
