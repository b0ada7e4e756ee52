# barbershop/routers/webhook_routes.py

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from barbershop.booking import apply_payment_event
from barbershop.db import get_session
from barbershop.deps import get_now
from barbershop.errors import BookingError
from barbershop.notifications import NotificationSender, get_notifier
from barbershop.payments import PaymentProvider, WebhookSignatureError, get_payment_provider

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/webhook",
    tags=["webhook"],
)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    session: Session = Depends(get_session),
    payments: PaymentProvider = Depends(get_payment_provider),
    notifier: NotificationSender = Depends(get_notifier),
    now: datetime = Depends(get_now),
):
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    # Signature is computed over the raw body, not the parsed JSON
    payload = await request.body()
    try:
        event = payments.parse_event(payload, stripe_signature)
    except WebhookSignatureError as exc:
        logger.warning("webhook_rejected error=%s", exc)
        raise HTTPException(status_code=400, detail=str(exc))

    if event is None:
        return {"received": True}

    try:
        await run_in_threadpool(apply_payment_event, session, event, now, notifier)
    except BookingError as exc:
        # Acknowledge anyway: the provider would otherwise redeliver forever.
        logger.warning(
            "webhook_event_not_applied kind=%s reservation_id=%s code=%s detail=%s",
            event.kind.value,
            event.reservation_id,
            exc.code,
            exc.message,
        )
        return {"received": True, "applied": False, "code": exc.code}
    return {"received": True, "applied": True}
