"""Payment routes - Gateway callbacks that resolve pending bookings."""

import logfire
from fastapi import APIRouter, HTTPException

from app.api.deps import PaymentBroker
from app.config import settings
from app.exceptions import InvalidPaymentSignature
from app.schemas.payment import PaymentAck, PaymentSignal
from app.services.payment_service import verify_payment_signature

router = APIRouter()


@router.post("/confirm", response_model=PaymentAck)
async def confirm_payment(signal: PaymentSignal, broker: PaymentBroker):
    """Deliver a payment outcome to the booking waiting on it."""
    success = signal.status == "success"

    # Only successful payments are signed by the gateway
    if success and settings.payment_webhook_secret:
        if not verify_payment_signature(
            signal.reference, signal.payment_id, signal.signature, settings.payment_webhook_secret
        ):
            raise InvalidPaymentSignature()

    if not broker.resolve(signal.reference, success=success, payment_id=signal.payment_id):
        raise HTTPException(status_code=404, detail="No booking is waiting on this payment")

    logfire.info("payment_signal", reference=signal.reference, status=signal.status)
    return PaymentAck(reference=signal.reference, accepted=True)
