"""Payment confirmation - Waits for the gateway's success/failure signal."""

import asyncio
import hashlib
import hmac
import logging
from dataclasses import dataclass

from app.exceptions import InvalidTransition, PaymentFailed, PaymentTimeout

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    """Outcome reported by the payment gateway."""
    success: bool
    payment_id: str | None = None


def sign_payment(reference: str, payment_id: str, secret: str) -> str:
    """Hex HMAC-SHA256 of ``reference|payment_id``, as the gateway signs it."""
    message = f"{reference}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(reference: str, payment_id: str | None, signature: str | None, secret: str) -> bool:
    if not payment_id or not signature:
        return False
    return hmac.compare_digest(sign_payment(reference, payment_id, secret), signature)


class PaymentConfirmationBroker:
    """Tracks one future per outstanding payment reference."""

    def __init__(self):
        self._pending: dict[str, asyncio.Future] = {}

    def register(self, reference: str) -> asyncio.Future:
        """Start waiting for a reference. Must run before the slot hold is committed."""
        existing = self._pending.get(reference)
        if existing is not None and not existing.done():
            raise InvalidTransition(f"Payment {reference} is already awaiting confirmation")
        future = asyncio.get_running_loop().create_future()
        self._pending[reference] = future
        return future

    def is_pending(self, reference: str) -> bool:
        future = self._pending.get(reference)
        return future is not None and not future.done()

    def resolve(self, reference: str, success: bool, payment_id: str | None = None) -> bool:
        """Deliver a signal. Returns False when nobody is waiting for it."""
        future = self._pending.get(reference)
        if future is None or future.done():
            logger.warning("Payment signal for unknown reference %s ignored", reference)
            return False
        future.set_result(PaymentResult(success=success, payment_id=payment_id))
        logger.info("Payment %s resolved (success=%s)", reference, success)
        return True

    def discard(self, reference: str) -> None:
        """Stop tracking a reference; a current waiter sees a failed payment."""
        future = self._pending.pop(reference, None)
        if future is not None and not future.done():
            future.set_result(PaymentResult(success=False))

    async def wait(self, reference: str, timeout: float) -> PaymentResult:
        """Wait for the registered reference; raise PaymentTimeout or PaymentFailed."""
        future = self._pending.get(reference)
        if future is None:
            raise InvalidTransition(f"Payment {reference} was never registered")
        try:
            result = await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise PaymentTimeout(f"No confirmation for payment {reference} within {timeout}s")
        finally:
            if self._pending.get(reference) is future:
                del self._pending[reference]

        if not result.success:
            raise PaymentFailed(f"Payment {reference} failed")
        return result


payment_broker = PaymentConfirmationBroker()
