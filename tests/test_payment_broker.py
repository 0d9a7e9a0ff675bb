"""Tests for the payment confirmation broker and signature checks."""

import asyncio

import pytest

from app.exceptions import InvalidTransition, PaymentFailed, PaymentTimeout
from app.services.payment_service import (
    PaymentConfirmationBroker,
    sign_payment,
    verify_payment_signature,
)


class TestSignatures:
    """HMAC over reference|payment_id."""

    def test_valid_signature(self):
        signature = sign_payment("order-1", "pay-1", "secret")
        assert verify_payment_signature("order-1", "pay-1", signature, "secret")

    def test_wrong_secret_or_payload(self):
        signature = sign_payment("order-1", "pay-1", "secret")
        assert not verify_payment_signature("order-1", "pay-1", signature, "other")
        assert not verify_payment_signature("order-1", "pay-2", signature, "secret")

    def test_missing_fields(self):
        assert not verify_payment_signature("order-1", None, "abc", "secret")
        assert not verify_payment_signature("order-1", "pay-1", None, "secret")


class TestBroker:
    """Waiting on and resolving references."""

    @pytest.mark.asyncio
    async def test_success(self):
        broker = PaymentConfirmationBroker()
        broker.register("order-1")

        asyncio.get_running_loop().call_later(0.01, broker.resolve, "order-1", True, "pay-1")
        result = await broker.wait("order-1", timeout=1)

        assert result.success is True
        assert result.payment_id == "pay-1"
        assert not broker.is_pending("order-1")

    @pytest.mark.asyncio
    async def test_failure(self):
        broker = PaymentConfirmationBroker()
        broker.register("order-1")
        broker.resolve("order-1", success=False)

        with pytest.raises(PaymentFailed):
            await broker.wait("order-1", timeout=1)

    @pytest.mark.asyncio
    async def test_timeout(self):
        broker = PaymentConfirmationBroker()
        broker.register("order-1")

        with pytest.raises(PaymentTimeout):
            await broker.wait("order-1", timeout=0.01)
        assert not broker.is_pending("order-1")

    @pytest.mark.asyncio
    async def test_unknown_reference(self):
        broker = PaymentConfirmationBroker()
        assert broker.resolve("nobody", success=True) is False
        with pytest.raises(InvalidTransition):
            await broker.wait("nobody", timeout=0.01)

    @pytest.mark.asyncio
    async def test_duplicate_registration(self):
        broker = PaymentConfirmationBroker()
        broker.register("order-1")
        with pytest.raises(InvalidTransition):
            broker.register("order-1")

    @pytest.mark.asyncio
    async def test_discard_fails_waiter(self):
        broker = PaymentConfirmationBroker()
        broker.register("order-1")
        waiter = asyncio.create_task(broker.wait("order-1", timeout=1))
        await asyncio.sleep(0)

        broker.discard("order-1")

        with pytest.raises(PaymentFailed):
            await waiter
