"""Shared route dependencies."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.services.payment_service import PaymentConfirmationBroker


def get_payment_broker(request: Request) -> PaymentConfirmationBroker:
    """The process-wide broker that booking requests wait on."""
    return request.app.state.payment_broker


DBSession = Annotated[AsyncSession, Depends(get_db)]
PaymentBroker = Annotated[PaymentConfirmationBroker, Depends(get_payment_broker)]
