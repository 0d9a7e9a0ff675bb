from typing import Literal
from pydantic import BaseModel, Field


class PaymentSignal(BaseModel):
    """Payment confirmation delivered by the payment gateway."""
    reference: str = Field(..., min_length=1, max_length=100, description="Payment/order reference")
    status: Literal["success", "failed"]
    payment_id: str | None = None
    signature: str | None = None


class PaymentAck(BaseModel):
    """Acknowledgement of a payment signal."""
    reference: str
    accepted: bool
