"""
Payment gateway stub.

Real card processing is out of scope. Free trials are confirmed without a
charge; paid bookings are approved and given a reference so the creation
flow can proceed.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from carenest.core.booking.models import PaymentStatus, SessionRequest

logger = logging.getLogger(__name__)


class PaymentReceipt(BaseModel):
    """Outcome of a payment confirmation."""

    confirmed: bool
    amount: Decimal = Field(ge=0)
    payment_status: PaymentStatus = PaymentStatus.PENDING
    reference: Optional[str] = None
    method: str = "card"


class PaymentGateway:
    """Confirms payment for a session request."""

    def __init__(self, method: str = "card"):
        """Initialize gateway.

        Args:
            method: Payment method label recorded on receipts
        """
        self.method = method

    async def confirm_payment(self, request: SessionRequest) -> PaymentReceipt:
        """Confirm payment for a session request.

        Args:
            request: Session creation request carrying the fee

        Returns:
            PaymentReceipt; free trials are confirmed with amount 0
        """
        if request.is_free_trial:
            logger.info(
                f"Free trial for patient {request.patient_id} with therapist "
                f"{request.therapist_id}; no charge"
            )
            return PaymentReceipt(
                confirmed=True,
                amount=Decimal("0"),
                payment_status=PaymentStatus.PENDING,
                method="free_trial",
            )

        reference = f"pay_{uuid4().hex[:16]}"
        logger.info(f"Payment {reference} approved for {request.session_fee}")
        return PaymentReceipt(
            confirmed=True,
            amount=request.session_fee,
            payment_status=PaymentStatus.PAID,
            reference=reference,
            method=self.method,
        )


# Singleton
_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Get singleton PaymentGateway."""
    global _gateway
    if _gateway is None:
        _gateway = PaymentGateway()
    return _gateway
