"""
Client for the payment service.
"""

from railbook.clients.base import ServiceClient
from railbook.schemas.payment import PaymentRequest, PaymentResult, RefundRequest


class PaymentClient(ServiceClient):
    collaborator = "payment"

    async def process_payment(self, request: PaymentRequest) -> PaymentResult:
        return await self._call("process_payment", "POST", "/charge", body=request, response_model=PaymentResult)

    async def process_refund(self, booking_id: str, user_id: str) -> PaymentResult:
        return await self._call(
            "process_refund",
            "POST",
            "/refund",
            body=RefundRequest(booking_id=booking_id, user_id=user_id),
            response_model=PaymentResult,
        )
