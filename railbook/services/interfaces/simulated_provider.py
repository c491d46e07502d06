"""
Simulated payment provider - no network, deterministic outcomes.
"""

import uuid
from decimal import Decimal

from railbook.schemas.payment import CardDetails
from railbook.services.interfaces.payment_provider import PaymentProvider, ChargeOutcome, RefundOutcome

# Well-known test card numbers
DECLINED_CARD = "4000000000000002"
REFUND_FAILS_CARD = "4000000000005126"


class SimulatedProvider(PaymentProvider):
    """
    Always charges successfully except for DECLINED_CARD.
    Refunds succeed unless the charge was made with REFUND_FAILS_CARD or
    `fail_refunds` is set.

    Use when:
    - Local development
    - Tests and load tests that must not touch a real provider
    """

    name = "simulated"

    def __init__(self, fail_refunds: bool = False):
        self.fail_refunds = fail_refunds
        self._refund_blocked: set[str] = set()

    async def charge(self, amount: Decimal, currency: str, card: CardDetails, metadata: dict[str, str]) -> ChargeOutcome:
        provider_ref = f"sim_pi_{uuid.uuid4().hex[:16]}"
        if card.card_number == DECLINED_CARD:
            return ChargeOutcome(succeeded=False, provider_ref=provider_ref, provider_message="card_declined")
        if card.card_number == REFUND_FAILS_CARD:
            self._refund_blocked.add(provider_ref)
        return ChargeOutcome(succeeded=True, provider_ref=provider_ref)

    async def refund(self, provider_ref: str, amount: Decimal, metadata: dict[str, str]) -> RefundOutcome:
        if self.fail_refunds or provider_ref in self._refund_blocked:
            return RefundOutcome(succeeded=False, provider_message="refund_failed")
        return RefundOutcome(succeeded=True, refund_ref=f"sim_re_{uuid.uuid4().hex[:16]}")
