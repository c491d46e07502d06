"""
Payment provider interface.
Card networks and provider APIs live behind this seam; the payment service
only sees success/failure plus an opaque provider reference.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from railbook.schemas.payment import CardDetails


@dataclass
class ChargeOutcome:
    succeeded: bool
    provider_ref: Optional[str] = None
    # Provider wording, kept for logs only; never shown to customers
    provider_message: Optional[str] = None


@dataclass
class RefundOutcome:
    succeeded: bool
    refund_ref: Optional[str] = None
    provider_message: Optional[str] = None


class PaymentProvider(ABC):
    """
    Interface for payment providers.

    Implementations:
    - SimulatedProvider: in-process provider for development and tests
    """

    name: str = "abstract"

    @abstractmethod
    async def charge(
        self,
        amount: Decimal,
        currency: str,
        card: CardDetails,
        metadata: dict[str, str],
    ) -> ChargeOutcome:
        """
        Charge a card.

        Args:
            amount: Amount in major currency units
            currency: ISO currency code
            card: Card to charge
            metadata: Booking and user ids for reconciliation on the provider side

        Returns:
            ChargeOutcome; a decline is a normal outcome, not an exception
        """
        pass

    @abstractmethod
    async def refund(
        self,
        provider_ref: str,
        amount: Decimal,
        metadata: dict[str, str],
    ) -> RefundOutcome:
        """
        Refund a previous charge in full.

        Args:
            provider_ref: Reference returned by charge()
            amount: Amount to refund
            metadata: Booking and user ids
        """
        pass
