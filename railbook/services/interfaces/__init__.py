"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment_provider import PaymentProvider, ChargeOutcome, RefundOutcome
from .simulated_provider import SimulatedProvider

__all__ = ['PaymentProvider', 'ChargeOutcome', 'RefundOutcome', 'SimulatedProvider']
