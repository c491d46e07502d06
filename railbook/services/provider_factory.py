"""
Payment provider factory.
Configures which payment provider the payment service charges through.
"""

from typing import Optional

from railbook.services.interfaces.payment_provider import PaymentProvider
from railbook.services.interfaces.simulated_provider import SimulatedProvider
from railbook.core.config import get_settings


def get_provider_for_settings() -> PaymentProvider:
    """
    Build the configured payment provider.

    Selected via the PAYMENT_PROVIDER env var. Only the simulated provider
    ships with this service; real providers plug in here.
    """
    provider = get_settings().PAYMENT_PROVIDER

    if provider == 'simulated':
        return SimulatedProvider()
    raise ValueError(f"Unknown payment provider: {provider}")


# Singleton instance
_provider: Optional[PaymentProvider] = None


def get_payment_provider() -> PaymentProvider:
    """Get payment provider singleton."""
    global _provider
    if _provider is None:
        _provider = get_provider_for_settings()
    return _provider
