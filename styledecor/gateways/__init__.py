"""
Pasarelas de pago. La app elige una según ``settings.payment_gateway``
(igual que antes se elegía el router de billing).
"""
from dataclasses import dataclass
from typing import Any, Dict

from ..config import Settings


@dataclass(frozen=True)
class PaymentIntent:
    client_secret: str
    intent_id: str


class PaymentGateway:
    name = "base"

    async def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> PaymentIntent:
        raise NotImplementedError


def to_minor_units(amount: float) -> int:
    """BDT -> paisa (o la unidad mínima de la moneda)."""
    return int(round(amount * 100))


def get_gateway(settings: Settings) -> PaymentGateway:
    if settings.payment_gateway == "stripe":
        from .stripe_gateway import StripeGateway
        return StripeGateway(settings.stripe_secret_key)
    from .mock_gateway import MockGateway
    return MockGateway()
