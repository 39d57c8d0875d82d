import uuid
from typing import Any, Dict

from . import PaymentGateway, PaymentIntent


class MockGateway(PaymentGateway):
    """
    Demo sin cobro real: devuelve un intent ficticio que el front puede
    "confirmar" directamente contra /payments/confirm-payment.
    """
    name = "mock"

    async def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> PaymentIntent:
        intent_id = f"pi_mock_{uuid.uuid4().hex[:16]}"
        return PaymentIntent(client_secret=f"{intent_id}_secret_mock", intent_id=intent_id)
