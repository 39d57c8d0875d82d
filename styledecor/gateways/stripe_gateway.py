"""
Integración con Stripe Payment Intents.
"""
import logging
from typing import Any, Dict

import stripe
from starlette.concurrency import run_in_threadpool

from ..errors import GatewayError
from . import PaymentGateway, PaymentIntent

logger = logging.getLogger(__name__)


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(self, api_key: str):
        if not api_key:
            raise GatewayError("STRIPE_SECRET_KEY is not configured")
        self.api_key = api_key

    async def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, Any]) -> PaymentIntent:
        # El SDK de Stripe es síncrono: se ejecuta fuera del event loop
        try:
            intent = await run_in_threadpool(
                stripe.PaymentIntent.create,
                api_key=self.api_key,
                amount=amount_minor,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                metadata={k: str(v) for k, v in metadata.items()},
            )
        except stripe.StripeError as e:
            logger.error(f"Error creating Stripe payment intent: {e}")
            raise GatewayError("Failed to create payment intent") from e
        return PaymentIntent(client_secret=intent.client_secret, intent_id=intent.id)
