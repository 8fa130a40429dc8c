"""Dodo Payments gateway - payment links for the patient share of an invoice"""

import logging
from typing import Optional

from dodopayments import AsyncDodoPayments  # type: ignore

from ...config import (
    DODO_ADHOC_PRODUCT_ID,
    DODO_PAYMENTS_API_KEY,
    DODO_PAYMENTS_ENVIRONMENT,
    FRONTEND_URL,
)

logger = logging.getLogger(__name__)


def normalize_dodo_environment(env: Optional[str]) -> str:
    """Normalize Dodo environment value to expected format"""
    value = (env or "test_mode").strip().lower()
    if value in {"live", "production", "prod"}:
        return "live_mode"
    if value in {"test", "sandbox", "staging", "dev", "development"}:
        return "test_mode"
    if value in {"test_mode", "live_mode"}:
        return value
    logger.warning(f"Unknown DODO environment '{env}', defaulting to test_mode")
    return "test_mode"


class PaymentGateway:
    """Creates hosted checkout sessions; holds no state beyond the SDK client"""

    def __init__(self):
        self.api_key = DODO_PAYMENTS_API_KEY
        self.environment = normalize_dodo_environment(DODO_PAYMENTS_ENVIRONMENT)
        self.product_id = DODO_ADHOC_PRODUCT_ID
        self.client = None

        if not self.api_key:
            logger.warning("DODO_PAYMENTS_API_KEY not set; invoice payment links will fail until configured")
        else:
            try:
                self.client = AsyncDodoPayments(
                    bearer_token=self.api_key,
                    environment=self.environment,
                )
                logger.info(f"Dodo Payments client initialized (env={self.environment})")
            except Exception as e:
                logger.error(f"Failed to initialize Dodo client (env={self.environment}): {e}")
                self.client = None

    def is_available(self) -> bool:
        return self.client is not None and bool(self.product_id)

    async def create_payment_link(
        self,
        invoice_id: str,
        invoice_number: str,
        amount_cents: int,
        customer_email: Optional[str],
        customer_name: Optional[str] = None,
    ) -> dict:
        """
        Create a checkout session charging ``amount_cents`` for one invoice.

        Returns:
            {"url": checkout url, "session_id": processor session id}

        Raises:
            Exception: gateway not configured or the processor rejected the request
        """
        if not self.is_available():
            raise Exception("Dodo Payments client not initialized")

        session_params = {
            # Adhoc product: the amount is set per checkout
            "product_cart": [{"product_id": self.product_id, "quantity": 1, "amount": amount_cents}],
            "return_url": f"{FRONTEND_URL}/invoices/{invoice_id}?checkout=success",
            "metadata": {"invoice_id": invoice_id, "invoice_number": invoice_number},
        }
        if customer_email:
            session_params["customer"] = {"email": customer_email, "name": customer_name or customer_email}

        try:
            response = await self.client.checkout_sessions.create(**session_params)
        except Exception as e:
            logger.error(f"Failed to create checkout session for invoice {invoice_number}: {e}")
            raise

        url = getattr(response, "checkout_url", None)
        session_id = getattr(response, "session_id", None)
        logger.info(f"💳 Checkout session {session_id} created for invoice {invoice_number}")
        return {"url": url, "session_id": session_id}


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Lazily built process-wide gateway"""
    global _gateway
    if _gateway is None:
        _gateway = PaymentGateway()
    return _gateway
