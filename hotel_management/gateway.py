"""Outbound mobile-money gateway (Relworx).

Only the submission leg lives here: the gateway accepts or rejects a payment
request, and reports settlement later through the webhook.
"""

import logging

import requests
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Submission was rejected or never reached the gateway."""

    def __init__(self, message, retryable=True, payload=None):
        super().__init__(message)
        self.retryable = retryable
        self.payload = payload


class RelworxGateway:
    def __init__(self, api_key=None, account_no=None, base_url=None, currency=None, timeout=None, session=None):
        self.api_key = api_key or settings.RELWORX_API_KEY
        self.account_no = account_no or settings.RELWORX_ACCOUNT_NO
        self.base_url = (base_url or settings.RELWORX_BASE_URL).rstrip("/")
        self.currency = currency or settings.RELWORX_CURRENCY
        self.timeout = timeout or settings.RELWORX_TIMEOUT
        self.session = session or requests.Session()

    def request_payment(self, amount, msisdn, reference, narration):
        payload = {
            "account_no": self.account_no,
            "amount": float(amount),
            "currency": self.currency,
            "msisdn": msisdn,
            "reference": reference,
            "narration": narration,
        }
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/vnd.relworx.v2",
        }
        logger.info("Requesting payment ref=%s msisdn=%s amount=%s", reference, msisdn, amount)
        try:
            response = self.session.post(
                f"{self.base_url}/mobile-money/request-payment",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise GatewayError("Payment gateway timed out", retryable=True) from exc
        except requests.exceptions.RequestException as exc:
            raise GatewayError(f"Payment gateway unreachable: {exc}", retryable=True) from exc

        try:
            body = response.json()
        except ValueError:
            body = {"raw": response.text}

        if not response.ok:
            raise GatewayError(
                f"Payment gateway rejected request ({response.status_code})",
                retryable=response.status_code >= 500,
                payload=body,
            )
        if isinstance(body, dict) and body.get("success") is False:
            raise GatewayError(body.get("message") or "Payment gateway rejected request", retryable=False, payload=body)
        return body


def get_payment_gateway():
    return import_string(settings.HOTEL_PAYMENT_GATEWAY)()
