"""In-process stand-ins for the identity provider and the payment gateway.

Both are loaded by dotted path through ``HOTEL_IDENTITY_PROVIDER`` and
``HOTEL_PAYMENT_GATEWAY``; state lives on the class so every instance the
views build shares it. Call ``reset()`` in ``setUp``.
"""

import itertools

from hotel_management.exceptions import Unauthorized
from hotel_management.gateway import GatewayError
from hotel_management.identity import IdentityProvider


class FakeIdentityProvider(IdentityProvider):
    """Tokens look like ``"<role>:<uid>"``; anything else is rejected."""

    created = []
    roles = {}
    _ids = itertools.count(1)

    @classmethod
    def reset(cls):
        cls.created = []
        cls.roles = {}
        cls._ids = itertools.count(1)

    def verify_token(self, token):
        role, sep, uid = token.partition(":")
        if not sep or not uid:
            raise Unauthorized("Unauthorized: Invalid token", code="INVALID_TOKEN")
        return {"uid": uid, "role": role, "email": f"{uid}@example.com"}

    def create_user(self, name, phone=None, email=None):
        uid = f"guest-{next(self._ids)}"
        self.created.append({"uid": uid, "name": name, "phone": phone, "email": email})
        return uid

    def set_role(self, uid, role):
        self.roles[uid] = role


class FakeGateway:
    currency = "UGX"
    requests = []
    error = None

    @classmethod
    def reset(cls):
        cls.requests = []
        cls.error = None

    @classmethod
    def fail_with(cls, message="Payment gateway timed out", retryable=True):
        cls.error = GatewayError(message, retryable=retryable)

    def request_payment(self, amount, msisdn, reference, narration):
        self.requests.append({"amount": amount, "msisdn": msisdn, "reference": reference, "narration": narration})
        if self.error is not None:
            raise self.error
        return {"success": True, "message": "Request payment in progress.", "internal_reference": "R-" + reference}
