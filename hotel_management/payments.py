"""Two-phase payment flow: local record first, gateway second, webhook last.

A Payment is always persisted in ``pending`` with a fresh customer reference
before the gateway is called, so a lost gateway response still leaves a
trail. The gateway echoes the reference back in its callback; that reference
is the only key used to settle a payment. Once a payment reaches ``success``
or ``failed`` it never changes again: the first terminal status wins.
"""

import enum
import logging
import secrets
import time

from django.db import IntegrityError, transaction
from django.utils import timezone

from .bookings import apply_payment_outcome, narration_for
from .exceptions import Conflict, Forbidden, GatewayFailure, NotFound, ValidationFailed
from .gateway import GatewayError, get_payment_gateway
from .identity import STAFF, format_phone_number
from .models import Booking, Payment, UserProfile

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = {"success", "successful", "paid"}
FAILURE_STATUSES = {"failed", "failure", "declined", "cancelled", "rejected", "error", "expired"}


class CustomerReference(str):
    """Caller-generated correlation key sent to, and echoed back by, the gateway."""

    PREFIX = "TX-"

    @classmethod
    def generate(cls):
        return cls(f"{cls.PREFIX}{int(time.time() * 1000)}-{secrets.token_hex(4)}")

    @classmethod
    def parse(cls, value):
        value = (value or "").strip()
        if not value:
            raise ValidationFailed("Missing Ref", code="MISSING_REFERENCE")
        return cls(value)


class WebhookOutcome(enum.Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    UNMATCHED = "unmatched"


class PaymentReconciler:
    reference_attempts = 3

    def __init__(self, gateway, clock=timezone.now):
        self.gateway = gateway
        self.clock = clock

    @classmethod
    def from_settings(cls):
        return cls(gateway=get_payment_gateway())

    def create_pending(self, booking, user, amount, phone, provider, status=Payment.Status.PENDING):
        currency = getattr(self.gateway, "currency", "")
        for attempt in range(1, self.reference_attempts + 1):
            reference = CustomerReference.generate()
            try:
                with transaction.atomic():
                    return Payment.objects.create(
                        booking=booking,
                        user=user,
                        amount=amount,
                        currency=currency,
                        provider=provider,
                        phone=phone or "",
                        status=status,
                        customer_reference=reference,
                        paid_at=self.clock() if status == Payment.Status.SUCCESS else None,
                    )
            except IntegrityError:
                if attempt == self.reference_attempts:
                    raise
                logger.warning("Customer reference collision on %s, regenerating", reference)

    def submit(self, payment, narration):
        """Send ``payment`` to the gateway; returns False if submission failed."""
        try:
            self.gateway.request_payment(payment.amount, payment.phone, payment.customer_reference, narration)
        except GatewayError as exc:
            logger.error("Payment submission failed ref=%s: %s", payment.customer_reference, exc)
            changes = {"failure_reason": str(exc), "updated_at": self.clock()}
            # a timed out or unreachable gateway may still have charged the payer;
            # only an explicit rejection closes the payment, the callback settles the rest
            if not exc.retryable:
                changes["status"] = Payment.Status.FAILED
            # a callback may already have settled the payment
            Payment.objects.filter(pk=payment.pk, status=Payment.Status.PENDING).update(**changes)
            payment.refresh_from_db()
            return False

        Booking.objects.filter(
            pk=payment.booking_id,
            payment_status__in=(Booking.PaymentStatus.UNPAID, Booking.PaymentStatus.FAILED),
        ).update(payment_status=Booking.PaymentStatus.PENDING, updated_at=self.clock())
        logger.info("Payment prompt sent ref=%s", payment.customer_reference)
        return True

    def initiate(self, booking_id, phone, principal, amount=None):
        """Start a new payment attempt for an existing booking.

        Each attempt is a new Payment with a new reference; earlier attempts
        are left as they are.
        """
        booking = Booking.objects.select_related("user").filter(pk=booking_id).first()
        if booking is None:
            raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
        if not principal.has_role(*STAFF) and booking.user.uid != principal.uid:
            raise Forbidden("You can only pay for your own bookings")
        if booking.status == Booking.Status.CANCELLED:
            raise Conflict("Booking is cancelled", code="BOOKING_CANCELLED")
        if booking.payment_status == Booking.PaymentStatus.PAID:
            raise Conflict("Booking is already paid", code="BOOKING_ALREADY_PAID")

        msisdn = format_phone_number(phone)
        if not msisdn:
            raise ValidationFailed("Missing details", code="VALIDATION_ERROR", details={"missingFields": ["phoneNumber"]})
        amount = booking.total_price if amount is None else amount
        if amount <= 0:
            raise ValidationFailed("Amount must be positive", code="INVALID_AMOUNT")

        payer = UserProfile.objects.filter(uid=principal.uid).first() or booking.user
        payment = self.create_pending(booking, payer, amount, msisdn, provider="mobile_money")
        if not self.submit(payment, narration_for(booking)):
            raise GatewayFailure("Failed to trigger mobile money prompt", details={"paymentId": payment.pk})
        return payment

    def _lock(self, **lookup):
        """Lock the payment matching ``lookup`` together with its booking.

        Rows are always locked booking first, then payment, the same order
        booking edits use. Must run inside ``transaction.atomic()``.
        """
        booking_id = Payment.objects.filter(**lookup).values_list("booking_id", flat=True).first()
        if booking_id is None:
            return None, None
        booking = Booking.objects.select_for_update().get(pk=booking_id)
        payment = Payment.objects.select_for_update().get(**lookup)
        return payment, booking

    def handle_webhook(self, payload):
        """Settle a payment from the gateway callback.

        Unknown references are acknowledged without writing anything, so the
        gateway stops retrying.
        """
        reference = CustomerReference.parse(payload.get("customer_reference"))
        status = (payload.get("status") or "").strip().lower()

        with transaction.atomic():
            payment, booking = self._lock(customer_reference=reference)
            if payment is None:
                logger.warning("Webhook: Ref not found %s", reference)
                return WebhookOutcome.UNMATCHED

            if status in SUCCESS_STATUSES:
                succeeded = True
            elif status in FAILURE_STATUSES:
                succeeded = False
            else:
                logger.info("Webhook: non-terminal status %r for %s", status, reference)
                return WebhookOutcome.IGNORED

            return self._settle(
                payment,
                booking,
                succeeded,
                external_reference=payload.get("provider_transaction_id") or "",
                reason=payload.get("message") or "",
            )

    def update_status(self, payment_id, status, principal):
        """Administrative settlement of a payment."""
        status = (status or "").strip().lower()
        if not status:
            raise ValidationFailed("Status is required", code="VALIDATION_ERROR")
        if status in SUCCESS_STATUSES:
            succeeded = True
        elif status in FAILURE_STATUSES:
            succeeded = False
        elif status == Payment.Status.PENDING:
            succeeded = None
        else:
            raise ValidationFailed(f"Unknown payment status '{status}'", code="INVALID_STATUS")

        with transaction.atomic():
            payment, booking = self._lock(pk=payment_id)
            if payment is None:
                raise NotFound("Payment not found", code="PAYMENT_NOT_FOUND")
            if succeeded is None:
                if payment.is_final:
                    raise Conflict("Payment is already finalized", code="PAYMENT_FINALIZED")
                return payment
            if payment.is_final and (payment.status == Payment.Status.SUCCESS) != succeeded:
                raise Conflict("Payment is already finalized", code="PAYMENT_FINALIZED")
            self._settle(payment, booking, succeeded, reason=f"Marked failed by {principal.uid}")
        return payment

    def _settle(self, payment, booking, succeeded, external_reference="", reason=""):
        if payment.is_final:
            if (payment.status == Payment.Status.SUCCESS) == succeeded:
                logger.info("Payment %s already %s, nothing to do", payment.customer_reference, payment.status)
                return WebhookOutcome.DUPLICATE
            logger.warning(
                "Ignoring %s for %s: already %s",
                "success" if succeeded else "failure",
                payment.customer_reference,
                payment.status,
            )
            return WebhookOutcome.IGNORED

        if succeeded:
            already_paid = booking.payments.filter(status=Payment.Status.SUCCESS).exclude(pk=payment.pk).exists()
            if already_paid:
                logger.error(
                    "Booking %s already settled by another payment; %s needs a refund",
                    booking.pk,
                    payment.customer_reference,
                )
                payment.status = Payment.Status.FAILED
                payment.failure_reason = "Booking already paid by another payment"
                payment.external_reference = external_reference
                payment.save(update_fields=["status", "failure_reason", "external_reference", "updated_at"])
                return WebhookOutcome.APPLIED
            payment.status = Payment.Status.SUCCESS
            payment.external_reference = external_reference
            payment.failure_reason = ""
            payment.paid_at = self.clock()
            payment.save(update_fields=["status", "external_reference", "failure_reason", "paid_at", "updated_at"])
        else:
            payment.status = Payment.Status.FAILED
            payment.failure_reason = reason or "Payment failed"
            payment.save(update_fields=["status", "failure_reason", "updated_at"])

        apply_payment_outcome(booking, succeeded)
        logger.info("Payment %s settled as %s", payment.customer_reference, payment.status)
        return WebhookOutcome.APPLIED
