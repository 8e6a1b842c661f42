"""Booking lifecycle: create, edit, cancel and payment-driven confirmation.

A booking carries two correlated but independent fields: ``status``
(pending, confirmed, cancelled) and ``payment_status`` (unpaid, pending,
paid, failed). Availability is re-checked inside the same transaction that
writes the booking, with the room row locked, so two overlapping requests
for one room are serialized.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .availability import calculate_total_price, is_room_available
from .exceptions import Conflict, Forbidden, NotFound, ValidationFailed
from .identity import STAFF, format_phone_number, get_identity_provider, resolve_guest
from .models import Booking, Payment, Room

logger = logging.getLogger(__name__)

_PAYMENT_STATUS_FOR_BOOKING = {
    Booking.PaymentStatus.PAID: Payment.Status.SUCCESS,
    Booking.PaymentStatus.FAILED: Payment.Status.FAILED,
}


def validate_stay(check_in, check_out):
    if check_in is None or check_out is None:
        raise ValidationFailed("Check-in and check-out dates are required", code="INVALID_DATES")
    if check_out <= check_in:
        raise ValidationFailed("Check-out must be after check-in", code="INVALID_CHECKOUT")


def narration_for(booking):
    return f"Booking {booking.pk}"


def room_unavailable():
    return Conflict("Room is unavailable for the selected dates", code="ROOM_UNAVAILABLE")


def apply_payment_outcome(booking, succeeded):
    """Move a booking after one of its payments settled.

    Must run inside the transaction that settles the payment.
    """
    if succeeded:
        booking.payment_status = Booking.PaymentStatus.PAID
        if booking.status == Booking.Status.CANCELLED:
            # the room may have been re-let since the cancellation
            logger.warning("Payment settled for cancelled booking %s; left cancelled", booking.pk)
        else:
            booking.status = Booking.Status.CONFIRMED
    elif booking.payment_status != Booking.PaymentStatus.PAID:
        booking.payment_status = Booking.PaymentStatus.FAILED
    else:
        return booking
    booking.save(update_fields=["status", "payment_status", "updated_at"])
    return booking


class BookingService:
    def __init__(self, identity, payments, clock=timezone.now):
        self.identity = identity
        self.payments = payments
        self.clock = clock

    @classmethod
    def from_settings(cls):
        from .payments import PaymentReconciler

        return cls(identity=get_identity_provider(), payments=PaymentReconciler.from_settings())

    def create(self, data, principal):
        """Reserve a room, record the payment and prompt the payer.

        Returns ``(booking, payment, message)``. A gateway failure does not
        undo the booking; it only changes the message.
        """
        check_in, check_out = data.get("check_in"), data.get("check_out")
        validate_stay(check_in, check_out)

        method = data.get("payment_method") or Booking.PaymentMethod.MOBILE_MONEY
        received_by = data.get("received_by") or ""
        if method == Booking.PaymentMethod.CASH and not received_by:
            raise ValidationFailed('Cash payment requires "received_by" staff.', code="CASH_REQUIRES_RECEIVER")

        room_id = data["room_id"]
        if not Room.objects.filter(pk=room_id).exists():
            raise NotFound("Room not found", code="ROOM_NOT_FOUND")
        # fail fast before any account is created; re-checked under lock below
        if not is_room_available(room_id, check_in, check_out):
            raise room_unavailable()

        guest_phone = format_phone_number(data.get("guest_phone"))
        payment_phone = format_phone_number(data.get("payment_phone")) if method == Booking.PaymentMethod.MOBILE_MONEY else None

        status = Booking.Status.PENDING
        payment_status = Booking.PaymentStatus.UNPAID
        if principal.has_role(*STAFF):
            status = data.get("status") or status
            payment_status = data.get("payment_status") or payment_status

        with transaction.atomic():
            room = Room.objects.select_for_update().get(pk=room_id)
            if not is_room_available(room.pk, check_in, check_out, lock=True):
                raise room_unavailable()
            # only the request that won the room registers a new guest account
            guest = resolve_guest(self.identity, data["guest_name"], guest_phone, data.get("guest_email"))

            total_price = calculate_total_price(room.price, check_in, check_out)
            booking = Booking.objects.create(
                room=room,
                user=guest,
                guest_name=data["guest_name"],
                guest_phone=guest_phone or "",
                guest_email=data.get("guest_email") or "",
                guests=data.get("guests") or 1,
                check_in=check_in,
                check_out=check_out,
                total_price=total_price,
                status=status,
                payment_status=payment_status,
                payment_method=method,
                payment_phone=payment_phone or "",
                received_by=received_by if method == Booking.PaymentMethod.CASH else "",
                created_by=principal.uid,
            )
            payment = self.payments.create_pending(
                booking,
                guest,
                amount=total_price,
                phone=payment_phone or guest_phone,
                provider=method,
                status=_PAYMENT_STATUS_FOR_BOOKING.get(payment_status, Payment.Status.PENDING),
            )
        logger.info("Booking %s created for room %s by %s", booking.pk, room.room_number, principal.uid)

        message = "Booking created successfully."
        if method == Booking.PaymentMethod.MOBILE_MONEY and payment_phone and payment.status == Payment.Status.PENDING:
            if self.payments.submit(payment, narration_for(booking)):
                message = "Booking created. Payment prompt sent to phone."
            else:
                message = "Booking created, but payment prompt failed. Try manually."
            booking.refresh_from_db()
        return booking, payment, message

    def update(self, booking_id, data, principal):
        """Administrative edit.

        Changing the room or either date re-runs the overlap check against
        the effective values, the untouched date keeping its stored value.
        """
        current_room_id = Booking.objects.filter(pk=booking_id).values_list("room_id", flat=True).first()
        if current_room_id is None:
            raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")

        with transaction.atomic():
            # lock order everywhere: rooms, then bookings, then payments
            room_ids = sorted({current_room_id, data.get("room_id", current_room_id)})
            rooms = {room.pk: room for room in Room.objects.select_for_update().filter(pk__in=room_ids).order_by("pk")}
            booking = Booking.objects.select_for_update().filter(pk=booking_id).first()
            if booking is None:
                raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")

            room_id = data.get("room_id", booking.room_id)
            check_in = data.get("check_in", booking.check_in)
            check_out = data.get("check_out", booking.check_out)
            status = data.get("status", booking.status)
            stay_changed = any(key in data for key in ("room_id", "check_in", "check_out"))
            reopened = booking.status == Booking.Status.CANCELLED and status != Booking.Status.CANCELLED

            if stay_changed:
                validate_stay(check_in, check_out)
                # the booking may have moved rooms since it was first read
                room = rooms.get(room_id) or Room.objects.select_for_update().filter(pk=room_id).first()
                if room is None:
                    raise NotFound("Room not found", code="ROOM_NOT_FOUND")
            else:
                room = booking.room

            if (stay_changed or reopened) and status in Booking.BLOCKING_STATUSES:
                if not is_room_available(room.pk, check_in, check_out, exclude_booking_id=booking.pk, lock=True):
                    raise room_unavailable()

            if stay_changed:
                booking.room = room
                booking.check_in = check_in
                booking.check_out = check_out
                booking.total_price = calculate_total_price(room.price, check_in, check_out)
                Payment.objects.filter(booking=booking, status=Payment.Status.PENDING).update(
                    amount=booking.total_price, updated_at=self.clock()
                )

            for field in ("guest_name", "guest_email", "status", "payment_method", "payment_status", "received_by"):
                if field in data:
                    setattr(booking, field, data[field])
            for field in ("guest_phone", "payment_phone"):
                if field in data:
                    setattr(booking, field, format_phone_number(data[field]) or "")
            if "guests" in data:
                booking.guests = data["guests"]

            if booking.payment_method == Booking.PaymentMethod.CASH and not booking.received_by:
                raise ValidationFailed('Cash payment requires "received_by" staff.', code="CASH_REQUIRES_RECEIVER")

            booking.save()
        logger.info("Booking %s updated by %s", booking.pk, principal.uid)
        return booking

    def cancel(self, booking_id, principal):
        booking = Booking.objects.select_related("user").filter(pk=booking_id).first()
        if booking is None:
            raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
        if not principal.has_role(*STAFF) and booking.user.uid != principal.uid:
            raise Forbidden("You can only cancel your own bookings")
        if booking.status != Booking.Status.CANCELLED:
            booking.status = Booking.Status.CANCELLED
            booking.save(update_fields=["status", "updated_at"])
            logger.info("Booking %s cancelled by %s", booking.pk, principal.uid)
        return booking
