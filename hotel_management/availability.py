"""Room-interval overlap checks and stay pricing.

Stays are half-open intervals ``[check_in, check_out)``: a booking that ends
on the day another begins does not conflict with it.
"""

import math
from datetime import timedelta
from decimal import Decimal

from django.db.models import Exists, OuterRef

from .models import Booking, Room

ONE_NIGHT = timedelta(days=1)


def intervals_overlap(a_start, a_end, b_start, b_end):
    return a_start < b_end and a_end > b_start


def is_available(start, end, bookings, exclude_booking_id=None):
    """Decide availability of ``[start, end)`` against existing bookings.

    Only bookings that still hold the room (pending or confirmed) are
    considered; ``exclude_booking_id`` lets an in-place edit be re-validated
    against everything except itself.
    """
    for booking in bookings:
        if exclude_booking_id is not None and booking.pk == exclude_booking_id:
            continue
        if not booking.is_blocking:
            continue
        if intervals_overlap(start, end, booking.check_in, booking.check_out):
            return False
    return True


def is_room_available(room_id, start, end, exclude_booking_id=None, lock=False):
    """Check a room against its stored bookings.

    With ``lock=True`` the booking rows are read with ``select_for_update``;
    callers must then be inside ``transaction.atomic()``.
    """
    bookings = Booking.objects.filter(room_id=room_id, status__in=Booking.BLOCKING_STATUSES)
    if lock:
        bookings = bookings.select_for_update()
    return is_available(start, end, bookings, exclude_booking_id=exclude_booking_id)


def available_rooms(check_in, check_out, guests=None):
    overlap = Exists(
        Booking.objects.filter(
            room=OuterRef("pk"),
            status__in=Booking.BLOCKING_STATUSES,
            check_in__lt=check_out,
            check_out__gt=check_in,
        )
    )
    rooms = (
        Room.objects.filter(is_active=True)
        .exclude(status=Room.Status.MAINTENANCE)
        .annotate(has_overlap=overlap)
        .filter(has_overlap=False)
    )
    if guests:
        rooms = rooms.filter(capacity__gte=guests)
    return rooms


def count_nights(start, end):
    """Whole nights charged for a stay, never fewer than one."""
    nights = math.ceil((end - start) / ONE_NIGHT)
    return nights if nights > 0 else 1


def calculate_total_price(price, start, end):
    return Decimal(price) * count_nights(start, end)
