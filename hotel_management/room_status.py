"""Read-time occupancy projection for rooms.

Occupancy is never persisted: it is derived from the bookings that hold a
room at the moment of the query. A manual ``Maintenance`` status wins over
the computed value; any other stored status is replaced.
"""

import re
from collections import defaultdict

from .models import Booking, Room

_DIGITS = re.compile(r"(\d+)")


def room_number_key(room_number):
    """Sort key that orders "2" before "10" and "101A" before "101B"."""
    return [(0, int(part), "") if part.isdigit() else (1, 0, part.lower()) for part in _DIGITS.split(room_number) if part]


def project_status(room, bookings, now):
    """Return ``(status, next_available)`` for ``room`` at ``now``.

    Only the booking covering ``now`` is looked at: a back-to-back booking
    that starts right at its checkout does not push ``next_available``
    further out.
    """
    if room.status == Room.Status.MAINTENANCE:
        return room.status, None
    for booking in sorted(bookings, key=lambda b: b.check_in):
        if booking.is_blocking and booking.check_in <= now < booking.check_out:
            return Room.Status.OCCUPIED, booking.check_out
    return Room.Status.AVAILABLE, None


def active_bookings_by_room(now, room_ids=None):
    bookings = Booking.objects.filter(status__in=Booking.BLOCKING_STATUSES, check_out__gt=now)
    if room_ids is not None:
        bookings = bookings.filter(room_id__in=room_ids)
    grouped = defaultdict(list)
    for booking in bookings.only("id", "room_id", "status", "check_in", "check_out"):
        grouped[booking.room_id].append(booking)
    return grouped


def project_rooms(rooms, now):
    """Attach ``projected_status`` and ``next_available`` to each room."""
    rooms = list(rooms)
    grouped = active_bookings_by_room(now, room_ids=[room.pk for room in rooms])
    for room in rooms:
        room.projected_status, room.next_available = project_status(room, grouped.get(room.pk, ()), now)
    return rooms
