"""Administrative room edits, including the manual status override.

Forcing a room to ``Available`` or ``Maintenance`` ends every stay in
progress in that room: the booking's checkout is moved to the moment of the
edit. The truncation and the room update commit together or not at all.
"""

import logging

from django.db import transaction
from django.utils import timezone

from .exceptions import Conflict, NotFound
from .models import Booking, Room

logger = logging.getLogger(__name__)

OVERRIDE_STATUSES = (Room.Status.AVAILABLE, Room.Status.MAINTENANCE)


def truncate_stays_in_progress(room, now):
    """Cut every in-progress blocking booking of ``room`` short at ``now``."""
    in_progress = Booking.objects.select_for_update().filter(
        room=room,
        status__in=Booking.BLOCKING_STATUSES,
        check_in__lte=now,
        check_out__gt=now,
    )
    ended = []
    for booking in in_progress:
        booking.check_out = now
        booking.save(update_fields=["check_out", "updated_at"])
        ended.append(booking.pk)
    return ended


def update_room(room_id, changes, principal, now=None):
    """Apply ``changes`` to a room; returns ``(room, ended_booking_ids)``."""
    now = now or timezone.now()
    with transaction.atomic():
        room = Room.objects.select_for_update().filter(pk=room_id).first()
        if room is None:
            raise NotFound("Room not found", code="ROOM_NOT_FOUND")

        number = changes.get("room_number")
        if number and number != room.room_number and Room.objects.filter(room_number=number).exists():
            raise Conflict(f"Room {number} already exists.", code="DUPLICATE_ROOM_NUMBER")

        ended = []
        if changes.get("status") in OVERRIDE_STATUSES:
            ended = truncate_stays_in_progress(room, now)
            if ended:
                logger.info(
                    "Auto-ended %d bookings for room %s due to status change to %s",
                    len(ended),
                    room.room_number,
                    changes["status"],
                )

        for field, value in changes.items():
            setattr(room, field, value)
        room.updated_by = principal.uid
        room.save()
    return room, ended
