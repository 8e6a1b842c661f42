from datetime import timedelta
from decimal import Decimal

from django.core.cache import cache
from django.test import override_settings
from django.utils import timezone
from rest_framework.test import APITestCase

from hotel_management.models import Booking, Room, UserProfile

from .fakes import FakeGateway, FakeIdentityProvider

FAKES = override_settings(
    HOTEL_IDENTITY_PROVIDER="hotel_management.tests.fakes.FakeIdentityProvider",
    HOTEL_PAYMENT_GATEWAY="hotel_management.tests.fakes.FakeGateway",
    HOTEL_DEFAULT_COUNTRY_CODE="+256",
)


def midnight(days=0):
    """Local midnight ``days`` from today."""
    today = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
    return today + timedelta(days=days)


def day(days=0):
    return (timezone.localdate() + timedelta(days=days)).isoformat()


def make_room(number="101", price="100.00", **kwargs):
    kwargs.setdefault("room_type", "Standard")
    kwargs.setdefault("capacity", 2)
    return Room.objects.create(room_number=number, price=Decimal(price), **kwargs)


def make_profile(uid="cust-1", phone="+256700000001", **kwargs):
    kwargs.setdefault("name", "Jane Guest")
    return UserProfile.objects.create(uid=uid, phone_number=phone, **kwargs)


def make_booking(room, user, check_in, check_out, **kwargs):
    kwargs.setdefault("guest_name", user.name or "Guest")
    kwargs.setdefault("total_price", room.price)
    return Booking.objects.create(room=room, user=user, check_in=check_in, check_out=check_out, **kwargs)


@FAKES
class HotelAPITestCase(APITestCase):
    def setUp(self):
        # throttle counters live in the cache
        cache.clear()
        FakeIdentityProvider.reset()
        FakeGateway.reset()

    def login(self, role="customer", uid=None):
        uid = uid or f"{role}-1"
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {role}:{uid}")
        return uid

    def logout(self):
        self.client.credentials()

    def assertError(self, response, status_code, code):
        self.assertEqual(response.status_code, status_code, response.content)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["error"]["code"], code)
