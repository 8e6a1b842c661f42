from datetime import timedelta

from django.utils import timezone

from hotel_management.identity import Principal, Role
from hotel_management.models import Booking, Room
from hotel_management.overrides import update_room

from .base import HotelAPITestCase, day, make_booking, make_profile, make_room, midnight


class RoomAdminTestCase(HotelAPITestCase):
    """Room create, edit and delete"""

    def setUp(self):
        super().setUp()
        self.room = make_room("101")
        self.guest = make_profile()

    def test_create_requires_staff(self):
        data = {'room_number': '102', 'room_type': 'Deluxe', 'price': '150.00', 'capacity': 3}
        self.assertError(self.client.post('/api/v1/rooms/', data, format='json'), 401, 'UNAUTHORIZED')
        self.login('receptionist')
        self.assertError(self.client.post('/api/v1/rooms/', data, format='json'), 403, 'FORBIDDEN')

        self.login('manager', 'mgr-7')
        response = self.client.post('/api/v1/rooms/', data, format='json')
        self.assertEqual(response.status_code, 201, response.content)
        self.assertEqual(response.data['message'], 'Room created successfully')
        self.assertEqual(Room.objects.get(room_number='102').created_by, 'mgr-7')

    def test_duplicate_room_number(self):
        self.login('admin')
        data = {'room_number': '101', 'room_type': 'Deluxe', 'price': '150.00'}
        self.assertError(self.client.post('/api/v1/rooms/', data, format='json'), 409, 'DUPLICATE_ROOM_NUMBER')
        other = make_room("102")
        response = self.client.patch(f'/api/v1/rooms/{other.pk}/', {'room_number': '101'}, format='json')
        self.assertError(response, 409, 'DUPLICATE_ROOM_NUMBER')

    def test_invalid_room_payload(self):
        self.login('admin')
        response = self.client.post('/api/v1/rooms/', {'room_number': '103', 'price': '-5'}, format='json')
        self.assertError(response, 400, 'VALIDATION_ERROR')
        self.assertIn('price', response.data['error']['details'])

    def test_delete_blocked_by_active_bookings(self):
        booking = make_booking(self.room, self.guest, midnight(1), midnight(2))
        self.login('admin')
        self.assertError(self.client.delete(f'/api/v1/rooms/{self.room.pk}/'), 409, 'ROOM_HAS_BOOKINGS')

        booking.status = Booking.Status.CANCELLED
        booking.save()
        response = self.client.delete(f'/api/v1/rooms/{self.room.pk}/')
        self.assertEqual(response.status_code, 200, response.content)
        self.assertFalse(Room.objects.exists())
        self.assertFalse(Booking.objects.exists())

    def test_delete_unknown_room(self):
        self.login('admin')
        self.assertError(self.client.delete('/api/v1/rooms/999/'), 404, 'ROOM_NOT_FOUND')


class ManualOverrideTestCase(HotelAPITestCase):
    """Forcing a room free ends the stays in progress"""

    def setUp(self):
        super().setUp()
        self.now = timezone.now()
        self.room = make_room("201")
        self.guest = make_profile()
        self.in_progress = make_booking(
            self.room, self.guest, self.now - timedelta(days=1), self.now + timedelta(days=2),
            status=Booking.Status.CONFIRMED,
        )
        self.upcoming = make_booking(self.room, self.guest, self.now + timedelta(days=5), self.now + timedelta(days=7))
        self.principal = Principal(uid='rec-1', role=Role.RECEPTIONIST)

    def test_available_override_truncates_current_stay(self):
        room, ended = update_room(self.room.pk, {'status': Room.Status.AVAILABLE}, self.principal, now=self.now)

        self.assertEqual(ended, [self.in_progress.pk])
        self.in_progress.refresh_from_db()
        self.upcoming.refresh_from_db()
        self.assertEqual(self.in_progress.check_out, self.now)
        self.assertEqual(self.in_progress.status, Booking.Status.CONFIRMED)
        self.assertEqual(self.upcoming.check_out, self.now + timedelta(days=7))
        self.assertEqual(room.updated_by, 'rec-1')

    def test_override_frees_room_for_new_bookings(self):
        self.login('receptionist')
        response = self.client.patch(f'/api/v1/rooms/{self.room.pk}/', {'status': 'Available'}, format='json')

        self.assertEqual(response.status_code, 200, response.content)
        self.assertEqual(response.data['ended_bookings'], [self.in_progress.pk])
        response = self.client.get(f'/api/v1/rooms/{self.room.pk}/')
        self.assertEqual(response.data['data']['status'], 'Available')

    def test_maintenance_override_hides_room_from_search(self):
        self.login('manager')
        self.client.patch(f'/api/v1/rooms/{self.room.pk}/', {'status': 'Maintenance'}, format='json')
        self.in_progress.refresh_from_db()
        self.assertLessEqual(self.in_progress.check_out, timezone.now())

        response = self.client.post('/api/v1/availability/', {'check_in': day(10), 'check_out': day(12)}, format='json')
        self.assertEqual(response.data['data']['rooms'], [])

    def test_other_edits_leave_bookings_alone(self):
        room, ended = update_room(self.room.pk, {'price': 120}, self.principal, now=self.now)
        self.assertEqual(ended, [])
        self.in_progress.refresh_from_db()
        self.assertEqual(self.in_progress.check_out, self.now + timedelta(days=2))

    def test_customer_cannot_edit_rooms(self):
        self.login('customer')
        response = self.client.patch(f'/api/v1/rooms/{self.room.pk}/', {'status': 'Available'}, format='json')
        self.assertError(response, 403, 'FORBIDDEN')


class AvailabilitySearchTestCase(HotelAPITestCase):
    url = '/api/v1/availability/'

    def setUp(self):
        super().setUp()
        self.guest = make_profile()
        self.room = make_room("101", price="100.00", capacity=2)
        make_room("102", price="200.00", capacity=4)

    def test_end_to_end_search(self):
        make_booking(self.room, self.guest, midnight(3), midnight(6), status=Booking.Status.CONFIRMED)

        response = self.client.post(self.url, {'check_in': day(4), 'check_out': day(5)}, format='json')
        self.assertEqual(response.status_code, 200, response.content)
        self.assertEqual([r['room_number'] for r in response.data['data']['rooms']], ['102'])

        response = self.client.post(self.url, {'check_in': day(6), 'check_out': day(9)}, format='json')
        rooms = response.data['data']['rooms']
        self.assertEqual([r['room_number'] for r in rooms], ['101', '102'])
        self.assertEqual(rooms[0]['nights'], 3)
        self.assertEqual(rooms[0]['total_price'], '300.00')
        self.assertEqual(response.data['data']['search_criteria']['nights'], 3)
        self.assertEqual(response.data['message'], 'Found 2 available room(s)')

    def test_guest_count(self):
        response = self.client.post(self.url, {'check_in': day(1), 'check_out': day(2), 'guests': 3}, format='json')
        self.assertEqual([r['room_number'] for r in response.data['data']['rooms']], ['102'])

    def test_validation_codes(self):
        self.assertError(self.client.post(self.url, {}, format='json'), 400, 'VALIDATION_ERROR')
        self.assertError(
            self.client.post(self.url, {'check_in': day(-1), 'check_out': day(2)}, format='json'), 400, 'INVALID_CHECKIN'
        )
        self.assertError(
            self.client.post(self.url, {'check_in': day(3), 'check_out': day(3)}, format='json'), 400, 'INVALID_CHECKOUT'
        )
