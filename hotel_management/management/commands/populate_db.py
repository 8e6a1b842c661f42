from decimal import Decimal

from django.core.management.base import BaseCommand

from hotel_management.models import HotelSettings, Room


class Command(BaseCommand):
    help = 'Populate database with sample rooms and hotel information'

    def handle(self, *args, **options):
        rooms_data = [
            {
                'room_number': '101',
                'room_type': 'Standard',
                'price': Decimal('80000'),
                'capacity': 2,
                'amenities': ['WiFi', 'TV'],
                'description': 'Comfortable standard room with city view'
            },
            {
                'room_number': '102',
                'room_type': 'Standard',
                'price': Decimal('85000'),
                'capacity': 2,
                'amenities': ['WiFi', 'TV', 'Balcony'],
                'description': 'Standard room with balcony'
            },
            {
                'room_number': '201',
                'room_type': 'Deluxe',
                'price': Decimal('120000'),
                'capacity': 3,
                'amenities': ['WiFi', 'TV', 'Mini bar'],
                'description': 'Spacious deluxe room overlooking the lake'
            },
            {
                'room_number': '202',
                'room_type': 'Deluxe',
                'price': Decimal('130000'),
                'capacity': 3,
                'amenities': ['WiFi', 'TV', 'Mini bar', 'Air conditioning'],
                'description': 'Deluxe room with city view and mini bar'
            },
            {
                'room_number': '301',
                'room_type': 'Family Suite',
                'price': Decimal('180000'),
                'capacity': 4,
                'amenities': ['WiFi', 'TV', 'Kitchenette'],
                'description': 'Large family suite with kitchenette'
            },
            {
                'room_number': '401',
                'room_type': 'Presidential Suite',
                'price': Decimal('350000'),
                'capacity': 6,
                'amenities': ['WiFi', 'TV', 'Jacuzzi', 'Lounge'],
                'description': 'Luxury suite with all amenities'
            },
        ]

        for room_data in rooms_data:
            room, created = Room.objects.get_or_create(
                room_number=room_data['room_number'],
                defaults={**room_data, 'created_by': 'populate_db'}
            )

            if created:
                self.stdout.write(f'Created room: {room.room_number} - {room.room_type}')
            else:
                self.stdout.write(f'Room {room.room_number} already exists')

        if not HotelSettings.objects.exists():
            HotelSettings.objects.create(
                name='Lakeside Hotel',
                description='A quiet hotel by the lake',
                address='Plot 1, Lake Road, Kampala',
                contact={'phone': '+256700000000', 'email': 'info@example.com'},
                check_in_time='14:00',
                check_out_time='11:00',
                amenities=['Restaurant', 'Pool', 'Free parking'],
                cancellation_policy='Free cancellation up to 24 hours before check-in.',
                updated_by='populate_db',
            )
            self.stdout.write('Created hotel information')

        self.stdout.write(
            self.style.SUCCESS('Successfully populated database with sample data')
        )
