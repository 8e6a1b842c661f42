import re
from datetime import datetime, time

from django.utils import timezone
from django.utils.dateparse import parse_date
from rest_framework import serializers

from .models import Booking, HotelSettings, Payment, Room

TIME_OF_DAY = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class StayDateTimeField(serializers.DateTimeField):
    """Accepts a plain ``YYYY-MM-DD`` (midnight, server time zone) or a full timestamp."""

    def to_internal_value(self, value):
        if isinstance(value, str):
            day = parse_date(value.strip()) if len(value.strip()) == 10 else None
            if day is not None:
                return timezone.make_aware(datetime.combine(day, time.min))
        return super().to_internal_value(value)


class RoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = Room
        fields = "__all__"
        read_only_fields = ("created_by", "updated_by", "created_at", "updated_at")
        # uniqueness is reported as a conflict by the views
        extra_kwargs = {"room_number": {"validators": []}}

    def to_representation(self, instance):
        data = super().to_representation(instance)
        if hasattr(instance, "projected_status"):
            data["status"] = instance.projected_status
            data["next_available"] = instance.next_available.isoformat() if instance.next_available else None
        return data


class AvailabilityQuerySerializer(serializers.Serializer):
    check_in = StayDateTimeField()
    check_out = StayDateTimeField()
    guests = serializers.IntegerField(min_value=1, required=False, allow_null=True)


class BookingCreateSerializer(serializers.Serializer):
    room_id = serializers.IntegerField()
    check_in = StayDateTimeField()
    check_out = StayDateTimeField()
    guest_name = serializers.CharField(max_length=150)
    guest_phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    guest_email = serializers.EmailField(required=False, allow_blank=True)
    guests = serializers.IntegerField(min_value=1, default=1)
    status = serializers.ChoiceField(choices=Booking.Status.choices, required=False)
    payment_status = serializers.ChoiceField(choices=Booking.PaymentStatus.choices, required=False)
    payment_method = serializers.ChoiceField(choices=Booking.PaymentMethod.choices, required=False)
    received_by = serializers.CharField(max_length=150, required=False, allow_blank=True)
    payment_phone = serializers.CharField(max_length=30, required=False, allow_blank=True)


class BookingUpdateSerializer(serializers.Serializer):
    room_id = serializers.IntegerField(required=False)
    check_in = StayDateTimeField(required=False)
    check_out = StayDateTimeField(required=False)
    guest_name = serializers.CharField(max_length=150, required=False)
    guest_phone = serializers.CharField(max_length=30, required=False, allow_blank=True)
    guest_email = serializers.EmailField(required=False, allow_blank=True)
    guests = serializers.IntegerField(min_value=1, required=False)
    status = serializers.ChoiceField(choices=Booking.Status.choices, required=False)
    payment_status = serializers.ChoiceField(choices=Booking.PaymentStatus.choices, required=False)
    payment_method = serializers.ChoiceField(choices=Booking.PaymentMethod.choices, required=False)
    received_by = serializers.CharField(max_length=150, required=False, allow_blank=True)
    payment_phone = serializers.CharField(max_length=30, required=False, allow_blank=True)


class BookingSerializer(serializers.ModelSerializer):
    room_name = serializers.SerializerMethodField()
    user_id = serializers.CharField(source="user.uid", read_only=True)

    class Meta:
        model = Booking
        exclude = ("user",)

    def get_room_name(self, instance):
        return f"{instance.room.room_number} - {instance.room.room_type}"


class PaymentSerializer(serializers.ModelSerializer):
    booking_id = serializers.IntegerField(read_only=True)
    user_id = serializers.CharField(source="user.uid", read_only=True, default=None)
    guest = serializers.SerializerMethodField()

    class Meta:
        model = Payment
        exclude = ("booking", "user")

    def get_guest(self, instance):
        return instance.user.name if instance.user else "Unknown"


class PaymentStatusSerializer(serializers.Serializer):
    status = serializers.CharField()


class PaymentInitiateSerializer(serializers.Serializer):
    booking_id = serializers.IntegerField()
    phone_number = serializers.CharField(max_length=30)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)


class HotelSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = HotelSettings
        exclude = ("id",)
        read_only_fields = ("updated_by", "updated_at")

    def _validate_time(self, value, label):
        if value and not TIME_OF_DAY.match(value):
            raise serializers.ValidationError(f"{label} time must be in HH:MM format (e.g., 15:00)")
        return value

    def validate_check_in_time(self, value):
        return self._validate_time(value, "Check-in")

    def validate_check_out_time(self, value):
        return self._validate_time(value, "Check-out")
