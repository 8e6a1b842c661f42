from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models


class Room(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = "Available"
        OCCUPIED = "Occupied"
        MAINTENANCE = "Maintenance"

    room_number = models.CharField(max_length=20, unique=True)
    room_type = models.CharField(max_length=50)
    price = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    capacity = models.PositiveIntegerField(default=1)
    amenities = models.JSONField(default=list, blank=True)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    status = models.CharField(max_length=12, choices=Status.choices, default=Status.AVAILABLE)
    created_by = models.CharField(max_length=128, blank=True)
    updated_by = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Room {self.room_number} ({self.room_type})"


class UserProfile(models.Model):
    """Local shadow of an identity-provider account."""

    uid = models.CharField(max_length=128, unique=True)
    name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True, db_index=True)
    phone_number = models.CharField(max_length=20, blank=True, db_index=True)
    role = models.CharField(max_length=20, default="customer")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name or self.uid


class Booking(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        CANCELLED = "cancelled"

    class PaymentStatus(models.TextChoices):
        UNPAID = "unpaid"
        PENDING = "pending"
        PAID = "paid"
        FAILED = "failed"

    class PaymentMethod(models.TextChoices):
        MOBILE_MONEY = "Mobile Money"
        CASH = "Cash"
        CARD = "Card"

    BLOCKING_STATUSES = (Status.PENDING, Status.CONFIRMED)

    room = models.ForeignKey(Room, on_delete=models.CASCADE, related_name="bookings")
    user = models.ForeignKey(UserProfile, on_delete=models.PROTECT, related_name="bookings")
    guest_name = models.CharField(max_length=150)
    guest_phone = models.CharField(max_length=20, blank=True)
    guest_email = models.EmailField(blank=True)
    guests = models.PositiveIntegerField(default=1)
    check_in = models.DateTimeField()
    check_out = models.DateTimeField()  # exclusive
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(max_length=10, choices=PaymentStatus.choices, default=PaymentStatus.UNPAID)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, default=PaymentMethod.MOBILE_MONEY)
    payment_phone = models.CharField(max_length=20, blank=True)
    received_by = models.CharField(max_length=150, blank=True)
    created_by = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["room", "status", "check_out"])]

    def __str__(self):
        return f"Booking {self.pk} room={self.room_id} ({self.status}/{self.payment_status})"

    @property
    def is_blocking(self):
        return self.status in self.BLOCKING_STATUSES


class Payment(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending"
        SUCCESS = "success"
        FAILED = "failed"

    TERMINAL_STATUSES = (Status.SUCCESS, Status.FAILED)

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="payments")
    user = models.ForeignKey(UserProfile, on_delete=models.PROTECT, related_name="payments", null=True, blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3)
    provider = models.CharField(max_length=20)
    phone = models.CharField(max_length=20, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    # correlation key echoed back by the gateway callback
    customer_reference = models.CharField(max_length=64, unique=True, editable=False)
    external_reference = models.CharField(max_length=100, blank=True)
    failure_reason = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"Payment {self.customer_reference} ({self.status})"

    @property
    def is_final(self):
        return self.status in self.TERMINAL_STATUSES


class HotelSettings(models.Model):
    """Singleton row holding the hotel's public information."""

    name = models.CharField(max_length=150, blank=True)
    description = models.TextField(blank=True)
    address = models.CharField(max_length=255, blank=True)
    contact = models.JSONField(default=dict, blank=True)
    check_in_time = models.CharField(max_length=5, blank=True)
    check_out_time = models.CharField(max_length=5, blank=True)
    policies = models.JSONField(default=dict, blank=True)
    amenities = models.JSONField(default=list, blank=True)
    cancellation_policy = models.TextField(blank=True)
    updated_by = models.CharField(max_length=128, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "hotel settings"

    def __str__(self):
        return self.name or "Hotel settings"
