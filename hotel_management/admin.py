from django.contrib import admin

from .models import Booking, HotelSettings, Payment, Room, UserProfile


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ("room_number", "room_type", "price", "capacity", "status", "is_active")
    list_filter = ("room_type", "status", "is_active")
    search_fields = ("room_number",)


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("uid", "name", "email", "phone_number", "role")
    search_fields = ("uid", "name", "email", "phone_number")


class PaymentInline(admin.TabularInline):
    model = Payment
    extra = 0
    readonly_fields = ("customer_reference", "status", "external_reference", "paid_at")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("id", "room", "guest_name", "check_in", "check_out", "status", "payment_status")
    list_filter = ("status", "payment_status", "payment_method")
    search_fields = ("guest_name", "guest_phone", "guest_email")
    inlines = [PaymentInline]


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("customer_reference", "booking", "amount", "currency", "status", "paid_at")
    list_filter = ("status", "provider")
    search_fields = ("customer_reference", "external_reference")
    readonly_fields = ("customer_reference",)


admin.site.register(HotelSettings)
