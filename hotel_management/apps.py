from django.apps import AppConfig


class HotelManagementConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "hotel_management"
    verbose_name = "Hotel management"
