from django.urls import path
from rest_framework.routers import DefaultRouter

from hotel_management.views import (
    AvailabilityView,
    BookingViewSet,
    DashboardStatsView,
    HotelView,
    PaymentViewSet,
    RoomViewSet,
)

router = DefaultRouter()
router.register(r"rooms", RoomViewSet, basename="room")
router.register(r"bookings", BookingViewSet, basename="booking")
router.register(r"payments", PaymentViewSet, basename="payment")

urlpatterns = [
    path("availability/", AvailabilityView.as_view(), name="availability"),
    path("hotel/", HotelView.as_view(), name="hotel"),
    path("dashboard/stats/", DashboardStatsView.as_view(), name="dashboard-stats"),
] + router.urls
