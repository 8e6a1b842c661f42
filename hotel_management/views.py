import logging

from django.db import transaction
from django.http import HttpResponse, JsonResponse
from django.utils import timezone
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView

from .authentication import role_required
from .availability import available_rooms, count_nights
from .bookings import BookingService
from .exceptions import Conflict, NotFound, ValidationFailed, envelope
from .identity import ADMINS, FRONT_DESK, STAFF
from .models import Booking, HotelSettings, Payment, Room
from .overrides import update_room
from .payments import PaymentReconciler
from .room_status import project_rooms, room_number_key
from .serializers import (
    AvailabilityQuerySerializer,
    BookingCreateSerializer,
    BookingSerializer,
    BookingUpdateSerializer,
    HotelSettingsSerializer,
    PaymentInitiateSerializer,
    PaymentSerializer,
    PaymentStatusSerializer,
    RoomSerializer,
)
from .stats import dashboard_stats

logger = logging.getLogger(__name__)


def welcome(request):
    return JsonResponse({"message": "Welcome to the Hotel Management API"})


def health_check(request):
    return JsonResponse({"status": "ok", "timestamp": timezone.now().isoformat()})


class RoomViewSet(viewsets.ViewSet):
    lookup_value_regex = "[0-9]+"

    def get_permissions(self):
        if self.action in ("create", "destroy"):
            return [role_required(*STAFF)()]
        if self.action in ("update", "partial_update"):
            return [role_required(*FRONT_DESK)()]
        return [permissions.AllowAny()]

    def list(self, request):
        """List rooms with their live occupancy status."""
        rooms = Room.objects.all()
        room_type = request.query_params.get("type")
        if room_type:
            rooms = rooms.filter(room_type=room_type)
        rooms = project_rooms(rooms, timezone.now())

        wanted = request.query_params.get("status")
        if wanted:
            rooms = [room for room in rooms if room.projected_status == wanted]
        rooms.sort(key=lambda room: room_number_key(room.room_number))
        return envelope(RoomSerializer(rooms, many=True).data, count=len(rooms))

    def retrieve(self, request, pk=None):
        room = Room.objects.filter(pk=pk).first()
        if room is None:
            raise NotFound("Room not found", code="ROOM_NOT_FOUND")
        (room,) = project_rooms([room], timezone.now())
        return envelope(RoomSerializer(room).data)

    def create(self, request):
        serializer = RoomSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        number = serializer.validated_data["room_number"]
        if Room.objects.filter(room_number=number).exists():
            raise Conflict(f"Room {number} already exists.", code="DUPLICATE_ROOM_NUMBER")
        room = serializer.save(created_by=request.user.uid, updated_by=request.user.uid)
        return envelope(RoomSerializer(room).data, "Room created successfully", status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = RoomSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        room, ended = update_room(pk, serializer.validated_data, request.user)
        return envelope(RoomSerializer(room).data, "Room updated successfully", ended_bookings=ended)

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    def destroy(self, request, pk=None):
        with transaction.atomic():
            room = Room.objects.select_for_update().filter(pk=pk).first()
            if room is None:
                raise NotFound("Room not found", code="ROOM_NOT_FOUND")
            if room.bookings.exclude(status=Booking.Status.CANCELLED).exists():
                raise Conflict("Room has active bookings and cannot be deleted", code="ROOM_HAS_BOOKINGS")
            room.delete()
        return envelope({"id": int(pk)}, "Room deleted successfully")


class AvailabilityView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        query = AvailabilityQuerySerializer(data=request.data)
        if not query.is_valid():
            raise ValidationFailed("Check-in and check-out dates are required", details=query.errors)
        check_in = query.validated_data["check_in"]
        check_out = query.validated_data["check_out"]
        guests = query.validated_data.get("guests")

        today = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        if check_in < today:
            raise ValidationFailed("Check-in date cannot be in the past", code="INVALID_CHECKIN")
        if check_out <= check_in:
            raise ValidationFailed("Check-out date must be after check-in date", code="INVALID_CHECKOUT")

        nights = count_nights(check_in, check_out)
        rooms = sorted(available_rooms(check_in, check_out, guests), key=lambda room: room_number_key(room.room_number))
        results = []
        for room in rooms:
            data = RoomSerializer(room).data
            data.update({"price_per_night": str(room.price), "total_price": str(room.price * nights), "nights": nights})
            results.append(data)

        return envelope(
            {
                "rooms": results,
                "search_criteria": {
                    "check_in": request.data.get("check_in"),
                    "check_out": request.data.get("check_out"),
                    "guests": guests,
                    "nights": nights,
                },
            },
            f"Found {len(results)} available room(s)",
        )


class BookingViewSet(viewsets.ViewSet):
    lookup_value_regex = "[0-9]+"

    def get_permissions(self):
        if self.action in ("list", "update", "partial_update"):
            return [role_required(*STAFF)()]
        return [permissions.IsAuthenticated()]

    def get_service(self):
        return BookingService.from_settings()

    def list(self, request):
        bookings = Booking.objects.select_related("room", "user").order_by("-created_at")
        return envelope(BookingSerializer(bookings, many=True).data)

    @action(detail=False, methods=["get"])
    def me(self, request):
        """Bookings of the calling guest, newest first."""
        bookings = (
            Booking.objects.select_related("room", "user")
            .filter(user__uid=request.user.uid)
            .order_by("-created_at")
        )
        return envelope(BookingSerializer(bookings, many=True).data)

    def retrieve(self, request, pk=None):
        booking = Booking.objects.select_related("room", "user").filter(pk=pk).first()
        if booking is None:
            raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
        if not request.user.has_role(*STAFF) and booking.user.uid != request.user.uid:
            raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
        return envelope(BookingSerializer(booking).data)

    def create(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking, payment, message = self.get_service().create(serializer.validated_data, request.user)
        data = BookingSerializer(booking).data
        data["payment"] = PaymentSerializer(payment).data
        return envelope(data, message, status.HTTP_201_CREATED)

    def update(self, request, pk=None):
        serializer = BookingUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        booking = self.get_service().update(pk, serializer.validated_data, request.user)
        return envelope(BookingSerializer(booking).data, "Booking updated")

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        booking = self.get_service().cancel(pk, request.user)
        return envelope(BookingSerializer(booking).data, "Booking cancelled")


class PaymentViewSet(viewsets.ViewSet):
    lookup_value_regex = "[0-9]+"

    def get_permissions(self):
        if self.action == "webhook":
            return [permissions.AllowAny()]
        if self.action in ("list", "update", "partial_update"):
            return [role_required(*STAFF)()]
        return [permissions.IsAuthenticated()]

    def get_throttles(self):
        # the gateway retries on its own schedule
        if self.action == "webhook":
            return []
        return super().get_throttles()

    def get_reconciler(self):
        return PaymentReconciler.from_settings()

    def list(self, request):
        payments = Payment.objects.select_related("user").order_by("-created_at")[:100]
        return envelope(PaymentSerializer(payments, many=True).data)

    @action(detail=False, methods=["get"])
    def me(self, request):
        payments = Payment.objects.select_related("user").filter(user__uid=request.user.uid).order_by("-created_at")[:50]
        return envelope(PaymentSerializer(payments, many=True).data)

    def update(self, request, pk=None):
        serializer = PaymentStatusSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationFailed("Status is required", details=serializer.errors)
        payment = self.get_reconciler().update_status(pk, serializer.validated_data["status"], request.user)
        return envelope(PaymentSerializer(payment).data, "Payment status updated")

    def partial_update(self, request, pk=None):
        return self.update(request, pk)

    @action(detail=False, methods=["post"])
    def initiate(self, request):
        serializer = PaymentInitiateSerializer(data=request.data)
        if not serializer.is_valid():
            raise ValidationFailed("Missing details", details=serializer.errors)
        payment = self.get_reconciler().initiate(
            serializer.validated_data["booking_id"],
            serializer.validated_data["phone_number"],
            request.user,
            amount=serializer.validated_data.get("amount"),
        )
        return envelope(PaymentSerializer(payment).data, "Payment prompt sent")

    @action(detail=False, methods=["post"])
    def webhook(self, request):
        """Gateway callback. Always acknowledges unless something broke internally."""
        if not request.data.get("customer_reference"):
            return HttpResponse("Missing Ref", status=status.HTTP_400_BAD_REQUEST, content_type="text/plain")
        try:
            outcome = self.get_reconciler().handle_webhook(request.data)
        except Exception:
            logger.exception("Webhook processing failed for %s", request.data.get("customer_reference"))
            return HttpResponse("Error", status=status.HTTP_500_INTERNAL_SERVER_ERROR, content_type="text/plain")
        logger.info("Webhook %s: %s", request.data.get("customer_reference"), outcome.value)
        return HttpResponse("OK", content_type="text/plain")


class HotelView(APIView):
    def get_permissions(self):
        if self.request.method == "GET":
            return [permissions.AllowAny()]
        return [role_required(*ADMINS)()]

    def get(self, request):
        hotel = HotelSettings.objects.first()
        if hotel is None:
            raise NotFound("Hotel information not found", code="HOTEL_NOT_FOUND")
        return envelope(HotelSettingsSerializer(hotel).data, "Hotel information retrieved successfully")

    def patch(self, request):
        allowed = {field.name for field in HotelSettings._meta.get_fields()} - {"id", "updated_by", "updated_at"}
        updates = {key: value for key, value in request.data.items() if key in allowed}
        if not updates:
            raise ValidationFailed("No valid fields to update", code="NO_UPDATES")

        hotel = HotelSettings.objects.first() or HotelSettings()
        serializer = HotelSettingsSerializer(hotel, data=updates, partial=True)
        if not serializer.is_valid():
            code = "INVALID_TIME_FORMAT" if {"check_in_time", "check_out_time"} & set(serializer.errors) else "VALIDATION_ERROR"
            raise ValidationFailed("Invalid hotel information", code=code, details=serializer.errors)
        hotel = serializer.save(updated_by=request.user.uid)
        return envelope(HotelSettingsSerializer(hotel).data, "Hotel information updated successfully")


class DashboardStatsView(APIView):
    permission_classes = [role_required(*STAFF)]

    def get(self, request):
        return envelope(dashboard_stats(request.query_params.get("range", "7d")), "Dashboard statistics")
