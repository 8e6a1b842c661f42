"""Read-only dashboard figures."""

from collections import Counter
from datetime import timedelta
from decimal import Decimal

from django.utils import timezone

from .models import Booking, Payment, Room, UserProfile

RANGES = ("7d", "30d", "1y")


def _month_keys(now, count):
    year, month = now.year, now.month
    keys = []
    for _ in range(count):
        keys.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(keys))


def chart_buckets(range_, now):
    """Empty revenue/bookings buckets for the selected range, oldest first."""
    if range_ == "1y":
        return [
            {"name": now.replace(year=y, month=m, day=1).strftime("%b %Y"), "key": f"{y:04d}-{m:02d}", "revenue": Decimal("0"), "bookings": 0}
            for y, m in _month_keys(now, 12)
        ]
    days = 30 if range_ == "30d" else 7
    buckets = []
    for offset in range(days - 1, -1, -1):
        day = (now - timedelta(days=offset)).date()
        buckets.append({"name": day.strftime("%b %d"), "key": day.isoformat(), "revenue": Decimal("0"), "bookings": 0})
    return buckets


def normalize_method(method):
    method = (method or "").lower()
    if "mobile" in method:
        return "Mobile Money"
    if "visa" in method or "card" in method:
        return "Visa"
    return "Cash"


def dashboard_stats(range_="7d", now=None):
    now = now or timezone.localtime()
    if range_ not in RANGES:
        range_ = "7d"
    chart = chart_buckets(range_, now)
    by_key = {bucket["key"]: bucket for bucket in chart}

    total_revenue = Decimal("0")
    active = 0
    recent = []
    for booking in Booking.objects.order_by("-created_at"):
        created = timezone.localtime(booking.created_at)
        key = created.strftime("%Y-%m") if range_ == "1y" else created.date().isoformat()
        earning = booking.payment_status == Booking.PaymentStatus.PAID or booking.status == Booking.Status.CONFIRMED
        bucket = by_key.get(key)
        if bucket is not None:
            bucket["bookings"] += 1
            if earning:
                bucket["revenue"] += booking.total_price
        if earning:
            total_revenue += booking.total_price
        if booking.status != Booking.Status.CANCELLED and booking.check_in <= now < booking.check_out:
            active += 1
        if len(recent) < 5:
            recent.append(
                {"id": booking.pk, "guest": booking.guest_name, "amount": booking.total_price, "status": booking.status}
            )

    methods = Counter(normalize_method(provider) for provider in Payment.objects.values_list("provider", flat=True))
    total_rooms = Room.objects.count()
    return {
        "range": range_,
        "revenue": {"total": total_revenue, "chart": chart},
        "bookings": {"active": active, "recent": recent},
        "rooms": {"total": total_rooms, "available": max(0, total_rooms - active)},
        "users": {"total": UserProfile.objects.count()},
        "payments": {"breakdown": [{"name": name, "value": count} for name, count in methods.items()]},
    }
