from django.contrib import admin
from django.urls import include, path

from hotel_management.views import health_check, welcome

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health", health_check, name="health"),
    path("", welcome, name="welcome"),
    path("api/v1/", include("hotel_management.urls")),
]
