import logging

from django.contrib import admin
from django.core.cache import cache
from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse
from django.urls import path, re_path, include

from rest_framework import permissions
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

logger = logging.getLogger(__name__)

schema_view = get_schema_view(
    openapi.Info(
        title="FoodOnTracks API",
        default_version='v1',
        description="API documentation for the FoodOnTracks food delivery platform",
        contact=openapi.Contact(email="support@foodontracks.com"),
        license=openapi.License(name="BSD License"),
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)


def health_check(request):
    """Report database and cache reachability."""
    checks = {"database": True, "cache": True}
    try:
        connections['default'].cursor().execute("SELECT 1")
    except OperationalError as e:
        logger.error(f"Health check database failure: {e}")
        checks["database"] = False
    try:
        cache.set("health_check", "ok", timeout=5)
        checks["cache"] = cache.get("health_check") == "ok"
    except Exception as e:
        logger.error(f"Health check cache failure: {e}")
        checks["cache"] = False

    healthy = all(checks.values())
    return JsonResponse({"success": healthy, "data": checks}, status=200 if healthy else 503)


urlpatterns = [
    path('admin/', admin.site.urls),
    path('health/', health_check, name='health-check'),

    # App URLs
    path('api/auth/', include('authentication.urls')),
    path('api/restaurants/', include('restaurants.urls')),
    path('api/orders/', include('orders.urls')),
    path('api/delivery/', include('orders.delivery_urls')),

    # Swagger
    re_path(r'^swagger(?P<format>\.json|\.yaml)$', schema_view.without_ui(cache_timeout=0), name='schema-json'),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
]
