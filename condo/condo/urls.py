"""
URL configuration for the Condo project.

Condo - Assembly voting and attendance for condominiums
"""

import uuid

from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.db import DatabaseError, connection
from django.http import JsonResponse
from django.urls import include, path


def health_check(request):
    """Health check endpoint for Docker/Kubernetes."""
    # Check database connection
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        db_status = "ok"
    except DatabaseError:
        db_status = "error"

    return JsonResponse(
        {
            "status": "ok" if db_status == "ok" else "degraded",
            "database": db_status,
        }
    )


urlpatterns = [
    # Health check (for Docker/Kubernetes)
    path("health/", health_check, name="health_check"),
    # Admin
    path("admin/", admin.site.urls),
    # Assemblies (syndic API + participant endpoints)
    path("condo/", include("apps.assemblies.urls", namespace="assemblies")),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)


# =============================================================================
# Custom Error Handlers
# =============================================================================


def handler_400(request, exception=None):
    """Bad Request error handler."""
    return JsonResponse({"error": "bad_request", "message": "Bad request."}, status=400)


def handler_403(request, exception=None):
    """Permission Denied error handler."""
    return JsonResponse({"error": "forbidden", "message": "Permission denied."}, status=403)


def handler_404(request, exception=None):
    """Not Found error handler."""
    return JsonResponse({"error": "not_found", "message": "Not found."}, status=404)


def handler_500(request):
    """Server Error handler."""
    return JsonResponse(
        {
            "error": "server_error",
            "message": "Internal server error.",
            "request_id": str(uuid.uuid4())[:8],
        },
        status=500,
    )


# Register custom error handlers
handler400 = handler_400
handler403 = handler_403
handler404 = handler_404
handler500 = handler_500
