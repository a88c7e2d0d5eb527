"""
Callbacks for the Django Unfold admin.
"""

from urllib.parse import urlparse

from django.conf import settings

LOCAL_HOSTS = {"localhost", "127.0.0.1", "0.0.0.0"}


def environment_callback(request):
    """
    Badge at the top right of the admin, derived from SITE_URL.

    Returns:
        tuple: (label text, colour) with colour one of "info", "danger",
        "warning", "success"
    """
    host = urlparse(settings.SITE_URL).hostname or request.get_host()

    if settings.DEBUG or host in LOCAL_HOSTS:
        return (f"Development ({host})", "warning")
    if host.split(".")[0] == "staging":
        return (f"Staging ({host})", "info")
    return (host, "success")
