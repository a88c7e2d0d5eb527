# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Condominium context middleware.

Resolves the tenant from administrative URLs (/condo/<slug>/...) and
attaches it, together with the user's membership, to the request.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Participant endpoints are tenant-agnostic; the token identifies the assembly
PUBLIC_SEGMENT = "public"


class CondominiumMiddleware:
    """
    Middleware to extract condominium context from URL.

    Sets request.condominium and request.membership for administrative URLs.
    Views decide how to respond when either is missing.
    """

    CONDO_URL_PATTERN = re.compile(r"^/condo/([^/]+)/")

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        # Initialize as None
        request.condominium = None
        request.membership = None

        slug = self._get_condominium_slug(request.path)

        if slug:
            self._set_condominium_context(request, slug)

        response = self.get_response(request)
        return response

    def _get_condominium_slug(self, path: str) -> str | None:
        """Extract condominium slug from URL path."""
        match = self.CONDO_URL_PATTERN.match(path)
        if match and match.group(1) != PUBLIC_SEGMENT:
            return match.group(1)
        return None

    def _set_condominium_context(self, request, slug: str):
        """Set condominium and membership on request."""
        # Import here to avoid circular imports at startup
        from apps.tenants.models import Condominium, CondominiumMembership

        try:
            condominium = Condominium.objects.get(slug=slug, is_active=True)
        except Condominium.DoesNotExist:
            # Let the view answer with 404
            return

        request.condominium = condominium

        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            try:
                request.membership = CondominiumMembership.objects.select_related("condominium").get(
                    user=user, condominium=condominium, is_active=True
                )
            except CondominiumMembership.DoesNotExist:
                logger.debug(f"User {user.pk} has no membership in condominium {condominium.slug}")
