"""
Tests for the middleware layer.
"""

import pytest
from django.db import OperationalError
from django.http import HttpResponse
from django.test import RequestFactory

from apps.common.middleware import DatabaseErrorMiddleware, is_transient_error
from apps.tenants.middleware import CondominiumMiddleware
from apps.tenants.models import Condominium


def failing_view(message):
    def get_response(request):
        raise OperationalError(message)

    return get_response


class TestDatabaseErrorMiddleware:
    """Transient database failures become a retryable 503."""

    def test_connection_error(self):
        middleware = DatabaseErrorMiddleware(failing_view("could not connect to server"))
        response = middleware(RequestFactory().get("/condo/public/session/"))

        assert response.status_code == 503
        assert response["Retry-After"] == "30"

    def test_lock_contention_from_view(self):
        middleware = DatabaseErrorMiddleware(lambda request: HttpResponse())
        request = RequestFactory().post("/condo/public/agenda/x/vote/")

        response = middleware.process_exception(request, OperationalError("deadlock detected"))

        assert response.status_code == 503

    def test_other_errors_propagate(self):
        middleware = DatabaseErrorMiddleware(failing_view("no such table: assemblies"))
        with pytest.raises(OperationalError):
            middleware(RequestFactory().get("/"))

    def test_is_transient_error(self):
        assert is_transient_error(OperationalError("database is locked"))
        assert not is_transient_error(ValueError("connection refused"))


@pytest.mark.django_db
class TestCondominiumMiddleware:
    """Tenant resolution from the URL."""

    def resolve(self, path, user=None):
        request = RequestFactory().get(path)
        if user is not None:
            request.user = user
        CondominiumMiddleware(lambda r: HttpResponse())(request)
        return request

    def test_resolves_condominium_and_membership(self, condominium, syndic):
        request = self.resolve("/condo/jardim/assemblies/", user=syndic)
        assert request.condominium == condominium
        assert request.membership.role == "syndic"

    def test_public_paths_have_no_tenant(self, condominium):
        assert self.resolve("/condo/public/session/").condominium is None

    def test_unknown_slug(self, condominium):
        assert self.resolve("/condo/nowhere/assemblies/").condominium is None

    def test_public_slug_is_reserved(self, db):
        assert Condominium.objects.create(name="Public").slug == "public-condo"
