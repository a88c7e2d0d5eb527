"""
Pytest configuration and fixtures.

The default condominium has two units weighing 0.6 and 0.4 so that
quorum and weighted tallies are easy to read in assertions.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.assemblies.services import AgendaService, AssemblyService, AttendanceService, OTPService
from apps.tenants.models import Condominium, CondominiumMembership, Unit


@pytest.fixture
def condominium(db) -> Condominium:
    return Condominium.objects.create(name="Residencial Jardim", slug="jardim")


@pytest.fixture
def units(condominium) -> dict[str, Unit]:
    return {
        "A-101": Unit.objects.create(condominium=condominium, block="A", number="101", fraction=Decimal("0.6")),
        "A-102": Unit.objects.create(condominium=condominium, block="A", number="102", fraction=Decimal("0.4")),
    }


@pytest.fixture
def syndic(condominium):
    user = get_user_model().objects.create_user(username="syndic", password="s3cret-pass")
    CondominiumMembership.objects.create(user=user, condominium=condominium, role="syndic")
    return user


@pytest.fixture
def council_member(condominium):
    user = get_user_model().objects.create_user(username="council", password="s3cret-pass")
    CondominiumMembership.objects.create(user=user, condominium=condominium, role="council")
    return user


@pytest.fixture
def assembly(condominium, units):
    """A scheduled assembly for tomorrow."""
    return AssemblyService.create(
        condominium,
        title="Annual General Meeting",
        scheduled_at=timezone.now() + timedelta(days=1),
        created_by="syndic",
    )


@pytest.fixture
def agenda(assembly):
    """Two pending agenda items, added before the assembly starts."""
    return [
        AgendaService.create_item(assembly, title="Approve budget"),
        AgendaService.create_item(assembly, title="Facade renovation", quorum_type="qualified"),
    ]


@pytest.fixture
def running_assembly(assembly, agenda):
    """The assembly started, with a live check-in code."""
    started = AssemblyService.start(assembly, actor="syndic")
    OTPService.issue_checkin_code(started, actor="syndic")
    return started


@pytest.fixture
def check_in(running_assembly):
    """Check a unit into the running assembly with the current check-in code."""

    def _check_in(unit_identifier: str, **proxy_info):
        return AttendanceService.check_in(
            running_assembly,
            unit_identifier,
            running_assembly.checkin_code,
            **proxy_info,
        )

    return _check_in


@pytest.fixture
def residents(check_in):
    """Both units represented in person: {identifier: CheckInResult}."""
    return {identifier: check_in(identifier) for identifier in ("A-101", "A-102")}


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "api: tests going through the HTTP layer")
    config.addinivalue_line("markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')")
