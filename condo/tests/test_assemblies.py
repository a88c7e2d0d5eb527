"""
Tests for the assembly lifecycle.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.assemblies.exceptions import (
    AssemblyNotInProgress,
    AssemblyNotScheduled,
    InvalidInput,
    InvalidState,
    NotFound,
    VotingInProgress,
)
from apps.assemblies.models import Assembly
from apps.assemblies.services import AgendaService, AssemblyService, VoteService
from apps.tenants.models import Condominium


@pytest.mark.django_db
class TestCreate:
    def test_create(self, condominium):
        assembly = AssemblyService.create(
            condominium,
            title="  Extraordinary meeting ",
            scheduled_at="2027-03-01T19:30:00-03:00",
            created_by=7,
            location="Party room",
        )

        assert assembly.status == Assembly.STATUS_SCHEDULED
        assert assembly.title == "Extraordinary meeting"
        assert assembly.created_by == "7"
        assert assembly.location == "Party room"
        assert assembly.audit_logs.filter(action="assembly_created").exists()

    @pytest.mark.parametrize(
        "title,scheduled_at",
        [
            ("", "2027-03-01T19:30"),
            ("Meeting", "next week"),
            ("Meeting", None),
            ("Meeting", "2027-13-45T19:30"),
            (42, "2027-03-01T19:30"),
            (["Meeting"], "2027-03-01T19:30"),
        ],
    )
    def test_invalid_input(self, condominium, title, scheduled_at):
        with pytest.raises(InvalidInput):
            AssemblyService.create(condominium, title=title, scheduled_at=scheduled_at)

    def test_naive_datetime_is_made_aware(self, condominium):
        assembly = AssemblyService.create(condominium, title="Meeting", scheduled_at="2027-03-01T19:30:00")
        assert timezone.is_aware(assembly.scheduled_at)

    def test_lookup_is_tenant_scoped(self, assembly):
        other = Condominium.objects.create(name="Edificio Aurora", slug="aurora")
        with pytest.raises(NotFound):
            AssemblyService.get(other, assembly.pk)
        with pytest.raises(NotFound):
            AssemblyService.get(assembly.condominium, "not-a-uuid")

    def test_list_filters_by_status(self, assembly, condominium):
        AssemblyService.cancel(
            AssemblyService.create(condominium, title="Old", scheduled_at=timezone.now() - timedelta(days=30))
        )
        assert list(AssemblyService.list_for(condominium, status="scheduled")) == [assembly]
        assert AssemblyService.list_for(condominium).count() == 2

    def test_upcoming(self, assembly, condominium):
        AssemblyService.create(condominium, title="Past", scheduled_at=timezone.now() - timedelta(days=30))
        later = AssemblyService.create(condominium, title="Later", scheduled_at=timezone.now() + timedelta(days=60))
        cancelled = AssemblyService.create(condominium, title="Off", scheduled_at=timezone.now() + timedelta(days=5))
        AssemblyService.cancel(cancelled)

        assert list(AssemblyService.upcoming(condominium)) == [assembly, later]

    def test_running_assembly_is_upcoming(self, running_assembly, condominium):
        now = timezone.now() + timedelta(days=2)
        assert list(AssemblyService.upcoming(condominium, now=now)) == [running_assembly]


@pytest.mark.django_db
class TestTransitions:
    """scheduled -> in_progress -> finished, scheduled -> cancelled."""

    def test_start(self, assembly):
        started = AssemblyService.start(assembly, actor="7")
        assert started.status == Assembly.STATUS_IN_PROGRESS
        assert started.started_at is not None
        assert started.checkin_code is None

    def test_start_twice(self, assembly):
        AssemblyService.start(assembly)
        with pytest.raises(AssemblyNotScheduled):
            AssemblyService.start(assembly)

    def test_finish_clears_checkin_code(self, running_assembly):
        finished = AssemblyService.finish(running_assembly)
        assert finished.status == Assembly.STATUS_FINISHED
        assert finished.finished_at is not None
        assert finished.checkin_code is None

    def test_finish_requires_closed_voting(self, running_assembly, agenda):
        item, _ = AgendaService.start_voting(agenda[0])
        with pytest.raises(VotingInProgress):
            AssemblyService.finish(running_assembly)

        AgendaService.close_voting(item)
        assert AssemblyService.finish(running_assembly).status == Assembly.STATUS_FINISHED

    def test_finish_scheduled_assembly(self, assembly):
        with pytest.raises(AssemblyNotInProgress):
            AssemblyService.finish(assembly)

    def test_cancel(self, assembly):
        cancelled = AssemblyService.cancel(assembly)
        assert cancelled.status == Assembly.STATUS_CANCELLED
        assert cancelled.cancelled_at is not None

    def test_cannot_cancel_running_assembly(self, running_assembly):
        with pytest.raises(AssemblyNotScheduled):
            AssemblyService.cancel(running_assembly)


@pytest.mark.django_db
class TestEditAndDelete:
    def test_update_scheduled(self, assembly):
        updated = AssemblyService.update(assembly, title="AGM 2027", status="finished")
        assert updated.title == "AGM 2027"
        assert updated.status == Assembly.STATUS_SCHEDULED

    def test_update_running(self, running_assembly):
        with pytest.raises(AssemblyNotScheduled):
            AssemblyService.update(running_assembly, title="Renamed")

    def test_delete_scheduled(self, assembly, agenda):
        AssemblyService.delete(assembly)
        assert not Assembly.objects.filter(pk=assembly.pk).exists()

    def test_finished_assembly_is_kept(self, running_assembly, residents, agenda):
        item, otp = AgendaService.start_voting(agenda[0])
        VoteService.cast(item.pk, residents["A-101"].session_token, otp.code, "yes")
        AgendaService.close_voting(item)
        AssemblyService.finish(running_assembly)

        with pytest.raises(InvalidState):
            AssemblyService.delete(running_assembly)


@pytest.mark.django_db
class TestStats:
    def test_stats(self, running_assembly, residents, agenda):
        item, otp = AgendaService.start_voting(agenda[0])
        VoteService.cast(item.pk, residents["A-101"].session_token, otp.code, "yes")

        stats = AssemblyService.stats(running_assembly)

        assert stats["agenda_items"] == {"total": 2, "pending": 1, "voting": 1, "closed": 0}
        assert stats["participants"]["present"] == 2
        assert stats["votes"] == 1
