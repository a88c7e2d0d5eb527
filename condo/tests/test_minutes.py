"""
Tests for assembly minutes.
"""

import pytest

from apps.assemblies.exceptions import AssemblyNotFinished, InvalidInput, MinutesLocked, NotFound
from apps.assemblies.models import AssemblyMinutes
from apps.assemblies.services import AgendaService, AssemblyService, MinutesService, VoteService


@pytest.fixture
def finished_assembly(running_assembly, agenda, residents):
    """Budget approved 0.6 to 0.4, second item never voted."""
    item, otp = AgendaService.start_voting(agenda[0])
    VoteService.cast(item.pk, residents["A-101"].session_token, otp.code, "yes")
    VoteService.cast(item.pk, residents["A-102"].session_token, otp.code, "no")
    AgendaService.close_voting(item)
    return AssemblyService.finish(running_assembly)


@pytest.mark.django_db
class TestGenerate:
    def test_requires_finished_assembly(self, running_assembly):
        with pytest.raises(AssemblyNotFinished):
            MinutesService.generate(running_assembly)

    def test_generate(self, finished_assembly):
        minutes = MinutesService.generate(finished_assembly, actor="7")

        assert minutes.status == AssemblyMinutes.STATUS_DRAFT
        assert "MINUTES OF ANNUAL GENERAL MEETING" in minutes.content
        assert "YES 1 (0.6) | NO 1 (0.4)" in minutes.content
        assert "2/2 units represented" in minutes.summary

        votes = minutes.vote_summary
        assert votes["total_agenda_items"] == 2
        assert votes["voted_items"] == 1
        assert votes["items"][0]["weighted_yes"] == "0.6"

        attendance = minutes.attendance_summary
        assert attendance["attended_units"] == 2
        assert [p["unit"] for p in attendance["participants"]] == ["A-101", "A-102"]

    def test_no_verdict_in_minutes(self, finished_assembly):
        minutes = MinutesService.generate(finished_assembly)
        text = minutes.content.lower()
        assert "approved" not in text
        assert "rejected" not in text

    def test_regenerate_resets_approval(self, finished_assembly):
        MinutesService.generate(finished_assembly)
        MinutesService.approve(finished_assembly, approver_id="7")

        minutes = MinutesService.generate(finished_assembly)

        assert minutes.status == AssemblyMinutes.STATUS_DRAFT
        assert minutes.approved_by == ""
        assert AssemblyMinutes.objects.filter(assembly=finished_assembly).count() == 1


@pytest.mark.django_db
class TestLifecycle:
    """draft -> approved -> published."""

    def test_get_missing(self, finished_assembly):
        with pytest.raises(NotFound):
            MinutesService.get(finished_assembly)

    def test_approve_and_publish(self, finished_assembly):
        MinutesService.generate(finished_assembly)
        approved = MinutesService.approve(finished_assembly, approver_id="7")
        assert approved.status == AssemblyMinutes.STATUS_APPROVED
        assert approved.approved_by == "7"

        published = MinutesService.publish(finished_assembly)
        assert published.status == AssemblyMinutes.STATUS_PUBLISHED
        assert published.published_at is not None

    def test_publish_requires_approval(self, finished_assembly):
        MinutesService.generate(finished_assembly)
        with pytest.raises(MinutesLocked):
            MinutesService.publish(finished_assembly)

    def test_edit_needs_new_approval(self, finished_assembly):
        MinutesService.generate(finished_assembly)
        MinutesService.approve(finished_assembly, approver_id="7")

        minutes = MinutesService.update(finished_assembly, content="Corrected minutes")

        assert minutes.content == "Corrected minutes"
        assert minutes.status == AssemblyMinutes.STATUS_DRAFT

    def test_empty_content(self, finished_assembly):
        MinutesService.generate(finished_assembly)
        with pytest.raises(InvalidInput):
            MinutesService.update(finished_assembly, content="  ")

    @pytest.mark.parametrize("data", [{"content": ["line"]}, {"summary": 3}])
    def test_malformed_update(self, finished_assembly, data):
        MinutesService.generate(finished_assembly)
        with pytest.raises(InvalidInput):
            MinutesService.update(finished_assembly, **data)

    def test_published_minutes_are_locked(self, finished_assembly):
        MinutesService.generate(finished_assembly)
        MinutesService.approve(finished_assembly, approver_id="7")
        MinutesService.publish(finished_assembly)

        with pytest.raises(MinutesLocked):
            MinutesService.update(finished_assembly, content="Too late")
        with pytest.raises(MinutesLocked):
            MinutesService.generate(finished_assembly)
        with pytest.raises(MinutesLocked):
            MinutesService.approve(finished_assembly, approver_id="7")
