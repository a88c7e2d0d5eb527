"""
Tests for agenda management and the single active ballot.
"""

from unittest.mock import patch

import pytest
from django.db import IntegrityError, transaction
from django.db.models.query import QuerySet
from django.utils import timezone

from apps.assemblies.exceptions import (
    AnotherItemVoting,
    AssemblyNotInProgress,
    AssemblyNotScheduled,
    InvalidInput,
    ItemNotPending,
    NotFound,
    NotVoting,
)
from apps.assemblies.models import AgendaItem
from apps.assemblies.services import AgendaService, AssemblyService, VoteService


@pytest.mark.django_db
class TestAgendaManagement:
    """Creating and editing agenda items."""

    def test_items_are_numbered_in_order(self, agenda):
        assert [item.order_index for item in agenda] == [1, 2]
        assert list(AgendaService.items(agenda[0].assembly)) == agenda

    def test_explicit_order(self, assembly, agenda):
        item = AgendaService.create_item(assembly, title="Any other business", order_index=10)
        assert item.order_index == 10

    def test_duplicate_order(self, assembly, agenda):
        with pytest.raises(InvalidInput):
            AgendaService.create_item(assembly, title="Duplicate", order_index=1)

    def test_title_required(self, assembly):
        with pytest.raises(InvalidInput):
            AgendaService.create_item(assembly, title="   ")

    def test_unknown_quorum_type(self, assembly):
        with pytest.raises(InvalidInput):
            AgendaService.create_item(assembly, title="Budget", quorum_type="absolute")

    @pytest.mark.parametrize(
        "data",
        [
            {"quorum_type": ["simple"]},
            {"requires_quorum": "yes"},
            {"order_index": True},
            {"order_index": [1]},
            {"description": 7},
        ],
    )
    def test_malformed_fields(self, assembly, data):
        with pytest.raises(InvalidInput):
            AgendaService.create_item(assembly, title="Budget", **data)

    def test_only_while_scheduled(self, running_assembly):
        with pytest.raises(AssemblyNotScheduled):
            AgendaService.create_item(running_assembly, title="Late addition")

    def test_update_pending_item(self, agenda):
        item = AgendaService.update_item(agenda[0], title="Approve 2027 budget", quorum_type="unanimous")
        assert item.title == "Approve 2027 budget"
        assert item.quorum_type == AgendaItem.QUORUM_UNANIMOUS

    def test_cannot_edit_voting_item(self, running_assembly, agenda):
        AgendaService.start_voting(agenda[0])
        with pytest.raises(ItemNotPending):
            AgendaService.update_item(agenda[0], title="Changed")
        with pytest.raises(ItemNotPending):
            AgendaService.delete_item(agenda[0])

    def test_delete_pending_item(self, agenda):
        AgendaService.delete_item(agenda[1])
        assert list(AgendaService.items(agenda[0].assembly)) == [agenda[0]]

    def test_get_item_of_other_assembly(self, assembly, agenda, condominium):
        other = AssemblyService.create(condominium, title="Extraordinary", scheduled_at=timezone.now())
        with pytest.raises(NotFound):
            AgendaService.get_item(other, agenda[0].pk)


@pytest.mark.django_db
class TestVotingWindow:
    """pending -> voting -> closed, one item at a time."""

    def test_start_voting_issues_code(self, running_assembly, agenda):
        item, otp = AgendaService.start_voting(agenda[0], actor="7")

        assert item.status == AgendaItem.STATUS_VOTING
        assert item.voting_started_at is not None
        assert item.voting_code == otp.code
        assert running_assembly.audit_logs.filter(action="voting_started").exists()

    def test_requires_running_assembly(self, agenda):
        with pytest.raises(AssemblyNotInProgress):
            AgendaService.start_voting(agenda[0])

    def test_single_active_ballot(self, running_assembly, agenda):
        first, _ = AgendaService.start_voting(agenda[0])
        with pytest.raises(AnotherItemVoting):
            AgendaService.start_voting(agenda[1])

        AgendaService.close_voting(first)
        second, _ = AgendaService.start_voting(agenda[1])
        assert second.status == AgendaItem.STATUS_VOTING

    def test_cannot_restart_closed_item(self, running_assembly, agenda):
        item, _ = AgendaService.start_voting(agenda[0])
        AgendaService.close_voting(item)
        with pytest.raises(ItemNotPending):
            AgendaService.start_voting(item)

    def test_close_requires_voting(self, running_assembly, agenda):
        with pytest.raises(NotVoting):
            AgendaService.close_voting(agenda[0])

    def test_close_records_tally_and_drops_code(self, running_assembly, agenda, residents):
        item, otp = AgendaService.start_voting(agenda[0])
        VoteService.cast(item.pk, residents["A-101"].session_token, otp.code, "yes")
        VoteService.cast(item.pk, residents["A-102"].session_token, otp.code, "no")

        closed = AgendaService.close_voting(item)

        assert closed.status == AgendaItem.STATUS_CLOSED
        assert closed.voting_ended_at is not None
        assert closed.voting_code is None
        assert closed.result == "YES: 1 (0.6) | NO: 1 (0.4) | ABSTENTION: 0 (0)"


@pytest.mark.django_db
class TestSingleBallotConstraint:
    """The database refuses a second voting item per assembly."""

    def test_second_voting_row_is_rejected(self, running_assembly, agenda):
        AgendaService.start_voting(agenda[0])

        with pytest.raises(IntegrityError), transaction.atomic():
            AgendaItem.objects.filter(pk=agenda[1].pk).update(status=AgendaItem.STATUS_VOTING)

    def test_other_assemblies_are_independent(self, running_assembly, agenda, condominium):
        AgendaService.start_voting(agenda[0])
        other = AssemblyService.create(condominium, title="Block B meeting", scheduled_at=timezone.now())
        item = AgendaService.create_item(other, title="Garage gate")

        AgendaItem.objects.filter(pk=item.pk).update(status=AgendaItem.STATUS_VOTING)

        assert AgendaItem.objects.filter(status=AgendaItem.STATUS_VOTING).count() == 2

    def test_constraint_violation_is_another_item_voting(self, running_assembly, agenda):
        AgendaService.start_voting(agenda[0])

        # The sibling check saw nothing; the save decides
        with patch.object(QuerySet, "exists", return_value=False):
            with pytest.raises(AnotherItemVoting):
                AgendaService.start_voting(agenda[1])

        assert AgendaItem.objects.get(pk=agenda[1].pk).status == AgendaItem.STATUS_PENDING
