# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Agenda item lifecycle: pending -> voting -> closed.

Only one item per assembly can be voting. start_voting locks the assembly
row before checking its siblings, and a partial unique constraint on
(assembly) where status = voting backs the check at database level.
"""

import logging

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from apps.assemblies.exceptions import (
    AnotherItemVoting,
    AssemblyNotInProgress,
    AssemblyNotScheduled,
    InvalidInput,
    InvalidState,
    ItemNotPending,
    NotFound,
    NotVoting,
)
from apps.assemblies.models import AgendaItem, Assembly

from . import audit, inputs
from .otp_service import OneTimeCode, apply_voting_code, clear_voting_code
from .vote_service import VoteService

logger = logging.getLogger(__name__)

QUORUM_TYPES = {value for value, _label in AgendaItem.QUORUM_TYPE_CHOICES}
EDITABLE_FIELDS = ("title", "description", "order_index", "requires_quorum", "quorum_type")


class AgendaService:
    """Agenda management and the voting window of each item."""

    @staticmethod
    def items(assembly: Assembly):
        return AgendaItem.objects.filter(assembly=assembly).order_by("order_index")

    @staticmethod
    def get_item(assembly: Assembly, item_id) -> AgendaItem:
        try:
            return AgendaItem.objects.select_related("assembly").get(pk=item_id, assembly=assembly)
        except (AgendaItem.DoesNotExist, ValidationError):
            raise NotFound("Agenda item not found.")

    @staticmethod
    def _clean(data: dict) -> dict:
        cleaned = {}
        if "title" in data:
            title = inputs.text(data["title"], "Title")
            if not title:
                raise InvalidInput("Title is required.")
            cleaned["title"] = title[:300]
        if "description" in data:
            cleaned["description"] = inputs.text(data["description"], "Description")
        if "quorum_type" in data:
            if not isinstance(data["quorum_type"], str) or data["quorum_type"] not in QUORUM_TYPES:
                raise InvalidInput("Quorum type must be simple, qualified or unanimous.")
            cleaned["quorum_type"] = data["quorum_type"]
        if "requires_quorum" in data:
            if not isinstance(data["requires_quorum"], bool):
                raise InvalidInput("requires_quorum must be true or false.")
            cleaned["requires_quorum"] = data["requires_quorum"]
        if data.get("order_index") is not None:
            order_index = data["order_index"]
            if isinstance(order_index, bool) or not isinstance(order_index, (int, str)):
                raise InvalidInput("Order must be a number.")
            try:
                order_index = int(order_index)
            except ValueError:
                raise InvalidInput("Order must be a number.")
            if not 0 <= order_index <= 2147483647:
                raise InvalidInput("Order must be a non-negative number.")
            cleaned["order_index"] = order_index
        return cleaned

    @staticmethod
    @transaction.atomic
    def create_item(assembly: Assembly, title: str, **data) -> AgendaItem:
        """
        Add an agenda item to a scheduled assembly.

        Without an explicit order_index the item goes to the end of the agenda.

        Raises:
            AssemblyNotScheduled: If the assembly has already started or ended
            InvalidInput: If title, quorum type or order is invalid or taken
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.status != Assembly.STATUS_SCHEDULED:
            raise AssemblyNotScheduled("Agenda items can only be added to scheduled assemblies.")

        fields = AgendaService._clean({"title": title, **{k: v for k, v in data.items() if k in EDITABLE_FIELDS}})
        if "order_index" not in fields:
            current_max = AgendaItem.objects.filter(assembly=locked).aggregate(m=Max("order_index"))["m"]
            fields["order_index"] = 1 if current_max is None else current_max + 1
        elif AgendaItem.objects.filter(assembly=locked, order_index=fields["order_index"]).exists():
            raise InvalidInput(f"Order {fields['order_index']} is already used.")

        item = AgendaItem.objects.create(assembly=locked, **fields)
        logger.info(f"Agenda item {item.pk} created for assembly {assembly.pk}")
        return item

    @staticmethod
    def _ensure_editable(item: AgendaItem) -> None:
        if item.assembly.is_terminal:
            raise InvalidState("The assembly is closed; its agenda can no longer change.")
        if item.status != AgendaItem.STATUS_PENDING:
            raise ItemNotPending()

    @staticmethod
    @transaction.atomic
    def update_item(item: AgendaItem, **data) -> AgendaItem:
        """
        Change a pending item.

        Raises:
            ItemNotPending: If voting already started or ended
            InvalidState: If the assembly is finished or cancelled
            InvalidInput: If a value is invalid
        """
        locked = AgendaItem.objects.select_for_update().select_related("assembly").get(pk=item.pk)
        AgendaService._ensure_editable(locked)

        fields = AgendaService._clean({k: v for k, v in data.items() if k in EDITABLE_FIELDS})
        if "order_index" in fields and fields["order_index"] != locked.order_index:
            taken = AgendaItem.objects.filter(assembly_id=locked.assembly_id, order_index=fields["order_index"])
            if taken.exists():
                raise InvalidInput(f"Order {fields['order_index']} is already used.")

        for name, value in fields.items():
            setattr(locked, name, value)
        locked.save()
        return locked

    @staticmethod
    @transaction.atomic
    def delete_item(item: AgendaItem) -> None:
        locked = AgendaItem.objects.select_for_update().select_related("assembly").get(pk=item.pk)
        AgendaService._ensure_editable(locked)
        logger.info(f"Agenda item {locked.pk} deleted from assembly {locked.assembly_id}")
        locked.delete()

    # -------------------------------------------------------------------------
    # Voting window
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def start_voting(item: AgendaItem, actor=None) -> tuple[AgendaItem, OneTimeCode]:
        """
        Open voting on an item and issue its voting code.

        Args:
            item: The pending agenda item
            actor: Opaque identity of the syndic

        Returns:
            Tuple of (updated item, voting code)

        Raises:
            AssemblyNotInProgress: If the assembly is not in progress
            ItemNotPending: If the item is already voting or closed
            AnotherItemVoting: If a sibling item is currently voting
        """
        assembly = Assembly.objects.select_for_update().get(pk=item.assembly_id)
        if not assembly.is_in_progress:
            raise AssemblyNotInProgress()

        locked = AgendaItem.objects.select_for_update().get(pk=item.pk)
        if locked.status != AgendaItem.STATUS_PENDING:
            raise ItemNotPending()

        siblings = AgendaItem.objects.filter(assembly=assembly, status=AgendaItem.STATUS_VOTING).exclude(pk=locked.pk)
        if siblings.exists():
            raise AnotherItemVoting()

        now = timezone.now()
        locked.status = AgendaItem.STATUS_VOTING
        locked.voting_started_at = now
        otp = apply_voting_code(locked, now=now)
        try:
            with transaction.atomic():
                locked.save()
        except IntegrityError:
            raise AnotherItemVoting()

        audit.record(assembly.pk, "voting_started", locked, actor, expires_at=otp.expires_at.isoformat())
        logger.info(f"Voting started on agenda item {locked.pk} of assembly {assembly.pk}")
        return locked, otp

    @staticmethod
    @transaction.atomic
    def close_voting(item: AgendaItem, actor=None) -> AgendaItem:
        """
        Close voting: freeze the tally, drop the voting code, record the result.

        Raises:
            NotVoting: If the item is not voting
        """
        locked = AgendaItem.objects.select_for_update().get(pk=item.pk)
        if locked.status != AgendaItem.STATUS_VOTING:
            raise NotVoting()

        summary = VoteService.summary(locked)
        locked.status = AgendaItem.STATUS_CLOSED
        locked.voting_ended_at = timezone.now()
        locked.result = summary.result_line()
        clear_voting_code(locked)
        locked.save()

        audit.record(locked.assembly_id, "voting_closed", locked, actor, **summary.as_dict())
        logger.info(f"Voting closed on agenda item {locked.pk}: {locked.result}")
        return locked
