# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Assembly lifecycle.

    scheduled --start--> in_progress --finish--> finished
    scheduled --cancel-> cancelled

Finishing requires every agenda item to be out of voting and freezes
participants and votes. The check-in code exists only while in progress.
"""

import logging
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from apps.assemblies.exceptions import (
    AssemblyNotInProgress,
    AssemblyNotScheduled,
    InvalidInput,
    InvalidState,
    NotFound,
    VotingInProgress,
)
from apps.assemblies.models import AgendaItem, Assembly, Participant, Vote
from apps.tenants.models import Condominium

from . import audit, inputs
from .otp_service import clear_checkin_code

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "location", "meeting_url", "scheduled_at")


class AssemblyService:
    """Create, schedule and drive assemblies through their lifecycle."""

    @staticmethod
    def list_for(condominium: Condominium, status: str | None = None):
        queryset = Assembly.objects.filter(condominium=condominium)
        if status:
            queryset = queryset.filter(status=status)
        return queryset.order_by("-scheduled_at")

    @staticmethod
    def upcoming(condominium: Condominium, now=None):
        """Running assemblies and scheduled ones still ahead, soonest first."""
        now = now or timezone.now()
        return Assembly.objects.filter(
            Q(status=Assembly.STATUS_IN_PROGRESS) | Q(status=Assembly.STATUS_SCHEDULED, scheduled_at__gte=now),
            condominium=condominium,
        ).order_by("scheduled_at")

    @staticmethod
    def get(condominium: Condominium, assembly_id) -> Assembly:
        """
        Get an assembly of a condominium.

        Raises:
            NotFound: If missing or owned by another condominium
        """
        try:
            return Assembly.objects.select_related("condominium").get(pk=assembly_id, condominium=condominium)
        except (Assembly.DoesNotExist, ValidationError):
            raise NotFound("Assembly not found.")

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
        if "location" in data:
            cleaned["location"] = inputs.text(data["location"], "Location")[:300]
        if "meeting_url" in data:
            meeting_url = inputs.text(data["meeting_url"], "Meeting URL")
            if len(meeting_url) > 200:
                raise InvalidInput("Meeting URL is too long.")
            cleaned["meeting_url"] = meeting_url
        if "scheduled_at" in data:
            value = data["scheduled_at"]
            if isinstance(value, str):
                try:
                    value = parse_datetime(value)
                except ValueError:
                    value = None
            if not isinstance(value, datetime):
                raise InvalidInput("scheduled_at must be an ISO 8601 date/time.")
            if timezone.is_naive(value):
                value = timezone.make_aware(value)
            cleaned["scheduled_at"] = value
        return cleaned

    @staticmethod
    def create(condominium: Condominium, title: str, scheduled_at, created_by=None, **data) -> Assembly:
        """
        Schedule a new assembly.

        Raises:
            InvalidInput: If title or scheduled_at are missing or malformed
        """
        fields = AssemblyService._clean(
            {"title": title, "scheduled_at": scheduled_at, **{k: v for k, v in data.items() if k in EDITABLE_FIELDS}}
        )
        assembly = Assembly.objects.create(
            condominium=condominium,
            created_by=str(created_by) if created_by else "",
            **fields,
        )
        audit.record(assembly.pk, "assembly_created", assembly, created_by, title=assembly.title)
        logger.info(f"Assembly {assembly.pk} scheduled for {condominium.slug} at {assembly.scheduled_at.isoformat()}")
        return assembly

    @staticmethod
    @transaction.atomic
    def update(assembly: Assembly, **data) -> Assembly:
        """
        Change title, description or schedule of a scheduled assembly.

        Raises:
            AssemblyNotScheduled: If the assembly already started or ended
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.status != Assembly.STATUS_SCHEDULED:
            raise AssemblyNotScheduled()

        for name, value in AssemblyService._clean({k: v for k, v in data.items() if k in EDITABLE_FIELDS}).items():
            setattr(locked, name, value)
        locked.save()
        return locked

    @staticmethod
    @transaction.atomic
    def delete(assembly: Assembly) -> None:
        """
        Delete an assembly that never ran (scheduled or cancelled).

        Raises:
            InvalidState: If the assembly is in progress or finished
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.status not in (Assembly.STATUS_SCHEDULED, Assembly.STATUS_CANCELLED):
            raise InvalidState("Assemblies that started are kept for the audit trail.")
        logger.info(f"Assembly {locked.pk} deleted")
        locked.delete()

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def start(assembly: Assembly, actor=None) -> Assembly:
        """
        Start a scheduled assembly. Does not issue a check-in code.

        Raises:
            AssemblyNotScheduled: If the assembly is not scheduled
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.status != Assembly.STATUS_SCHEDULED:
            raise AssemblyNotScheduled("Only scheduled assemblies can be started.")

        locked.status = Assembly.STATUS_IN_PROGRESS
        locked.started_at = timezone.now()
        locked.save(update_fields=["status", "started_at", "updated_at"])

        audit.record(locked.pk, "assembly_started", locked, actor)
        logger.info(f"Assembly {locked.pk} started")
        return locked

    @staticmethod
    @transaction.atomic
    def finish(assembly: Assembly, actor=None) -> Assembly:
        """
        Finish a running assembly.

        Raises:
            AssemblyNotInProgress: If the assembly is not in progress
            VotingInProgress: If an agenda item is still voting
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if not locked.is_in_progress:
            raise AssemblyNotInProgress()
        if AgendaItem.objects.filter(assembly=locked, status=AgendaItem.STATUS_VOTING).exists():
            raise VotingInProgress()

        locked.status = Assembly.STATUS_FINISHED
        locked.finished_at = timezone.now()
        clear_checkin_code(locked)
        locked.save()

        audit.record(locked.pk, "assembly_finished", locked, actor)
        logger.info(f"Assembly {locked.pk} finished")
        return locked

    @staticmethod
    @transaction.atomic
    def cancel(assembly: Assembly, actor=None) -> Assembly:
        """
        Cancel an assembly that has not started.

        Raises:
            AssemblyNotScheduled: If the assembly already started or ended
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.status != Assembly.STATUS_SCHEDULED:
            raise AssemblyNotScheduled("Only scheduled assemblies can be cancelled; running ones must be finished.")

        locked.status = Assembly.STATUS_CANCELLED
        locked.cancelled_at = timezone.now()
        clear_checkin_code(locked)
        locked.save()

        audit.record(locked.pk, "assembly_cancelled", locked, actor)
        logger.info(f"Assembly {locked.pk} cancelled")
        return locked

    # -------------------------------------------------------------------------
    # Reporting
    # -------------------------------------------------------------------------

    @staticmethod
    def stats(assembly: Assembly) -> dict:
        """Counters for the assembly overview."""
        items = AgendaItem.objects.filter(assembly=assembly).aggregate(
            total=Count("id"),
            pending=Count("id", filter=Q(status=AgendaItem.STATUS_PENDING)),
            voting=Count("id", filter=Q(status=AgendaItem.STATUS_VOTING)),
            closed=Count("id", filter=Q(status=AgendaItem.STATUS_CLOSED)),
        )
        participants = Participant.objects.filter(assembly=assembly).aggregate(
            total=Count("id"),
            present=Count("id", filter=Q(joined_at__isnull=False, left_at__isnull=True)),
            pending_proxies=Count("id", filter=Q(approval_status=Participant.APPROVAL_PENDING)),
        )
        return {
            "assembly_id": str(assembly.id),
            "status": assembly.status,
            "agenda_items": items,
            "participants": participants,
            "votes": Vote.objects.filter(agenda_item__assembly=assembly).count(),
        }
