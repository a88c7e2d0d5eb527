# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Minutes of finished assemblies.

Minutes report attendance and the recorded tallies of each agenda item.
Whether a resolution passed depends on its quorum type and is left to the
people approving the minutes; the generated text never states a verdict.
"""

import logging

from django.db import transaction
from django.utils import timezone

from apps.assemblies.exceptions import AssemblyNotFinished, InvalidInput, MinutesLocked, NotFound
from apps.assemblies.models import AgendaItem, Assembly, AssemblyMinutes, Participant

from . import audit, inputs
from .attendance_service import AttendanceService
from .vote_service import VoteService, format_weight

logger = logging.getLogger(__name__)


class MinutesService:
    """Generate and publish assembly minutes."""

    @staticmethod
    def get(assembly: Assembly) -> AssemblyMinutes:
        try:
            return AssemblyMinutes.objects.get(assembly=assembly)
        except AssemblyMinutes.DoesNotExist:
            raise NotFound("No minutes for this assembly yet.")

    @staticmethod
    def vote_report(assembly: Assembly) -> dict:
        items = []
        for item in AgendaItem.objects.filter(assembly=assembly).order_by("order_index"):
            summary = VoteService.summary(item)
            items.append(
                {
                    "title": item.title,
                    "order": item.order_index,
                    "status": item.status,
                    "quorum_type": item.quorum_type,
                    "result": item.result,
                    **summary.as_dict(),
                }
            )
        return {
            "total_agenda_items": len(items),
            "voted_items": sum(1 for i in items if i["total"] > 0),
            "items": items,
        }

    @staticmethod
    def attendance_report(assembly: Assembly) -> dict:
        quorum = AttendanceService.quorum(assembly)
        participants = []
        for p in Participant.objects.filter(assembly=assembly, joined_at__isnull=False).select_related("unit"):
            participants.append(
                {
                    "unit": p.unit.identifier,
                    "represented_by": p.proxy_name or "Owner",
                    "is_proxy": p.is_proxy,
                    "approval_status": p.approval_status,
                    "voting_weight": format_weight(p.voting_weight),
                    "joined_at": p.joined_at.isoformat(),
                    "left_at": p.left_at.isoformat() if p.left_at else None,
                }
            )
        return {
            "total_units": quorum.total_units,
            "attended_units": len(participants),
            "quorum_at_close": quorum.as_dict(),
            "participants": participants,
        }

    @staticmethod
    def render_content(assembly: Assembly, votes: dict, attendance: dict) -> str:
        local = timezone.localtime
        lines = [
            f"MINUTES OF {assembly.title.upper()}",
            "",
            f"Date: {local(assembly.scheduled_at):%Y-%m-%d}",
            f"Opened: {local(assembly.started_at):%H:%M}" if assembly.started_at else "Opened: n/a",
            f"Closed: {local(assembly.finished_at):%H:%M}" if assembly.finished_at else "Closed: n/a",
            "",
            "ATTENDANCE:",
            f"- Units: {attendance['total_units']}",
            f"- Units represented: {attendance['attended_units']}",
            f"- Quorum at close: {attendance['quorum_at_close']['percentage']}%",
            "",
            "PARTICIPANTS:",
        ]
        for p in attendance["participants"]:
            proxy = " (proxy)" if p["is_proxy"] else ""
            lines.append(f"- {p['unit']}: {p['represented_by']}{proxy}")
        lines += ["", "RESOLUTIONS:", ""]
        for item in votes["items"]:
            lines.append(f"{item['order']}. {item['title']}")
            lines.append(
                f"   Votes: YES {item['yes']} ({item['weighted_yes']}) | NO {item['no']} ({item['weighted_no']}) | "
                f"ABSTENTION {item['abstention']} ({item['weighted_abstention']})"
            )
            lines.append(f"   Quorum type: {item['quorum_type']}")
            lines.append("")
        lines += ["CLOSING:", "There being no further business, the assembly was closed and these minutes drawn up."]
        return "\n".join(lines)

    @staticmethod
    @transaction.atomic
    def generate(assembly: Assembly, actor=None) -> AssemblyMinutes:
        """
        Build (or rebuild) the minutes of a finished assembly as a draft.

        Raises:
            AssemblyNotFinished: If the assembly is not finished
            MinutesLocked: If the minutes were already published
        """
        if assembly.status != Assembly.STATUS_FINISHED:
            raise AssemblyNotFinished("Minutes can only be generated after the assembly is finished.")

        votes = MinutesService.vote_report(assembly)
        attendance = MinutesService.attendance_report(assembly)
        content = MinutesService.render_content(assembly, votes, attendance)
        summary = (
            f'Assembly "{assembly.title}" held on {timezone.localtime(assembly.scheduled_at):%Y-%m-%d} '
            f"with {attendance['attended_units']}/{attendance['total_units']} units represented "
            f"and {votes['voted_items']} agenda item(s) voted."
        )

        minutes, created = AssemblyMinutes.objects.select_for_update().get_or_create(assembly=assembly)
        if minutes.status == AssemblyMinutes.STATUS_PUBLISHED:
            raise MinutesLocked("Published minutes cannot be regenerated.")

        minutes.content = content
        minutes.summary = summary
        minutes.vote_summary = votes
        minutes.attendance_summary = attendance
        minutes.status = AssemblyMinutes.STATUS_DRAFT
        minutes.approved_by = ""
        minutes.approved_at = None
        minutes.save()

        audit.record(assembly.pk, "minutes_generated", minutes, actor, regenerated=not created)
        logger.info(f"Minutes {'generated' if created else 'regenerated'} for assembly {assembly.pk}")
        return minutes

    @staticmethod
    @transaction.atomic
    def update(assembly: Assembly, content: str | None = None, summary: str | None = None) -> AssemblyMinutes:
        minutes = MinutesService.get(assembly)
        if minutes.status == AssemblyMinutes.STATUS_PUBLISHED:
            raise MinutesLocked()
        if content is not None:
            if not inputs.text(content, "Content"):
                raise InvalidInput("Minutes content cannot be empty.")
            minutes.content = content
        if summary is not None:
            inputs.text(summary, "Summary")
            minutes.summary = summary
        # Edited minutes need a fresh approval
        minutes.status = AssemblyMinutes.STATUS_DRAFT
        minutes.approved_by = ""
        minutes.approved_at = None
        minutes.save()
        return minutes

    @staticmethod
    @transaction.atomic
    def approve(assembly: Assembly, approver_id) -> AssemblyMinutes:
        minutes = MinutesService.get(assembly)
        if minutes.status == AssemblyMinutes.STATUS_PUBLISHED:
            raise MinutesLocked("The minutes are already published.")
        minutes.status = AssemblyMinutes.STATUS_APPROVED
        minutes.approved_by = str(approver_id)
        minutes.approved_at = timezone.now()
        minutes.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])

        audit.record(assembly.pk, "minutes_approved", minutes, approver_id)
        logger.info(f"Minutes of assembly {assembly.pk} approved by {approver_id}")
        return minutes

    @staticmethod
    @transaction.atomic
    def publish(assembly: Assembly, actor=None) -> AssemblyMinutes:
        minutes = MinutesService.get(assembly)
        if minutes.status != AssemblyMinutes.STATUS_APPROVED:
            raise MinutesLocked("The minutes must be approved before publishing.")
        minutes.status = AssemblyMinutes.STATUS_PUBLISHED
        minutes.published_at = timezone.now()
        minutes.save(update_fields=["status", "published_at", "updated_at"])

        audit.record(assembly.pk, "minutes_published", minutes, actor)
        logger.info(f"Minutes of assembly {assembly.pk} published")
        return minutes
