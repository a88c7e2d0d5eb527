# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Attendance tracking and quorum.

Check-in is an upsert keyed by (assembly, unit): re-entry updates the same
Participant row, refreshes ``joined_at`` and clears ``left_at``. The syndic
can register a unit's representative beforehand; check-in then picks up
that row instead of creating one. Quorum is computed on demand from
approved, present participants against the total ownership fraction of
the condominium.
"""

import logging
import secrets
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from apps.assemblies.exceptions import (
    AssemblyNotInProgress,
    InvalidInput,
    InvalidState,
    NotFound,
    OtpInvalid,
    ParticipantHasVotes,
    UnitAlreadyRegistered,
)
from apps.assemblies.models import Assembly, Participant, Vote
from apps.tenants.models import Unit

from . import audit, inputs
from .otp_service import OTPService
from .session_service import SessionService

logger = logging.getLogger(__name__)

PERCENT_QUANTUM = Decimal("0.01")
EDITABLE_FIELDS = ("resident_reference", "proxy_name", "proxy_document", "voting_weight")


@dataclass(frozen=True)
class Quorum:
    """Live quorum of an assembly."""

    present: int
    total_units: int
    present_weight: Decimal
    total_weight: Decimal
    percentage: Decimal

    def as_dict(self) -> dict:
        return {
            "present": self.present,
            "total_units": self.total_units,
            "present_weight": str(self.present_weight),
            "total_weight": str(self.total_weight),
            "percentage": str(self.percentage),
        }


@dataclass(frozen=True)
class CheckInResult:
    participant: Participant
    session_token: str
    created: bool


def present_and_approved(queryset):
    """Filter participants that count for quorum and may vote."""
    return queryset.filter(
        approval_status=Participant.APPROVAL_APPROVED,
        joined_at__isnull=False,
        left_at__isnull=True,
    )


class AttendanceService:
    """Check-in, departure and quorum for assemblies."""

    # -------------------------------------------------------------------------
    # Check-in link
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def issue_checkin_token(assembly: Assembly, actor=None) -> str:
        """
        Create or rotate the token distributed as check-in link/QR code.

        Raises:
            InvalidState: If the assembly is finished or cancelled
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.is_terminal:
            raise InvalidState("Check-in links cannot be issued for a finished or cancelled assembly.")

        token = secrets.token_hex(32)
        locked.checkin_token = token
        locked.save(update_fields=["checkin_token", "updated_at"])
        assembly.checkin_token = token

        audit.record(assembly.pk, "checkin_token_issued", assembly, actor)
        logger.info(f"Issued check-in link for assembly {assembly.pk}")
        return token

    @staticmethod
    def resolve_checkin_token(token: str) -> Assembly:
        if not token:
            raise NotFound("Invalid check-in link.")
        try:
            return Assembly.objects.select_related("condominium").get(checkin_token=token)
        except Assembly.DoesNotExist:
            raise NotFound("Invalid check-in link.")

    @staticmethod
    def checkin_info(token: str) -> dict:
        """Public information shown on the check-in page."""
        assembly = AttendanceService.resolve_checkin_token(token)
        return {
            "assembly": {
                "id": str(assembly.id),
                "title": assembly.title,
                "status": assembly.status,
                "scheduled_at": assembly.scheduled_at.isoformat(),
                "condominium": assembly.condominium.name,
            },
            "accepting_checkins": assembly.is_in_progress,
            "requires_code": OTPService.current_checkin_code(assembly) is not None,
        }

    # -------------------------------------------------------------------------
    # Check-in / departure
    # -------------------------------------------------------------------------

    @staticmethod
    def check_in_with_token(checkin_token: str, code, unit_identifier: str, **proxy_info) -> CheckInResult:
        """Check in through the distributed link (token + code + unit)."""
        assembly = AttendanceService.resolve_checkin_token(checkin_token)
        return AttendanceService.check_in(assembly, unit_identifier, code, **proxy_info)

    @staticmethod
    @transaction.atomic
    def check_in(
        assembly: Assembly,
        unit_identifier: str,
        code,
        proxy_name: str = "",
        proxy_document: str = "",
        resident_reference: str = "",
    ) -> CheckInResult:
        """
        Check a unit into a running assembly.

        Args:
            assembly: The assembly
            unit_identifier: Unit identifier as typed by the participant (e.g. "A-101")
            code: The current check-in code
            proxy_name: Name of the proxy, empty if the resident attends in person
            proxy_document: Proxy's ID document number
            resident_reference: Opaque resident reference, if known

        Returns:
            CheckInResult with the participant and a freshly issued session token

        Raises:
            AssemblyNotInProgress: If the assembly is not in progress
            OtpInvalid: If the check-in code is missing, expired or wrong
            NotFound: If the unit does not exist in the assembly's condominium
            InvalidInput: If the unit identifier is empty or proxy data is too long
        """
        unit_identifier = inputs.text(unit_identifier, "Unit identifier")
        proxy_name = inputs.text(proxy_name, "Proxy name")
        proxy_document = inputs.text(proxy_document, "Proxy document")
        resident_reference = inputs.text(resident_reference, "Resident reference")

        if not assembly.is_in_progress:
            raise AssemblyNotInProgress()
        if not OTPService.validate_checkin_code(assembly, code):
            logger.warning(f"Rejected check-in code for assembly {assembly.pk}")
            raise OtpInvalid()
        if not unit_identifier:
            raise InvalidInput("Unit identifier is required.")
        if len(proxy_name) > 200 or len(proxy_document) > 50 or len(resident_reference) > 100:
            raise InvalidInput("Proxy name, document or resident reference is too long.")

        unit = AttendanceService._unit(assembly, unit_identifier)

        now = timezone.now()
        token = SessionService.generate_token()

        participant, created = Participant.objects.select_for_update().get_or_create(
            assembly=assembly,
            unit=unit,
            defaults={
                "resident_reference": resident_reference or "",
                "proxy_name": proxy_name,
                "proxy_document": proxy_document,
                "approval_status": Participant.APPROVAL_PENDING if proxy_name else Participant.APPROVAL_APPROVED,
                "voting_weight": unit.fraction,
                "joined_at": now,
                "session_token_hash": SessionService.hash_token(token),
            },
        )

        if not created:
            participant.joined_at = now
            participant.left_at = None
            participant.session_token_hash = SessionService.hash_token(token)
            if resident_reference:
                participant.resident_reference = resident_reference

            if proxy_name and proxy_name != participant.proxy_name:
                # A different representative: the credential must be reviewed again
                participant.proxy_name = proxy_name
                participant.proxy_document = proxy_document
                participant.proxy_file = ""
                participant.proxy_file_name = ""
                participant.proxy_file_mime_type = ""
                participant.proxy_file_size = 0
                AttendanceService._reset_review(participant, Participant.APPROVAL_PENDING)
            elif not proxy_name and participant.is_proxy:
                # The owner attends in person
                participant.proxy_name = ""
                participant.proxy_document = ""
                AttendanceService._reset_review(participant, Participant.APPROVAL_APPROVED)
            elif proxy_document:
                participant.proxy_document = proxy_document

            participant.save()

        audit.record(
            assembly.pk,
            "participant_checked_in",
            participant,
            participant.pk,
            unit=unit.identifier,
            proxy=participant.is_proxy,
            reentry=not created,
        )
        logger.info(
            f"Unit {unit.identifier} checked in to assembly {assembly.pk} "
            f"({'proxy' if participant.is_proxy else 'resident'}, {participant.approval_status})"
        )
        return CheckInResult(participant=participant, session_token=token, created=created)

    @staticmethod
    def _reset_review(participant: Participant, status: str) -> None:
        participant.approval_status = status
        participant.approved_by = ""
        participant.approved_at = None
        participant.rejected_by = ""
        participant.rejected_at = None
        participant.rejection_reason = ""

    @staticmethod
    def _unit(assembly: Assembly, identifier: str) -> Unit:
        try:
            return Unit.objects.get(condominium_id=assembly.condominium_id, identifier=identifier, is_active=True)
        except Unit.DoesNotExist:
            raise NotFound(f'Unit "{identifier}" not found in this condominium.')

    # -------------------------------------------------------------------------
    # Registration by the syndic
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def register(
        assembly: Assembly,
        unit_identifier: str,
        resident_reference: str = "",
        proxy_name: str = "",
        proxy_document: str = "",
        voting_weight=None,
        actor=None,
    ) -> Participant:
        """
        Register a unit's representative ahead of check-in.

        The row is the same one check-in later updates, so a registered
        proxy keeps its pending review when they arrive.

        Args:
            assembly: The assembly
            unit_identifier: Unit identifier (e.g. "A-101")
            resident_reference: Opaque reference of the attending resident
            proxy_name: Name of the proxy, if the unit sends one
            proxy_document: Proxy's ID document number
            voting_weight: Overrides the unit's ownership fraction
            actor: Opaque identity of the syndic

        Raises:
            InvalidState: If the assembly is finished or cancelled
            InvalidInput: If neither resident nor proxy is given, or data is malformed
            NotFound: If the unit does not exist in the condominium
            UnitAlreadyRegistered: If the unit already has a participant
        """
        unit_identifier = inputs.text(unit_identifier, "Unit identifier")
        resident_reference = inputs.text(resident_reference, "Resident reference")
        proxy_name = inputs.text(proxy_name, "Proxy name")
        proxy_document = inputs.text(proxy_document, "Proxy document")

        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if locked.is_terminal:
            raise InvalidState("Participants cannot be registered for a finished or cancelled assembly.")
        if not unit_identifier:
            raise InvalidInput("Unit identifier is required.")
        if not resident_reference and not proxy_name:
            raise InvalidInput("Give the resident or the proxy's details.")
        if len(proxy_name) > 200 or len(proxy_document) > 50 or len(resident_reference) > 100:
            raise InvalidInput("Proxy name, document or resident reference is too long.")

        unit = AttendanceService._unit(locked, unit_identifier)
        weight = unit.fraction if voting_weight is None else inputs.voting_weight(voting_weight)

        if Participant.objects.filter(assembly=locked, unit=unit).exists():
            raise UnitAlreadyRegistered()
        try:
            with transaction.atomic():
                participant = Participant.objects.create(
                    assembly=locked,
                    unit=unit,
                    resident_reference=resident_reference,
                    proxy_name=proxy_name,
                    proxy_document=proxy_document,
                    approval_status=Participant.APPROVAL_PENDING if proxy_name else Participant.APPROVAL_APPROVED,
                    voting_weight=weight,
                )
        except IntegrityError:
            raise UnitAlreadyRegistered()

        audit.record(locked.pk, "participant_registered", participant, actor, unit=unit.identifier, proxy=bool(proxy_name))
        logger.info(f"Unit {unit.identifier} registered for assembly {locked.pk}")
        return participant

    @staticmethod
    @transaction.atomic
    def update_participant(participant: Participant, actor=None, **data) -> Participant:
        """
        Change a participant's representative details or weight.

        A new proxy name sends the credential back to review; clearing it
        means the owner represents the unit in person.

        Raises:
            InvalidState: If the assembly is finished or cancelled
            InvalidInput: If a value is malformed
        """
        locked = Participant.objects.select_for_update().select_related("assembly", "unit").get(pk=participant.pk)
        if locked.assembly.is_terminal:
            raise InvalidState("Participants of a finished or cancelled assembly cannot change.")

        data = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        changed = []
        if "resident_reference" in data:
            reference = inputs.text(data["resident_reference"], "Resident reference")
            if len(reference) > 100:
                raise InvalidInput("Resident reference is too long.")
            locked.resident_reference = reference
            changed.append("resident_reference")
        if "proxy_document" in data:
            document = inputs.text(data["proxy_document"], "Proxy document")
            if len(document) > 50:
                raise InvalidInput("Proxy document is too long.")
            locked.proxy_document = document
            changed.append("proxy_document")
        if "proxy_name" in data:
            name = inputs.text(data["proxy_name"], "Proxy name")
            if len(name) > 200:
                raise InvalidInput("Proxy name is too long.")
            if name != locked.proxy_name:
                AttendanceService._reset_review(
                    locked, Participant.APPROVAL_PENDING if name else Participant.APPROVAL_APPROVED
                )
                if not name:
                    locked.proxy_document = ""
                locked.proxy_name = name
                locked.proxy_file = ""
                locked.proxy_file_name = ""
                locked.proxy_file_mime_type = ""
                locked.proxy_file_size = 0
                changed.append("proxy_name")
        if "voting_weight" in data:
            locked.voting_weight = inputs.voting_weight(data["voting_weight"])
            changed.append("voting_weight")

        locked.save()
        participant.refresh_from_db()

        if changed:
            audit.record(locked.assembly_id, "participant_updated", locked, actor, fields=changed)
            logger.info(f"Participant {locked.pk} updated ({', '.join(changed)})")
        return locked

    @staticmethod
    @transaction.atomic
    def remove_participant(participant: Participant, actor=None) -> None:
        """
        Remove a participant who has not voted.

        Raises:
            InvalidState: If the assembly is finished or cancelled
            ParticipantHasVotes: If the participant cast a ballot
        """
        locked = Participant.objects.select_for_update().select_related("assembly", "unit").get(pk=participant.pk)
        if locked.assembly.is_terminal:
            raise InvalidState("Participants of a finished or cancelled assembly cannot be removed.")
        if Vote.objects.filter(participant=locked).exists():
            raise ParticipantHasVotes()

        audit.record(locked.assembly_id, "participant_removed", locked, actor, unit=locked.unit.identifier)
        logger.info(f"Participant {locked.pk} removed from assembly {locked.assembly_id}")
        locked.delete()

    @staticmethod
    @transaction.atomic
    def mark_joined(participant: Participant, actor=None) -> Participant:
        """
        Record at the door that a registered participant arrived.

        Raises:
            AssemblyNotInProgress: If the assembly is not running
        """
        locked = Participant.objects.select_for_update().select_related("assembly").get(pk=participant.pk)
        if not locked.assembly.is_in_progress:
            raise AssemblyNotInProgress()

        locked.joined_at = timezone.now()
        locked.left_at = None
        locked.save(update_fields=["joined_at", "left_at", "updated_at"])
        participant.joined_at = locked.joined_at
        participant.left_at = None

        audit.record(locked.assembly_id, "participant_joined", locked, actor)
        logger.info(f"Participant {locked.pk} marked present in assembly {locked.assembly_id}")
        return locked

    @staticmethod
    @transaction.atomic
    def mark_left(participant: Participant, actor=None) -> Participant:
        """
        Record that a participant left. Marking an absent participant is a no-op.

        Raises:
            AssemblyNotInProgress: If the assembly is no longer running
        """
        locked = Participant.objects.select_for_update().select_related("assembly").get(pk=participant.pk)
        if locked.joined_at is None or locked.left_at is not None:
            return locked
        if not locked.assembly.is_in_progress:
            raise AssemblyNotInProgress()

        locked.left_at = timezone.now()
        locked.save(update_fields=["left_at", "updated_at"])
        participant.left_at = locked.left_at

        audit.record(locked.assembly_id, "participant_left", locked, actor or locked.pk)
        logger.info(f"Participant {locked.pk} left assembly {locked.assembly_id}")
        return locked

    @staticmethod
    @transaction.atomic
    def set_voting_weight(participant: Participant, weight, actor=None) -> Participant:
        """
        Correct a participant's voting weight. Votes already cast keep their snapshot.

        Raises:
            InvalidInput: If the weight is not a number between 0 and 999
            AssemblyNotInProgress: If the assembly is not running
        """
        weight = inputs.voting_weight(weight)

        locked = Participant.objects.select_for_update().select_related("assembly").get(pk=participant.pk)
        if not locked.assembly.is_in_progress:
            raise AssemblyNotInProgress()

        previous = locked.voting_weight
        locked.voting_weight = weight
        locked.save(update_fields=["voting_weight", "updated_at"])
        participant.voting_weight = weight

        audit.record(locked.assembly_id, "weight_changed", locked, actor, previous=str(previous), current=str(weight))
        logger.info(f"Voting weight of participant {locked.pk} changed from {previous} to {weight}")
        return locked

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @staticmethod
    def get_participant(assembly: Assembly, participant_id) -> Participant:
        try:
            return Participant.objects.select_related("unit", "assembly").get(pk=participant_id, assembly=assembly)
        except (Participant.DoesNotExist, ValidationError):
            raise NotFound("Participant not found.")

    @staticmethod
    def participants(assembly: Assembly):
        return Participant.objects.filter(assembly=assembly).select_related("unit").order_by("unit__identifier")

    @staticmethod
    def quorum(assembly: Assembly) -> Quorum:
        """
        Weighted quorum: approved present weight / total unit fraction x 100.

        Computed on every call so late approvals and departures show immediately.
        """
        units = Unit.objects.filter(condominium_id=assembly.condominium_id, is_active=True).aggregate(
            count=Count("id"), weight=Sum("fraction")
        )
        present = present_and_approved(Participant.objects.filter(assembly=assembly)).aggregate(
            count=Count("id"), weight=Sum("voting_weight")
        )

        total_weight = units["weight"] or Decimal("0")
        present_weight = present["weight"] or Decimal("0")
        if total_weight > 0:
            percentage = (present_weight / total_weight * 100).quantize(PERCENT_QUANTUM)
        else:
            percentage = Decimal("0.00")

        return Quorum(
            present=present["count"],
            total_units=units["count"],
            present_weight=present_weight,
            total_weight=total_weight,
            percentage=percentage,
        )

    @staticmethod
    def attendance_status(assembly: Assembly) -> dict:
        """Counters for the syndic dashboard."""
        counts = Participant.objects.filter(assembly=assembly).aggregate(
            registered=Count("id"),
            checked_in=Count("id", filter=Q(joined_at__isnull=False)),
            checked_out=Count("id", filter=Q(left_at__isnull=False)),
            currently_present=Count("id", filter=Q(joined_at__isnull=False, left_at__isnull=True)),
            pending_proxies=Count("id", filter=Q(approval_status=Participant.APPROVAL_PENDING)),
            rejected_proxies=Count("id", filter=Q(approval_status=Participant.APPROVAL_REJECTED)),
        )
        return {
            "assembly_id": str(assembly.id),
            "assembly_title": assembly.title,
            "status": assembly.status,
            **counts,
            "quorum": AttendanceService.quorum(assembly).as_dict(),
        }
