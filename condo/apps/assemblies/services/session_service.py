# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Participant session tokens.

A token is issued at check-in and identifies one Participant for the rest
of the meeting. Only its SHA-256 is stored. Tokens do not expire; what a
participant may do is decided by the participant's own state (approval,
joined/left), so the voting screen can keep polling with one token.
"""

import hashlib
import logging
import secrets

from django.core.exceptions import ValidationError

from apps.assemblies.exceptions import NotFound, SessionInvalid
from apps.assemblies.models import AgendaItem, Assembly, Participant, Vote

from .otp_service import OTPService

logger = logging.getLogger(__name__)


class SessionService:
    """Issue and resolve participant session tokens."""

    @staticmethod
    def generate_token() -> str:
        """Generate a new random token (64 hex chars)."""
        return secrets.token_hex(32)

    @staticmethod
    def hash_token(token: str) -> str:
        """Hash a token for storage."""
        return hashlib.sha256(token.encode()).hexdigest()

    @staticmethod
    def issue(participant: Participant) -> str:
        """
        Issue a fresh token for the participant, replacing any previous one.

        Returns:
            The raw token (only shown to the participant once)
        """
        token = SessionService.generate_token()
        participant.session_token_hash = SessionService.hash_token(token)
        participant.save(update_fields=["session_token_hash", "updated_at"])
        logger.debug(f"Issued session token for participant {participant.pk}")
        return token

    @staticmethod
    def resolve(token: str) -> Participant:
        """
        Resolve a token to its participant.

        Raises:
            SessionInvalid: If the token is empty or unknown
        """
        if not token:
            raise SessionInvalid()
        try:
            return Participant.objects.select_related("assembly", "unit").get(
                session_token_hash=SessionService.hash_token(token)
            )
        except Participant.DoesNotExist:
            logger.warning("Rejected unknown session token")
            raise SessionInvalid()

    # -------------------------------------------------------------------------
    # Participant views
    # -------------------------------------------------------------------------

    @staticmethod
    def status_message(participant: Participant) -> str:
        """Human-readable explanation of what the participant can do now."""
        if participant.assembly.status != Assembly.STATUS_IN_PROGRESS:
            return "The assembly is not in progress."
        if participant.approval_status == Participant.APPROVAL_REJECTED:
            reason = participant.rejection_reason or "no reason given"
            return f"Your proxy credential was rejected ({reason}). Upload a new document to resubmit."
        if participant.approval_status == Participant.APPROVAL_PENDING:
            return "Your proxy credential is waiting for approval by the syndic."
        if participant.left_at is not None:
            return "You have left the assembly. Check in again to rejoin."
        return "You are checked in and can vote when an agenda item is opened."

    @staticmethod
    def session_info(token: str) -> dict:
        participant = SessionService.resolve(token)
        assembly = participant.assembly
        return {
            "participant_id": str(participant.id),
            "assembly_id": str(assembly.id),
            "assembly_title": assembly.title,
            "assembly_status": assembly.status,
            "unit_identifier": participant.unit.identifier,
            "proxy_name": participant.proxy_name or None,
            "approval_status": participant.approval_status,
            "rejection_reason": participant.rejection_reason or None,
            "joined_at": participant.joined_at.isoformat() if participant.joined_at else None,
            "left_at": participant.left_at.isoformat() if participant.left_at else None,
            "voting_weight": str(participant.voting_weight),
            "can_vote": participant.can_vote and assembly.is_in_progress,
            "message": SessionService.status_message(participant),
        }

    @staticmethod
    def _agenda_entry(item: AgendaItem, participant: Participant, has_voted: bool) -> dict:
        data = {
            "id": str(item.id),
            "title": item.title,
            "description": item.description,
            "order_index": item.order_index,
            "status": item.status,
            "has_voted": has_voted,
            "can_vote": (
                participant.can_vote
                and participant.assembly.is_in_progress
                and item.status == AgendaItem.STATUS_VOTING
                and not has_voted
            ),
            "voting_code_expires_at": None,
        }
        if item.status == AgendaItem.STATUS_VOTING:
            otp = OTPService.current_voting_code(item)
            if otp is not None:
                data["voting_code_expires_at"] = otp.expires_at.isoformat()
        return data

    @staticmethod
    def session_agenda(token: str) -> list[dict]:
        """Agenda of the participant's assembly with their own voting state."""
        participant = SessionService.resolve(token)
        voted_item_ids = set(Vote.objects.filter(participant=participant).values_list("agenda_item_id", flat=True))
        return [
            SessionService._agenda_entry(item, participant, item.id in voted_item_ids)
            for item in AgendaItem.objects.filter(assembly_id=participant.assembly_id).order_by("order_index")
        ]

    @staticmethod
    def agenda_item(token: str, item_id) -> dict:
        """
        One agenda item as the participant sees it.

        Raises:
            SessionInvalid: If the token is unknown
            NotFound: If the item is not on the participant's assembly agenda
        """
        participant = SessionService.resolve(token)
        try:
            item = AgendaItem.objects.get(pk=item_id, assembly_id=participant.assembly_id)
        except (AgendaItem.DoesNotExist, ValidationError):
            raise NotFound("Agenda item not found.")
        has_voted = Vote.objects.filter(agenda_item=item, participant=participant).exists()
        return SessionService._agenda_entry(item, participant, has_voted)
