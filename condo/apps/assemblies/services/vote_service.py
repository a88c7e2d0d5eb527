# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Vote casting and tallying.

A ballot is accepted only after these checks, in this order:

1. the agenda item is voting          -> VotingClosed
2. the voting code is valid           -> OtpInvalid
3. the session resolves to a present,
   approved participant of the same
   assembly                           -> SessionInvalid / NotEligible
4. no ballot exists for the pair      -> AlreadyVoted

The participant's weight is copied into the Vote row; later corrections
never change a cast ballot. Casting is deliberately not idempotent: a
repeated call raises AlreadyVoted, backed by a unique constraint.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import Count, Sum

from apps.assemblies.exceptions import (
    AlreadyVoted,
    InvalidInput,
    NotEligible,
    NotFound,
    OtpInvalid,
    VotingClosed,
)
from apps.assemblies.models import AgendaItem, Participant, Vote

from . import inputs
from .otp_service import OTPService
from .session_service import SessionService

logger = logging.getLogger(__name__)

VALID_CHOICES = {choice for choice, _label in Vote.CHOICES}


def format_weight(value: Decimal) -> str:
    """Render a weight without trailing zeros (0.600000 -> 0.6)."""
    return f"{value.normalize():f}"


@dataclass(frozen=True)
class VoteSummary:
    """Raw counts and weighted sums per choice."""

    yes: int
    no: int
    abstention: int
    weighted_yes: Decimal
    weighted_no: Decimal
    weighted_abstention: Decimal

    @property
    def total(self) -> int:
        return self.yes + self.no + self.abstention

    @property
    def weighted_total(self) -> Decimal:
        return self.weighted_yes + self.weighted_no + self.weighted_abstention

    def weighted_percentage(self, choice: str) -> Decimal:
        """Share of the weighted total for one choice, in percent."""
        if not self.weighted_total:
            return Decimal("0.00")
        weight = getattr(self, f"weighted_{choice}")
        return (weight / self.weighted_total * 100).quantize(Decimal("0.01"))

    def as_dict(self) -> dict:
        return {
            "yes": self.yes,
            "no": self.no,
            "abstention": self.abstention,
            "total": self.total,
            "weighted_yes": format_weight(self.weighted_yes),
            "weighted_no": format_weight(self.weighted_no),
            "weighted_abstention": format_weight(self.weighted_abstention),
            "weighted_total": format_weight(self.weighted_total),
            "percentages": {choice: str(self.weighted_percentage(choice)) for choice in ("yes", "no", "abstention")},
        }

    def result_line(self) -> str:
        """Tally written to the agenda item when voting closes."""
        return " | ".join(
            f"{choice.upper()}: {getattr(self, choice)} ({format_weight(getattr(self, f'weighted_{choice}'))})"
            for choice in ("yes", "no", "abstention")
        )


class VoteService:
    """Accept ballots and report results."""

    @staticmethod
    def cast(agenda_item_id, session_token: str, code, choice: str, now: datetime | None = None) -> Vote:
        """
        Cast one ballot.

        Args:
            agenda_item_id: The agenda item being voted on
            session_token: The participant's session token
            code: The current voting code of the item
            choice: "yes", "no" or "abstention"
            now: Reference time for the code check (defaults to now)

        Returns:
            The stored Vote

        Raises:
            InvalidInput: If the choice is unknown
            NotFound: If the agenda item does not exist
            VotingClosed: If the item is not open for voting
            OtpInvalid: If the voting code is missing, expired or wrong
            SessionInvalid: If the token is unknown
            NotEligible: If the participant may not vote on this item
            AlreadyVoted: If the participant already voted on this item
        """
        choice = inputs.text(choice, "Choice").lower()
        if choice not in VALID_CHOICES:
            raise InvalidInput("Choice must be one of: yes, no, abstention.")

        with transaction.atomic():
            # Locking the item serialises casts against close_voting
            try:
                item = AgendaItem.objects.select_for_update().get(pk=agenda_item_id)
            except (AgendaItem.DoesNotExist, ValidationError):
                raise NotFound("Agenda item not found.")

            if item.status != AgendaItem.STATUS_VOTING:
                raise VotingClosed()
            if not OTPService.validate_voting_code(item, code, now):
                logger.warning(f"Rejected voting code for agenda item {item.pk}")
                raise OtpInvalid()

            participant = SessionService.resolve(session_token)
            participant = Participant.objects.select_for_update().get(pk=participant.pk)
            if participant.assembly_id != item.assembly_id or not participant.can_vote:
                raise NotEligible()

            if Vote.objects.filter(agenda_item=item, participant=participant).exists():
                raise AlreadyVoted()

            try:
                with transaction.atomic():
                    vote = Vote.objects.create(
                        agenda_item=item,
                        participant=participant,
                        choice=choice,
                        voting_weight=participant.voting_weight,
                    )
            except IntegrityError:
                raise AlreadyVoted()

        logger.info(f"Vote recorded for agenda item {item.pk} by participant {participant.pk}")
        return vote

    @staticmethod
    def summary(item: AgendaItem) -> VoteSummary:
        """Aggregate counts and weighted sums for an agenda item."""
        rows = (
            Vote.objects.filter(agenda_item=item)
            .order_by()
            .values("choice")
            .annotate(count=Count("id"), weight=Sum("voting_weight"))
        )
        counts = {choice: 0 for choice in VALID_CHOICES}
        weights = {choice: Decimal("0") for choice in VALID_CHOICES}
        for row in rows:
            counts[row["choice"]] = row["count"]
            weights[row["choice"]] = row["weight"] or Decimal("0")

        return VoteSummary(
            yes=counts[Vote.CHOICE_YES],
            no=counts[Vote.CHOICE_NO],
            abstention=counts[Vote.CHOICE_ABSTENTION],
            weighted_yes=weights[Vote.CHOICE_YES],
            weighted_no=weights[Vote.CHOICE_NO],
            weighted_abstention=weights[Vote.CHOICE_ABSTENTION],
        )

    @staticmethod
    def votes(item: AgendaItem):
        return Vote.objects.filter(agenda_item=item).select_related("participant__unit").order_by("created_at")

    @staticmethod
    def has_voted(item: AgendaItem, participant: Participant) -> bool:
        return Vote.objects.filter(agenda_item=item, participant=participant).exists()
