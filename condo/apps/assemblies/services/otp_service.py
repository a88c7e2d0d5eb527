# SPDX-License-Identifier: AGPL-3.0-or-later
"""
One-time codes for check-in and voting.

Two independent scopes exist:
- check-in code, stored on the Assembly
- voting code, stored on each AgendaItem

Codes are 6-digit strings drawn from ``secrets``. Each scope holds exactly
one code; issuing a new one replaces the previous code in a single row
update, so two codes are never valid at the same time. A code is valid up
to and including its ``expires_at``.
"""

import hmac
import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.assemblies.exceptions import AssemblyNotInProgress, NotVoting
from apps.assemblies.models import AgendaItem, Assembly

from . import audit

logger = logging.getLogger(__name__)

OTP_LENGTH = 6


@dataclass(frozen=True)
class OneTimeCode:
    """A code together with its validity window."""

    code: str
    generated_at: datetime
    expires_at: datetime

    def is_valid_at(self, now: datetime) -> bool:
        return now <= self.expires_at

    def remaining_seconds(self, now: datetime | None = None) -> int:
        now = now or timezone.now()
        return max(0, math.ceil((self.expires_at - now).total_seconds()))

    def as_dict(self, now: datetime | None = None, include_code: bool = True) -> dict:
        data = {
            "generated_at": self.generated_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "remaining_seconds": self.remaining_seconds(now),
        }
        if include_code:
            data["code"] = self.code
        return data


def generate_code(previous: str | None = None) -> str:
    """Draw a fresh zero-padded numeric code, never equal to ``previous``."""
    while True:
        code = f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"
        if code != previous:
            return code


def issue_code(minutes: int, previous: str | None = None, now: datetime | None = None) -> OneTimeCode:
    """Create a code valid for ``minutes`` from ``now``."""
    now = now or timezone.now()
    return OneTimeCode(
        code=generate_code(previous),
        generated_at=now,
        expires_at=now + timedelta(minutes=minutes),
    )


def matches(otp: OneTimeCode | None, submitted, now: datetime | None = None) -> bool:
    """
    Check a submitted code against the current one.

    Fails closed: no current code, no submission, expired window and
    mismatch all return False. Comparison is constant-time.
    """
    if otp is None or not submitted:
        return False
    now = now or timezone.now()
    if not otp.is_valid_at(now):
        return False
    return hmac.compare_digest(otp.code.encode(), str(submitted).strip().encode())


def checkin_code_of(assembly: Assembly) -> OneTimeCode | None:
    if not (assembly.checkin_code and assembly.checkin_code_generated_at and assembly.checkin_code_expires_at):
        return None
    return OneTimeCode(
        code=assembly.checkin_code,
        generated_at=assembly.checkin_code_generated_at,
        expires_at=assembly.checkin_code_expires_at,
    )


def voting_code_of(item: AgendaItem) -> OneTimeCode | None:
    if not (item.voting_code and item.voting_code_generated_at and item.voting_code_expires_at):
        return None
    return OneTimeCode(
        code=item.voting_code,
        generated_at=item.voting_code_generated_at,
        expires_at=item.voting_code_expires_at,
    )


def apply_voting_code(item: AgendaItem, now: datetime | None = None) -> OneTimeCode:
    """Set a fresh voting code on an (already locked) agenda item without saving."""
    otp = issue_code(settings.ASSEMBLY_VOTING_OTP_MINUTES, previous=item.voting_code, now=now)
    item.voting_code = otp.code
    item.voting_code_generated_at = otp.generated_at
    item.voting_code_expires_at = otp.expires_at
    return otp


def clear_voting_code(item: AgendaItem) -> None:
    item.voting_code = None
    item.voting_code_generated_at = None
    item.voting_code_expires_at = None


def clear_checkin_code(assembly: Assembly) -> None:
    assembly.checkin_code = None
    assembly.checkin_code_generated_at = None
    assembly.checkin_code_expires_at = None


class OTPService:
    """
    Issue, read and validate one-time codes.

    Every comparison goes through ``matches`` so the expiry and
    replacement rules live in one place.
    """

    # -------------------------------------------------------------------------
    # Check-in scope (assembly)
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def issue_checkin_code(assembly: Assembly, actor=None) -> OneTimeCode:
        """
        Generate a new check-in code, replacing the current one.

        Args:
            assembly: The assembly (must be in progress)
            actor: Opaque identity of the syndic issuing the code

        Returns:
            The new OneTimeCode

        Raises:
            AssemblyNotInProgress: If the assembly is not in progress
        """
        locked = Assembly.objects.select_for_update().get(pk=assembly.pk)
        if not locked.is_in_progress:
            raise AssemblyNotInProgress()

        otp = issue_code(settings.ASSEMBLY_CHECKIN_OTP_MINUTES, previous=locked.checkin_code)
        locked.checkin_code = otp.code
        locked.checkin_code_generated_at = otp.generated_at
        locked.checkin_code_expires_at = otp.expires_at
        locked.save(update_fields=["checkin_code", "checkin_code_generated_at", "checkin_code_expires_at", "updated_at"])

        assembly.checkin_code = locked.checkin_code
        assembly.checkin_code_generated_at = locked.checkin_code_generated_at
        assembly.checkin_code_expires_at = locked.checkin_code_expires_at

        audit.record(assembly.pk, "checkin_code_issued", assembly, actor, expires_at=otp.expires_at.isoformat())
        logger.info(f"Issued check-in code for assembly {assembly.pk} (expires {otp.expires_at.isoformat()})")
        return otp

    @staticmethod
    def current_checkin_code(assembly: Assembly, now: datetime | None = None) -> OneTimeCode | None:
        """Return the live check-in code for display, or None if missing/expired."""
        otp = checkin_code_of(assembly)
        if otp is None or not otp.is_valid_at(now or timezone.now()):
            return None
        return otp

    @staticmethod
    def validate_checkin_code(assembly: Assembly, submitted, now: datetime | None = None) -> bool:
        if not assembly.is_in_progress:
            return False
        return matches(checkin_code_of(assembly), submitted, now)

    # -------------------------------------------------------------------------
    # Voting scope (agenda item)
    # -------------------------------------------------------------------------

    @staticmethod
    @transaction.atomic
    def issue_voting_code(item: AgendaItem, actor=None) -> OneTimeCode:
        """
        Regenerate the voting code of an item that is being voted on.

        Raises:
            NotVoting: If the item is not in voting
        """
        locked = AgendaItem.objects.select_for_update().get(pk=item.pk)
        if locked.status != AgendaItem.STATUS_VOTING:
            raise NotVoting()

        otp = apply_voting_code(locked)
        locked.save(update_fields=["voting_code", "voting_code_generated_at", "voting_code_expires_at", "updated_at"])

        item.voting_code = locked.voting_code
        item.voting_code_generated_at = locked.voting_code_generated_at
        item.voting_code_expires_at = locked.voting_code_expires_at

        audit.record(item.assembly_id, "voting_code_issued", item, actor, expires_at=otp.expires_at.isoformat())
        logger.info(f"Issued voting code for agenda item {item.pk} (expires {otp.expires_at.isoformat()})")
        return otp

    @staticmethod
    def current_voting_code(item: AgendaItem, now: datetime | None = None) -> OneTimeCode | None:
        otp = voting_code_of(item)
        if otp is None or not otp.is_valid_at(now or timezone.now()):
            return None
        return otp

    @staticmethod
    def validate_voting_code(item: AgendaItem, submitted, now: datetime | None = None) -> bool:
        if item.status != AgendaItem.STATUS_VOTING:
            return False
        return matches(voting_code_of(item), submitted, now)
