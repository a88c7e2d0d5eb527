# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Assembly engine services.

Each service owns the transitions of one component; no service writes
another component's fields directly.
"""

from .agenda_service import AgendaService
from .assembly_service import AssemblyService
from .attendance_service import AttendanceService, Quorum
from .minutes_service import MinutesService
from .otp_service import OneTimeCode, OTPService
from .proxy_service import ProxyService
from .session_service import SessionService
from .vote_service import VoteService, VoteSummary

__all__ = [
    "AgendaService",
    "AssemblyService",
    "AttendanceService",
    "MinutesService",
    "OneTimeCode",
    "OTPService",
    "ProxyService",
    "Quorum",
    "SessionService",
    "VoteService",
    "VoteSummary",
]
