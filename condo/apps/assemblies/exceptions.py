# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Errors raised by the assembly services.

Every error carries a stable machine-readable ``code`` and the HTTP
``status`` the API answers with, so the participant UI can tell
"your code expired" apart from "you already voted".
"""


class AssemblyError(Exception):
    """Base class for all assembly engine errors."""

    code = "assembly_error"
    status = 400
    default_message = "The operation could not be completed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(AssemblyError):
    """Assembly, agenda item, participant or unit missing (or in another tenant)."""

    code = "not_found"
    status = 404
    default_message = "Not found."


class InvalidInput(AssemblyError):
    """Malformed file type/size, missing reason text, bad request data."""

    code = "validation_error"
    status = 400
    default_message = "Invalid input."


# -----------------------------------------------------------------------------
# Lifecycle state errors
# -----------------------------------------------------------------------------


class InvalidState(AssemblyError):
    """Operation attempted outside its required lifecycle state."""

    code = "invalid_state"
    status = 409
    default_message = "Operation not allowed in the current state."


class AssemblyNotInProgress(InvalidState):
    code = "assembly_not_in_progress"
    default_message = "The assembly is not in progress."


class AssemblyNotScheduled(InvalidState):
    code = "assembly_not_scheduled"
    default_message = "Only scheduled assemblies can be changed this way."


class AssemblyNotFinished(InvalidState):
    code = "assembly_not_finished"
    default_message = "The assembly has not been finished yet."


class AnotherItemVoting(InvalidState):
    code = "another_item_voting"
    default_message = "Another agenda item is already being voted on."


class ItemNotPending(InvalidState):
    code = "item_not_pending"
    default_message = "The agenda item is no longer pending."


class NotVoting(InvalidState):
    code = "not_voting"
    default_message = "The agenda item is not open for voting."


class VotingInProgress(InvalidState):
    code = "voting_in_progress"
    default_message = "Close the open vote before finishing the assembly."


class VotingClosed(InvalidState):
    code = "voting_closed"
    default_message = "Voting for this agenda item is closed."


class MinutesLocked(InvalidState):
    code = "minutes_locked"
    default_message = "The minutes can no longer be changed."


# -----------------------------------------------------------------------------
# Credential and eligibility errors
# -----------------------------------------------------------------------------


class OtpInvalid(AssemblyError):
    """Missing, expired or mismatched one-time code."""

    code = "otp_invalid"
    status = 400
    default_message = "The code is invalid or has expired. Ask for a new one."


class SessionInvalid(AssemblyError):
    """Session token does not resolve to a participant."""

    code = "session_invalid"
    status = 401
    default_message = "Your session is not valid. Please check in again."


class NotEligible(AssemblyError):
    """Participant not approved or not currently present."""

    code = "not_eligible"
    status = 403
    default_message = "You are not allowed to vote right now."


class AlreadyVoted(AssemblyError):
    code = "already_voted"
    status = 409
    default_message = "You have already voted on this agenda item."


# -----------------------------------------------------------------------------
# Proxy workflow errors
# -----------------------------------------------------------------------------


class AlreadyApproved(AssemblyError):
    code = "already_approved"
    status = 409
    default_message = "The proxy has already been approved."


class AlreadyRejected(AssemblyError):
    code = "already_rejected"
    status = 409
    default_message = "The proxy has already been rejected."


class NotAProxy(AssemblyError):
    code = "not_a_proxy"
    status = 400
    default_message = "This participant is not a proxy."


# -----------------------------------------------------------------------------
# Participant registration errors
# -----------------------------------------------------------------------------


class UnitAlreadyRegistered(AssemblyError):
    code = "unit_already_registered"
    status = 409
    default_message = "This unit already has a representative registered for the assembly."


class ParticipantHasVotes(AssemblyError):
    code = "participant_has_votes"
    status = 409
    default_message = "Participants who already voted cannot be removed."
