# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Assembly API views.

Provides:
- Syndic API (/condo/<slug>/...): session-authenticated, permission-checked
- Participant API (/condo/public/...): authenticated by check-in link or
  by the participant's session token (Authorization: Bearer <token>)

All engine errors are answered as {"error": <code>, "message": <text>}
with the status carried by the exception.
"""

import logging

from django.http import FileResponse, HttpResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

from apps.assemblies.exceptions import AssemblyError, InvalidInput, NotFound
from apps.assemblies.models import AgendaItem, Assembly, AssemblyMinutes, Participant, Vote
from apps.assemblies.services import (
    AgendaService,
    AssemblyService,
    AttendanceService,
    MinutesService,
    OTPService,
    ProxyService,
    SessionService,
    VoteService,
    agenda_service,
    assembly_service,
    attendance_service,
)
from apps.common.mixins import InvalidJSONBody, JSONViewMixin, iso_datetime

logger = logging.getLogger(__name__)


class NotAuthenticated(AssemblyError):
    code = "not_authenticated"
    status = 401
    default_message = "Authentication required."


class PermissionDenied(AssemblyError):
    code = "permission_denied"
    status = 403
    default_message = "You do not have permission for this action."


def editable(data: dict, fields) -> dict:
    """Keep only the request keys a service accepts as changes."""
    return {key: value for key, value in data.items() if key in fields}


# =============================================================================
# SERIALIZATION
# =============================================================================


def assembly_data(assembly: Assembly) -> dict:
    return {
        "id": str(assembly.id),
        "title": assembly.title,
        "description": assembly.description,
        "location": assembly.location,
        "meeting_url": assembly.meeting_url,
        "scheduled_at": iso_datetime(assembly.scheduled_at),
        "status": assembly.status,
        "started_at": iso_datetime(assembly.started_at),
        "finished_at": iso_datetime(assembly.finished_at),
        "cancelled_at": iso_datetime(assembly.cancelled_at),
        "has_checkin_link": bool(assembly.checkin_token),
    }


def agenda_item_data(item: AgendaItem) -> dict:
    return {
        "id": str(item.id),
        "title": item.title,
        "description": item.description,
        "order_index": item.order_index,
        "status": item.status,
        "requires_quorum": item.requires_quorum,
        "quorum_type": item.quorum_type,
        "result": item.result,
        "voting_started_at": iso_datetime(item.voting_started_at),
        "voting_ended_at": iso_datetime(item.voting_ended_at),
    }


def participant_data(participant: Participant) -> dict:
    return {
        "id": str(participant.id),
        "unit": participant.unit.identifier,
        "resident_reference": participant.resident_reference or None,
        "is_proxy": participant.is_proxy,
        "proxy_name": participant.proxy_name or None,
        "proxy_document": participant.proxy_document or None,
        "has_proxy_file": bool(participant.proxy_file),
        "proxy_file_name": participant.proxy_file_name or None,
        "approval_status": participant.approval_status,
        "approved_by": participant.approved_by or None,
        "approved_at": iso_datetime(participant.approved_at),
        "rejection_reason": participant.rejection_reason or None,
        "joined_at": iso_datetime(participant.joined_at),
        "left_at": iso_datetime(participant.left_at),
        "voting_weight": str(participant.voting_weight),
        "can_vote": participant.can_vote,
    }


def vote_data(vote: Vote) -> dict:
    return {
        "id": str(vote.id),
        "participant_id": str(vote.participant_id),
        "unit": vote.participant.unit.identifier,
        "choice": vote.choice,
        "voting_weight": str(vote.voting_weight),
        "cast_at": iso_datetime(vote.created_at),
    }


def minutes_data(minutes: AssemblyMinutes) -> dict:
    return {
        "id": str(minutes.id),
        "status": minutes.status,
        "content": minutes.content,
        "summary": minutes.summary,
        "vote_summary": minutes.vote_summary,
        "attendance_summary": minutes.attendance_summary,
        "approved_by": minutes.approved_by or None,
        "approved_at": iso_datetime(minutes.approved_at),
        "published_at": iso_datetime(minutes.published_at),
    }


# =============================================================================
# MIXINS
# =============================================================================


class AssemblyAPIMixin(JSONViewMixin):
    """Maps engine errors to JSON responses."""

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except AssemblyError as e:
            return self.error_response(e.code, e.message, e.status)
        except InvalidJSONBody as e:
            return self.error_response("invalid_json", str(e), 400)


class SyndicAPIMixin(AssemblyAPIMixin):
    """
    Mixin for administrative endpoints.

    The condominium and membership are resolved by CondominiumMiddleware.
    ``permissions`` maps HTTP methods to required permissions; anything not
    listed needs ``permission``.
    """

    permission = "assemblies.manage"
    permissions = {"GET": "assemblies.view"}

    condominium = None
    actor = None

    def dispatch(self, request, *args, **kwargs):
        try:
            self.check_access(request)
        except AssemblyError as e:
            return self.error_response(e.code, e.message, e.status)
        return super().dispatch(request, *args, **kwargs)

    def check_access(self, request):
        condominium = getattr(request, "condominium", None)
        if condominium is None:
            raise NotFound("Condominium not found.")
        if not request.user.is_authenticated:
            raise NotAuthenticated()

        membership = getattr(request, "membership", None)
        required = self.permissions.get(request.method, self.permission)
        if membership is None or not membership.has_permission(required):
            logger.warning(f"User {request.user.pk} denied {required} in {condominium.slug}")
            raise PermissionDenied()

        self.condominium = condominium
        self.actor = str(request.user.pk)

    def get_assembly(self, assembly_id) -> Assembly:
        return AssemblyService.get(self.condominium, assembly_id)

    def get_item(self, assembly_id, item_id) -> AgendaItem:
        return AgendaService.get_item(self.get_assembly(assembly_id), item_id)

    def get_participant(self, assembly_id, participant_id) -> Participant:
        return AttendanceService.get_participant(self.get_assembly(assembly_id), participant_id)


class SyndicBaseView(SyndicAPIMixin, View):
    def http_method_not_allowed(self, request, *args, **kwargs):
        return self.error_response("method_not_allowed", f"{request.method} is not allowed.", 405)


@method_decorator(csrf_exempt, name="dispatch")
class ParticipantView(AssemblyAPIMixin, View):
    """Base view for endpoints used by participants' phones."""

    def get_session_token(self, request) -> str:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:].strip()
        return ""


# =============================================================================
# ASSEMBLIES (SYNDIC)
# =============================================================================


class AssemblyListView(SyndicBaseView):
    """List or schedule assemblies."""

    def get(self, request, tenant_slug: str):
        assemblies = AssemblyService.list_for(self.condominium, status=request.GET.get("status"))
        return self.json_response({"data": [assembly_data(a) for a in assemblies[:100]]})

    def post(self, request, tenant_slug: str):
        data = self.parse_json_body(request)
        assembly = AssemblyService.create(
            self.condominium,
            title=data.get("title"),
            scheduled_at=data.get("scheduled_at"),
            created_by=self.actor,
            description=data.get("description", ""),
            location=data.get("location", ""),
            meeting_url=data.get("meeting_url", ""),
        )
        return self.json_response(assembly_data(assembly), status=201)


class UpcomingAssembliesView(SyndicBaseView):
    """Running assemblies and the ones still to come, soonest first."""

    def get(self, request, tenant_slug: str):
        assemblies = AssemblyService.upcoming(self.condominium)
        return self.json_response({"data": [assembly_data(a) for a in assemblies]})


class AssemblyDetailView(SyndicBaseView):
    """Read, change or delete one assembly."""

    def get(self, request, tenant_slug: str, assembly_id):
        assembly = self.get_assembly(assembly_id)
        data = assembly_data(assembly)
        data["agenda"] = [agenda_item_data(item) for item in AgendaService.items(assembly)]
        return self.json_response(data)

    def patch(self, request, tenant_slug: str, assembly_id):
        data = editable(self.parse_json_body(request), assembly_service.EDITABLE_FIELDS)
        assembly = AssemblyService.update(self.get_assembly(assembly_id), **data)
        return self.json_response(assembly_data(assembly))

    def delete(self, request, tenant_slug: str, assembly_id):
        AssemblyService.delete(self.get_assembly(assembly_id))
        return HttpResponse(status=204)


class AssemblyTransitionView(SyndicBaseView):
    """Start, finish or cancel an assembly."""

    action = None

    def post(self, request, tenant_slug: str, assembly_id):
        assembly = self.get_assembly(assembly_id)
        transition = {
            "start": AssemblyService.start,
            "finish": AssemblyService.finish,
            "cancel": AssemblyService.cancel,
        }[self.action]
        assembly = transition(assembly, actor=self.actor)
        return self.json_response(assembly_data(assembly))


class AssemblyStatsView(SyndicBaseView):
    def get(self, request, tenant_slug: str, assembly_id):
        return self.json_response(AssemblyService.stats(self.get_assembly(assembly_id)))


# =============================================================================
# CHECK-IN (SYNDIC)
# =============================================================================


class CheckinLinkView(SyndicBaseView):
    """Create or rotate the check-in link shown as QR code."""

    def post(self, request, tenant_slug: str, assembly_id):
        assembly = self.get_assembly(assembly_id)
        token = AttendanceService.issue_checkin_token(assembly, actor=self.actor)
        path = f"/condo/public/checkin/{token}/"
        return self.json_response({"token": token, "url": request.build_absolute_uri(path)}, status=201)


class CheckinCodeView(SyndicBaseView):
    """Show or regenerate the check-in code."""

    permissions = {}

    def get(self, request, tenant_slug: str, assembly_id):
        otp = OTPService.current_checkin_code(self.get_assembly(assembly_id))
        return self.json_response({"code": otp.as_dict() if otp else None})

    def post(self, request, tenant_slug: str, assembly_id):
        otp = OTPService.issue_checkin_code(self.get_assembly(assembly_id), actor=self.actor)
        return self.json_response({"code": otp.as_dict()}, status=201)


# =============================================================================
# ATTENDANCE & PROXIES (SYNDIC)
# =============================================================================


class AttendanceView(SyndicBaseView):
    def get(self, request, tenant_slug: str, assembly_id):
        return self.json_response(AttendanceService.attendance_status(self.get_assembly(assembly_id)))


class QuorumView(SyndicBaseView):
    def get(self, request, tenant_slug: str, assembly_id):
        return self.json_response(AttendanceService.quorum(self.get_assembly(assembly_id)).as_dict())


class ParticipantListView(SyndicBaseView):
    """List participants or register a unit's representative."""

    def get(self, request, tenant_slug: str, assembly_id):
        participants = AttendanceService.participants(self.get_assembly(assembly_id))
        return self.json_response({"data": [participant_data(p) for p in participants]})

    def post(self, request, tenant_slug: str, assembly_id):
        data = self.parse_json_body(request)
        participant = AttendanceService.register(
            self.get_assembly(assembly_id),
            unit_identifier=data.get("unit_identifier"),
            resident_reference=data.get("resident_reference"),
            proxy_name=data.get("proxy_name"),
            proxy_document=data.get("proxy_document"),
            voting_weight=data.get("voting_weight"),
            actor=self.actor,
        )
        return self.json_response(participant_data(participant), status=201)


class ParticipantDetailView(SyndicBaseView):
    def get(self, request, tenant_slug: str, assembly_id, participant_id):
        return self.json_response(participant_data(self.get_participant(assembly_id, participant_id)))

    def patch(self, request, tenant_slug: str, assembly_id, participant_id):
        data = editable(self.parse_json_body(request), attendance_service.EDITABLE_FIELDS)
        participant = AttendanceService.update_participant(
            self.get_participant(assembly_id, participant_id), actor=self.actor, **data
        )
        return self.json_response(participant_data(participant))

    def delete(self, request, tenant_slug: str, assembly_id, participant_id):
        AttendanceService.remove_participant(self.get_participant(assembly_id, participant_id), actor=self.actor)
        return HttpResponse(status=204)


class ParticipantJoinView(SyndicBaseView):
    """Mark a registered participant as present."""

    def post(self, request, tenant_slug: str, assembly_id, participant_id):
        participant = AttendanceService.mark_joined(self.get_participant(assembly_id, participant_id), actor=self.actor)
        return self.json_response(participant_data(participant))


class ParticipantLeaveView(SyndicBaseView):
    """Mark a participant as having left the room."""

    def post(self, request, tenant_slug: str, assembly_id, participant_id):
        participant = AttendanceService.mark_left(self.get_participant(assembly_id, participant_id), actor=self.actor)
        return self.json_response(participant_data(participant))


class ParticipantWeightView(SyndicBaseView):
    """Correct a participant's voting weight."""

    def post(self, request, tenant_slug: str, assembly_id, participant_id):
        data = self.parse_json_body(request)
        if "voting_weight" not in data:
            raise InvalidInput("voting_weight is required.")
        participant = AttendanceService.set_voting_weight(
            self.get_participant(assembly_id, participant_id),
            data["voting_weight"],
            actor=self.actor,
        )
        return self.json_response(participant_data(participant))


class PendingProxiesView(SyndicBaseView):
    permissions = {"GET": "proxies.review"}

    def get(self, request, tenant_slug: str, assembly_id):
        proxies = ProxyService.pending_proxies(self.get_assembly(assembly_id))
        return self.json_response({"data": [participant_data(p) for p in proxies]})


class ProxyDecisionView(SyndicBaseView):
    """Approve or reject a proxy credential."""

    permission = "proxies.review"
    action = None

    def post(self, request, tenant_slug: str, assembly_id, participant_id):
        participant = self.get_participant(assembly_id, participant_id)
        if self.action == "approve":
            participant = ProxyService.approve(participant, approver_id=self.actor)
        else:
            data = self.parse_json_body(request)
            participant = ProxyService.reject(participant, approver_id=self.actor, reason=data.get("reason", ""))
        return self.json_response(participant_data(participant))


class ProxyDocumentView(SyndicBaseView):
    """Download the uploaded proxy credential."""

    permissions = {"GET": "proxies.review"}

    def get(self, request, tenant_slug: str, assembly_id, participant_id):
        participant = self.get_participant(assembly_id, participant_id)
        document = ProxyService.document(participant)
        return FileResponse(
            document.open("rb"),
            content_type=participant.proxy_file_mime_type or "application/octet-stream",
            filename=participant.proxy_file_name or None,
        )


# =============================================================================
# AGENDA & VOTING (SYNDIC)
# =============================================================================


class AgendaListView(SyndicBaseView):
    permission = "agenda.manage"

    def get(self, request, tenant_slug: str, assembly_id):
        items = AgendaService.items(self.get_assembly(assembly_id))
        return self.json_response({"data": [agenda_item_data(item) for item in items]})

    def post(self, request, tenant_slug: str, assembly_id):
        data = editable(self.parse_json_body(request), agenda_service.EDITABLE_FIELDS)
        item = AgendaService.create_item(
            self.get_assembly(assembly_id),
            title=data.pop("title", ""),
            **data,
        )
        return self.json_response(agenda_item_data(item), status=201)


class AgendaItemDetailView(SyndicBaseView):
    permission = "agenda.manage"

    def get(self, request, tenant_slug: str, assembly_id, item_id):
        item = self.get_item(assembly_id, item_id)
        data = agenda_item_data(item)
        data["summary"] = VoteService.summary(item).as_dict()
        return self.json_response(data)

    def patch(self, request, tenant_slug: str, assembly_id, item_id):
        data = editable(self.parse_json_body(request), agenda_service.EDITABLE_FIELDS)
        item = AgendaService.update_item(self.get_item(assembly_id, item_id), **data)
        return self.json_response(agenda_item_data(item))

    def delete(self, request, tenant_slug: str, assembly_id, item_id):
        AgendaService.delete_item(self.get_item(assembly_id, item_id))
        return HttpResponse(status=204)


class AgendaVotingView(SyndicBaseView):
    """Open or close voting on an agenda item."""

    permission = "agenda.manage"
    action = None

    def post(self, request, tenant_slug: str, assembly_id, item_id):
        item = self.get_item(assembly_id, item_id)
        if self.action == "start":
            item, otp = AgendaService.start_voting(item, actor=self.actor)
            data = agenda_item_data(item)
            data["code"] = otp.as_dict()
            return self.json_response(data)

        item = AgendaService.close_voting(item, actor=self.actor)
        data = agenda_item_data(item)
        data["summary"] = VoteService.summary(item).as_dict()
        return self.json_response(data)


class VotingCodeView(SyndicBaseView):
    """Show or regenerate the voting code of the item being voted on."""

    permission = "agenda.manage"
    permissions = {}

    def get(self, request, tenant_slug: str, assembly_id, item_id):
        otp = OTPService.current_voting_code(self.get_item(assembly_id, item_id))
        return self.json_response({"code": otp.as_dict() if otp else None})

    def post(self, request, tenant_slug: str, assembly_id, item_id):
        otp = OTPService.issue_voting_code(self.get_item(assembly_id, item_id), actor=self.actor)
        return self.json_response({"code": otp.as_dict()}, status=201)


class VoteResultsView(SyndicBaseView):
    """Running or final tally, polled by dashboard and projector."""

    def get(self, request, tenant_slug: str, assembly_id, item_id):
        item = self.get_item(assembly_id, item_id)
        data = {
            "agenda_item": agenda_item_data(item),
            "summary": VoteService.summary(item).as_dict(),
        }
        if request.GET.get("include_votes"):
            data["votes"] = [vote_data(v) for v in VoteService.votes(item)]
        return self.json_response(data)


# =============================================================================
# MINUTES (SYNDIC)
# =============================================================================


class MinutesView(SyndicBaseView):
    permission = "minutes.manage"

    def get(self, request, tenant_slug: str, assembly_id):
        return self.json_response(minutes_data(MinutesService.get(self.get_assembly(assembly_id))))

    def patch(self, request, tenant_slug: str, assembly_id):
        data = self.parse_json_body(request)
        minutes = MinutesService.update(
            self.get_assembly(assembly_id),
            content=data.get("content"),
            summary=data.get("summary"),
        )
        return self.json_response(minutes_data(minutes))


class MinutesActionView(SyndicBaseView):
    """Generate, approve or publish minutes."""

    permission = "minutes.manage"
    action = None

    def post(self, request, tenant_slug: str, assembly_id):
        assembly = self.get_assembly(assembly_id)
        if self.action == "generate":
            minutes = MinutesService.generate(assembly, actor=self.actor)
        elif self.action == "approve":
            minutes = MinutesService.approve(assembly, approver_id=self.actor)
        else:
            minutes = MinutesService.publish(assembly, actor=self.actor)
        return self.json_response(minutes_data(minutes))


# =============================================================================
# PARTICIPANT API (PUBLIC)
# =============================================================================


class CheckinView(ParticipantView):
    """Check-in page behind the QR code link."""

    def get(self, request, token: str):
        return self.json_response(AttendanceService.checkin_info(token))

    def post(self, request, token: str):
        data = self.parse_json_body(request)
        result = AttendanceService.check_in_with_token(
            token,
            code=data.get("code"),
            unit_identifier=data.get("unit_identifier", ""),
            proxy_name=data.get("proxy_name", ""),
            proxy_document=data.get("proxy_document", ""),
            resident_reference=data.get("resident_reference", ""),
        )
        participant = result.participant
        message = (
            "Checked in. Your proxy credential is waiting for approval by the syndic."
            if participant.approval_status == Participant.APPROVAL_PENDING
            else "Checked in."
        )
        return self.json_response(
            {
                "participant_id": str(participant.id),
                "assembly_id": str(participant.assembly_id),
                "unit": participant.unit.identifier,
                "session_token": result.session_token,
                "approval_status": participant.approval_status,
                "is_proxy": participant.is_proxy,
                "joined_at": iso_datetime(participant.joined_at),
                "message": message,
            },
            status=201 if result.created else 200,
        )


class SessionInfoView(ParticipantView):
    def get(self, request):
        return self.json_response(SessionService.session_info(self.get_session_token(request)))


class SessionAgendaView(ParticipantView):
    def get(self, request):
        return self.json_response({"data": SessionService.session_agenda(self.get_session_token(request))})


class SessionAgendaItemView(ParticipantView):
    def get(self, request, item_id):
        return self.json_response(SessionService.agenda_item(self.get_session_token(request), item_id))


class SessionLeaveView(ParticipantView):
    def post(self, request):
        participant = SessionService.resolve(self.get_session_token(request))
        participant = AttendanceService.mark_left(participant)
        return self.json_response({"left_at": iso_datetime(participant.left_at)})


class ProxyUploadView(ParticipantView):
    """Proxy uploads their credential (multipart field "file")."""

    def post(self, request):
        participant = ProxyService.attach_document(self.get_session_token(request), request.FILES.get("file"))
        return self.json_response(
            {
                "participant_id": str(participant.id),
                "file_name": participant.proxy_file_name,
                "approval_status": participant.approval_status,
            },
            status=201,
        )


class CastVoteView(ParticipantView):
    """Cast a ballot: {"code": "123456", "choice": "yes|no|abstention"}."""

    def post(self, request, item_id):
        data = self.parse_json_body(request)
        vote = VoteService.cast(
            item_id,
            self.get_session_token(request),
            data.get("code"),
            data.get("choice", ""),
        )
        return self.json_response(
            {
                "vote_id": str(vote.id),
                "agenda_item_id": str(vote.agenda_item_id),
                "choice": vote.choice,
                "voting_weight": str(vote.voting_weight),
                "cast_at": iso_datetime(vote.created_at),
            },
            status=201,
        )
