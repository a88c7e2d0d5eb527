"""
Tests for the JSON API: authorisation and error mapping.
"""

from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import Client

from apps.assemblies.models import Assembly, Participant
from apps.assemblies.services import AgendaService, AttendanceService

pytestmark = [pytest.mark.django_db, pytest.mark.api]


def bearer(token: str) -> dict:
    return {"HTTP_AUTHORIZATION": f"Bearer {token}"}


@pytest.fixture
def syndic_client(syndic) -> Client:
    client = Client()
    client.force_login(syndic)
    return client


@pytest.fixture
def base(assembly) -> str:
    return f"/condo/jardim/assemblies/{assembly.pk}"


class TestSyndicAuthorisation:
    """Tenant, authentication and role checks."""

    def test_anonymous(self, base):
        response = Client().get(f"{base}/")
        assert response.status_code == 401
        assert response.json()["error"] == "not_authenticated"

    def test_unknown_condominium(self, syndic_client, assembly):
        response = syndic_client.get(f"/condo/nowhere/assemblies/{assembly.pk}/")
        assert response.status_code == 404

    def test_council_can_read_but_not_manage(self, council_member, base):
        client = Client()
        client.force_login(council_member)

        assert client.get(f"{base}/").status_code == 200
        response = client.post(f"{base}/start/")
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_council_cannot_see_checkin_code(self, council_member, running_assembly, base):
        client = Client()
        client.force_login(council_member)
        assert client.get(f"{base}/checkin-code/").status_code == 403


class TestAssemblyEndpoints:
    def test_create_and_list(self, syndic_client, condominium):
        response = syndic_client.post(
            "/condo/jardim/assemblies/",
            {"title": "Budget review", "scheduled_at": "2027-03-01T19:30:00-03:00"},
            content_type="application/json",
        )
        assert response.status_code == 201
        assert response.json()["status"] == "scheduled"

        listing = syndic_client.get("/condo/jardim/assemblies/").json()
        assert [a["title"] for a in listing["data"]] == ["Budget review"]

    def test_invalid_json(self, syndic_client, condominium):
        response = syndic_client.post("/condo/jardim/assemblies/", "{oops", content_type="application/json")
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_json"

    def test_validation_error(self, syndic_client, condominium):
        response = syndic_client.post("/condo/jardim/assemblies/", {"title": ""}, content_type="application/json")
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_detail_includes_agenda(self, syndic_client, base, agenda):
        data = syndic_client.get(f"{base}/").json()
        assert [item["title"] for item in data["agenda"]] == ["Approve budget", "Facade renovation"]

    def test_lifecycle(self, syndic_client, base, syndic):
        response = syndic_client.post(f"{base}/start/")
        assert response.status_code == 200
        assert response.json()["status"] == "in_progress"

        response = syndic_client.post(f"{base}/start/")
        assert response.status_code == 409
        assert response.json()["error"] == "assembly_not_scheduled"

        code = syndic_client.post(f"{base}/checkin-code/").json()["code"]
        assert len(code["code"]) == 6

        assert syndic_client.post(f"{base}/finish/").json()["status"] == "finished"

    def test_delete(self, syndic_client, base, assembly):
        assert syndic_client.delete(f"{base}/").status_code == 204
        assert not Assembly.objects.filter(pk=assembly.pk).exists()


class TestParticipantFlow:
    """Check-in link -> session -> vote, as the participant's phone does it."""

    def test_check_in_and_vote(self, syndic_client, running_assembly, agenda, base):
        link = syndic_client.post(f"{base}/checkin-link/").json()
        assert link["url"].endswith(f"/condo/public/checkin/{link['token']}/")

        client = Client(enforce_csrf_checks=True)
        info = client.get(f"/condo/public/checkin/{link['token']}/").json()
        assert info["accepting_checkins"] is True

        response = client.post(
            f"/condo/public/checkin/{link['token']}/",
            {"code": running_assembly.checkin_code, "unit_identifier": "A-101"},
            content_type="application/json",
        )
        assert response.status_code == 201
        token = response.json()["session_token"]

        assert client.get("/condo/public/session/", **bearer(token)).json()["can_vote"] is True

        started = syndic_client.post(f"{base}/agenda/{agenda[0].pk}/start-voting/").json()
        voting_code = started["code"]["code"]

        response = client.post(
            f"/condo/public/agenda/{agenda[0].pk}/vote/",
            {"code": voting_code, "choice": "yes"},
            content_type="application/json",
            **bearer(token),
        )
        assert response.status_code == 201
        assert response.json()["voting_weight"] == "0.600000"

        response = client.post(
            f"/condo/public/agenda/{agenda[0].pk}/vote/",
            {"code": voting_code, "choice": "no"},
            content_type="application/json",
            **bearer(token),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "already_voted"

        results = syndic_client.get(f"{base}/agenda/{agenda[0].pk}/results/").json()
        assert results["summary"]["yes"] == 1

    def test_missing_session(self, running_assembly, agenda):
        _, otp = AgendaService.start_voting(agenda[0])
        response = Client().post(
            f"/condo/public/agenda/{agenda[0].pk}/vote/",
            {"code": otp.code, "choice": "yes"},
            content_type="application/json",
        )
        assert response.status_code == 401
        assert response.json()["error"] == "session_invalid"

    def test_voting_closed(self, residents, agenda):
        response = Client().post(
            f"/condo/public/agenda/{agenda[0].pk}/vote/",
            {"code": "123456", "choice": "yes"},
            content_type="application/json",
            **bearer(residents["A-101"].session_token),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "voting_closed"

    def test_invalid_checkin_link(self):
        response = Client().get("/condo/public/checkin/does-not-exist/")
        assert response.status_code == 404

    def test_leave(self, residents):
        response = Client().post("/condo/public/session/leave/", **bearer(residents["A-101"].session_token))
        assert response.status_code == 200
        assert Participant.objects.get(pk=residents["A-101"].participant.pk).left_at is not None


class TestProxyEndpoints:
    def test_upload_and_approve(self, syndic_client, check_in, base, settings, tmp_path):
        settings.MEDIA_ROOT = tmp_path
        proxy = check_in("A-102", proxy_name="Maria Souza")

        upload = SimpleUploadedFile("proxy.pdf", b"%PDF-1.4", content_type="application/pdf")
        response = Client().post(
            "/condo/public/session/proxy-document/", {"file": upload}, **bearer(proxy.session_token)
        )
        assert response.status_code == 201

        pending = syndic_client.get(f"{base}/proxies/pending/").json()["data"]
        assert [p["proxy_name"] for p in pending] == ["Maria Souza"]

        participant_url = f"{base}/participants/{proxy.participant.pk}"
        document = syndic_client.get(f"{participant_url}/document/")
        assert document.status_code == 200
        assert b"".join(document.streaming_content) == b"%PDF-1.4"

        response = syndic_client.post(f"{participant_url}/reject/", {}, content_type="application/json")
        assert response.status_code == 400

        response = syndic_client.post(f"{participant_url}/approve/")
        assert response.json()["approval_status"] == "approved"

        quorum = syndic_client.get(f"{base}/quorum/").json()
        assert quorum["percentage"] == "40.00"

    def test_resident_is_not_a_proxy(self, syndic_client, residents, base):
        participant = residents["A-101"].participant
        response = syndic_client.post(f"{base}/participants/{participant.pk}/approve/")
        assert response.status_code == 400
        assert response.json()["error"] == "not_a_proxy"

    def test_weight_correction(self, syndic_client, residents, base):
        participant = residents["A-101"].participant
        response = syndic_client.post(
            f"{base}/participants/{participant.pk}/weight/",
            {"voting_weight": "0.5"},
            content_type="application/json",
        )
        assert response.status_code == 200
        assert AttendanceService.get_participant(participant.assembly, participant.pk).voting_weight == Decimal("0.5")


class TestMalformedRequests:
    """Wrongly typed JSON values are validation errors, never server errors."""

    def test_vote_choice_must_be_text(self, residents, agenda):
        _, otp = AgendaService.start_voting(agenda[0])
        response = Client().post(
            f"/condo/public/agenda/{agenda[0].pk}/vote/",
            {"code": otp.code, "choice": 1},
            content_type="application/json",
            **bearer(residents["A-101"].session_token),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_unit_identifier_must_be_text(self, running_assembly):
        token = AttendanceService.issue_checkin_token(running_assembly)
        response = Client().post(
            f"/condo/public/checkin/{token}/",
            {"code": running_assembly.checkin_code, "unit_identifier": 101},
            content_type="application/json",
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_unknown_keys_are_ignored_on_assembly_patch(self, syndic_client, base, assembly):
        response = syndic_client.patch(
            f"{base}/", {"assembly": "x", "status": "finished"}, content_type="application/json"
        )
        assert response.status_code == 200
        assert response.json()["title"] == assembly.title
        assert response.json()["status"] == "scheduled"

    def test_assembly_title_must_be_text(self, syndic_client, base):
        response = syndic_client.patch(f"{base}/", {"title": 5}, content_type="application/json")
        assert response.status_code == 400

    def test_unknown_keys_are_ignored_on_agenda(self, syndic_client, base, agenda):
        response = syndic_client.post(
            f"{base}/agenda/", {"title": "Pool hours", "assembly": "x"}, content_type="application/json"
        )
        assert response.status_code == 201

        response = syndic_client.patch(
            f"{base}/agenda/{agenda[0].pk}/", {"item": "x", "title": "Budget 2027"}, content_type="application/json"
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Budget 2027"

    def test_rejection_reason_must_be_text(self, syndic_client, check_in, base):
        proxy = check_in("A-102", proxy_name="Maria Souza")
        response = syndic_client.post(
            f"{base}/participants/{proxy.participant.pk}/reject/", {"reason": 5}, content_type="application/json"
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_weight_must_be_a_number(self, syndic_client, residents, base):
        participant = residents["A-101"].participant
        response = syndic_client.post(
            f"{base}/participants/{participant.pk}/weight/",
            {"voting_weight": {"value": 1}},
            content_type="application/json",
        )
        assert response.status_code == 400


class TestParticipantManagement:
    """Registration ahead of the meeting and changes by the syndic."""

    def test_register_update_and_remove(self, syndic_client, base):
        response = syndic_client.post(
            f"{base}/participants/",
            {"unit_identifier": "A-102", "proxy_name": "Maria Souza", "proxy_document": "12.345"},
            content_type="application/json",
        )
        assert response.status_code == 201
        participant = response.json()
        assert participant["approval_status"] == "pending"
        assert participant["joined_at"] is None

        duplicate = syndic_client.post(
            f"{base}/participants/",
            {"unit_identifier": "A-102", "resident_reference": "res-9"},
            content_type="application/json",
        )
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "unit_already_registered"

        url = f"{base}/participants/{participant['id']}/"
        response = syndic_client.patch(url, {"voting_weight": "0.25"}, content_type="application/json")
        assert response.json()["voting_weight"] == "0.250000"

        assert syndic_client.delete(url).status_code == 204
        assert not Participant.objects.filter(pk=participant["id"]).exists()

    def test_mark_joined(self, syndic_client, running_assembly, base):
        participant = AttendanceService.register(running_assembly, "A-101", resident_reference="res-17")

        response = syndic_client.post(f"{base}/participants/{participant.pk}/join/")

        assert response.status_code == 200
        assert response.json()["can_vote"] is True
        assert syndic_client.get(f"{base}/quorum/").json()["percentage"] == "60.00"

    def test_council_cannot_register(self, council_member, base):
        client = Client()
        client.force_login(council_member)
        response = client.post(
            f"{base}/participants/",
            {"unit_identifier": "A-101", "resident_reference": "res-17"},
            content_type="application/json",
        )
        assert response.status_code == 403

    def test_upcoming(self, syndic_client, assembly):
        data = syndic_client.get("/condo/jardim/assemblies/upcoming/").json()["data"]
        assert [a["id"] for a in data] == [str(assembly.pk)]

    def test_session_agenda_item(self, residents, agenda):
        response = Client().get(
            f"/condo/public/session/agenda/{agenda[0].pk}/", **bearer(residents["A-101"].session_token)
        )
        assert response.status_code == 200
        assert response.json()["has_voted"] is False
        assert response.json()["can_vote"] is False
