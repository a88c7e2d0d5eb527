"""
Tests for the proxy approval workflow and credential uploads.
"""

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from apps.assemblies.exceptions import (
    AlreadyApproved,
    AlreadyRejected,
    AssemblyNotInProgress,
    InvalidInput,
    NotAProxy,
    NotFound,
    SessionInvalid,
)
from apps.assemblies.models import Participant
from apps.assemblies.services import AssemblyService, ProxyService


@pytest.fixture
def media_root(settings, tmp_path):
    settings.MEDIA_ROOT = tmp_path
    return tmp_path


@pytest.fixture
def proxy(check_in):
    """A-102 represented by a proxy, waiting for review."""
    return check_in("A-102", proxy_name="Maria Souza", proxy_document="12.345.678-9")


def pdf(name="procuracao.pdf", size=None):
    content = b"%PDF-1.4 proxy" if size is None else b"0" * size
    return SimpleUploadedFile(name, content, content_type="application/pdf")


@pytest.mark.django_db
class TestReview:
    """Syndic decisions on a proxy credential."""

    def test_proxy_starts_pending(self, proxy):
        assert proxy.participant.approval_status == Participant.APPROVAL_PENDING
        assert list(ProxyService.pending_proxies(proxy.participant.assembly)) == [proxy.participant]

    def test_approve(self, proxy):
        participant = ProxyService.approve(proxy.participant, approver_id="7")

        assert participant.approval_status == Participant.APPROVAL_APPROVED
        assert participant.approved_by == "7"
        assert participant.approved_at is not None
        assert participant.can_vote

    def test_approve_twice(self, proxy):
        ProxyService.approve(proxy.participant, approver_id="7")
        with pytest.raises(AlreadyApproved):
            ProxyService.approve(proxy.participant, approver_id="7")

    def test_reject_requires_reason(self, proxy):
        with pytest.raises(InvalidInput):
            ProxyService.reject(proxy.participant, approver_id="7", reason="  ")

    def test_reject_then_approve(self, proxy):
        rejected = ProxyService.reject(proxy.participant, approver_id="7", reason="Signature missing")
        assert rejected.approval_status == Participant.APPROVAL_REJECTED
        assert rejected.rejection_reason == "Signature missing"
        assert not rejected.can_vote

        with pytest.raises(AlreadyRejected):
            ProxyService.reject(proxy.participant, approver_id="7", reason="Again")

        approved = ProxyService.approve(proxy.participant, approver_id="7")
        assert approved.approval_status == Participant.APPROVAL_APPROVED
        assert approved.rejection_reason == ""

        stored = Participant.objects.get(pk=proxy.participant.pk)
        assert stored.rejected_by == ""
        assert stored.rejected_at is None

    def test_reject_after_approval(self, proxy):
        ProxyService.approve(proxy.participant, approver_id="7")
        with pytest.raises(AlreadyApproved):
            ProxyService.reject(proxy.participant, approver_id="7", reason="Changed my mind")

    def test_resident_is_not_a_proxy(self, residents):
        with pytest.raises(NotAProxy):
            ProxyService.approve(residents["A-101"].participant, approver_id="7")

    def test_requires_running_assembly(self, proxy):
        assembly = proxy.participant.assembly
        AssemblyService.finish(assembly)
        with pytest.raises(AssemblyNotInProgress):
            ProxyService.approve(proxy.participant, approver_id="7")

    def test_decisions_are_audited(self, proxy):
        ProxyService.reject(proxy.participant, approver_id="7", reason="Signature missing")
        ProxyService.approve(proxy.participant, approver_id="7")

        actions = list(
            proxy.participant.assembly.audit_logs.filter(object_id=proxy.participant.pk)
            .order_by("created_at")
            .values_list("action", "actor")
        )
        assert ("proxy_rejected", "7") in actions
        assert ("proxy_approved", "7") in actions


@pytest.mark.django_db
class TestUpload:
    """Credential uploads by the proxy."""

    def test_upload_stores_file(self, proxy, media_root):
        participant = ProxyService.attach_document(proxy.session_token, pdf())

        assert participant.proxy_file_name == "procuracao.pdf"
        assert participant.proxy_file_mime_type == "application/pdf"
        assert participant.proxy_file_size == len(b"%PDF-1.4 proxy")
        assert participant.approval_status == Participant.APPROVAL_PENDING
        assert ProxyService.document(participant).read() == b"%PDF-1.4 proxy"

    def test_reupload_after_rejection_resets_to_pending(self, proxy, media_root):
        ProxyService.reject(proxy.participant, approver_id="7", reason="Unreadable")
        participant = ProxyService.attach_document(proxy.session_token, pdf())

        assert participant.approval_status == Participant.APPROVAL_PENDING
        assert participant.rejection_reason == ""

    def test_upload_after_approval(self, proxy, media_root):
        ProxyService.approve(proxy.participant, approver_id="7")
        with pytest.raises(AlreadyApproved):
            ProxyService.attach_document(proxy.session_token, pdf())

    def test_disallowed_type(self, proxy, media_root):
        upload = SimpleUploadedFile("notes.txt", b"hello", content_type="text/plain")
        with pytest.raises(InvalidInput):
            ProxyService.attach_document(proxy.session_token, upload)

    def test_oversize_file(self, proxy, media_root, settings):
        settings.ASSEMBLY_PROXY_MAX_FILE_SIZE = 10
        with pytest.raises(InvalidInput):
            ProxyService.attach_document(proxy.session_token, pdf(size=11))

    def test_missing_file(self, proxy, media_root):
        with pytest.raises(InvalidInput):
            ProxyService.attach_document(proxy.session_token, None)

    def test_unknown_session(self, proxy, media_root):
        with pytest.raises(SessionInvalid):
            ProxyService.attach_document("nope", pdf())

    def test_no_document_yet(self, proxy):
        with pytest.raises(NotFound):
            ProxyService.document(proxy.participant)
