# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Proxy approval workflow.

    pending --approve--> approved          (terminal for this check-in)
    pending --reject---> rejected
    rejected --approve-> approved
    rejected --upload--> pending           (participant resubmits)

Approvals come from a syndic (opaque approver id from the auth layer);
uploads are authenticated by the participant's own session token, so a
proxy can submit a credential but never approve it.
"""

import logging
import os

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from apps.assemblies.exceptions import (
    AlreadyApproved,
    AlreadyRejected,
    AssemblyNotInProgress,
    InvalidInput,
    NotAProxy,
    NotFound,
)
from apps.assemblies.models import Assembly, Participant

from . import audit, inputs
from .session_service import SessionService

logger = logging.getLogger(__name__)


class ProxyService:
    """Review and credential upload for proxy participants."""

    @staticmethod
    def pending_proxies(assembly: Assembly):
        """Proxies waiting for a decision, oldest check-in first."""
        return (
            Participant.objects.filter(assembly=assembly, approval_status=Participant.APPROVAL_PENDING)
            .exclude(proxy_name="")
            .select_related("unit")
            .order_by("joined_at")
        )

    @staticmethod
    def _lock(participant: Participant) -> Participant:
        locked = Participant.objects.select_for_update().select_related("assembly", "unit").get(pk=participant.pk)
        if not locked.assembly.is_in_progress:
            raise AssemblyNotInProgress()
        if not locked.is_proxy:
            raise NotAProxy()
        return locked

    @staticmethod
    @transaction.atomic
    def approve(participant: Participant, approver_id) -> Participant:
        """
        Approve a proxy credential.

        Args:
            participant: The proxy participant
            approver_id: Identity of the approving syndic

        Returns:
            The updated participant

        Raises:
            NotAProxy: If the participant represents the unit directly
            AlreadyApproved: If the credential was already approved
            AssemblyNotInProgress: If the assembly is not running
        """
        locked = ProxyService._lock(participant)
        if locked.approval_status == Participant.APPROVAL_APPROVED:
            raise AlreadyApproved()

        locked.approval_status = Participant.APPROVAL_APPROVED
        locked.approved_by = str(approver_id)
        locked.approved_at = timezone.now()
        locked.rejected_by = ""
        locked.rejected_at = None
        locked.rejection_reason = ""
        locked.save(
            update_fields=[
                "approval_status",
                "approved_by",
                "approved_at",
                "rejected_by",
                "rejected_at",
                "rejection_reason",
                "updated_at",
            ]
        )

        audit.record(locked.assembly_id, "proxy_approved", locked, approver_id, unit=locked.unit.identifier)
        logger.info(f"Proxy {locked.pk} for unit {locked.unit.identifier} approved by {approver_id}")
        return locked

    @staticmethod
    @transaction.atomic
    def reject(participant: Participant, approver_id, reason: str) -> Participant:
        """
        Reject a proxy credential with a mandatory reason.

        Raises:
            NotAProxy: If the participant represents the unit directly
            AlreadyRejected: If the credential is already rejected
            AlreadyApproved: If the credential was approved (terminal)
            InvalidInput: If no reason is given
            AssemblyNotInProgress: If the assembly is not running
        """
        locked = ProxyService._lock(participant)
        if locked.approval_status == Participant.APPROVAL_REJECTED:
            raise AlreadyRejected()
        if locked.approval_status == Participant.APPROVAL_APPROVED:
            raise AlreadyApproved("The proxy was already approved and can no longer be rejected.")

        reason = inputs.text(reason, "Reason")
        if not reason:
            raise InvalidInput("A rejection reason is required.")

        locked.approval_status = Participant.APPROVAL_REJECTED
        locked.rejected_by = str(approver_id)
        locked.rejected_at = timezone.now()
        locked.rejection_reason = reason
        locked.save(update_fields=["approval_status", "rejected_by", "rejected_at", "rejection_reason", "updated_at"])

        audit.record(locked.assembly_id, "proxy_rejected", locked, approver_id, unit=locked.unit.identifier, reason=reason)
        logger.info(f"Proxy {locked.pk} for unit {locked.unit.identifier} rejected by {approver_id}")
        return locked

    @staticmethod
    def validate_upload(uploaded_file) -> None:
        """
        Check declared MIME type and size against the configured limits.

        Raises:
            InvalidInput: If the file is empty, too large or of a disallowed type
        """
        if uploaded_file is None or not uploaded_file.size:
            raise InvalidInput("A non-empty file is required.")
        if uploaded_file.content_type not in settings.ASSEMBLY_PROXY_ALLOWED_MIME_TYPES:
            raise InvalidInput("File type not allowed. Use PDF, JPG or PNG.")
        if uploaded_file.size > settings.ASSEMBLY_PROXY_MAX_FILE_SIZE:
            max_mb = settings.ASSEMBLY_PROXY_MAX_FILE_SIZE // (1024 * 1024)
            raise InvalidInput(f"File too large. Maximum size: {max_mb} MB.")

    @staticmethod
    @transaction.atomic
    def attach_document(session_token: str, uploaded_file) -> Participant:
        """
        Store the proxy credential uploaded by the participant.

        A rejected proxy goes back to pending so the syndic reviews it again.

        Raises:
            SessionInvalid: If the token is unknown
            NotAProxy: If the participant is not a proxy
            AlreadyApproved: If the credential was already approved
            InvalidInput: If the file fails validation
        """
        participant = SessionService.resolve(session_token)
        locked = ProxyService._lock(participant)
        if locked.approval_status == Participant.APPROVAL_APPROVED:
            raise AlreadyApproved("The proxy was already approved; the document can no longer be replaced.")

        ProxyService.validate_upload(uploaded_file)

        original_name = os.path.basename(uploaded_file.name or "document")
        locked.proxy_file.save(original_name, uploaded_file, save=False)
        locked.proxy_file_name = original_name[:255]
        locked.proxy_file_mime_type = uploaded_file.content_type
        locked.proxy_file_size = uploaded_file.size

        resubmitted = locked.approval_status == Participant.APPROVAL_REJECTED
        if resubmitted:
            locked.approval_status = Participant.APPROVAL_PENDING
            locked.rejected_by = ""
            locked.rejected_at = None
            locked.rejection_reason = ""

        locked.save()

        audit.record(
            locked.assembly_id,
            "proxy_uploaded",
            locked,
            locked.pk,
            file_name=locked.proxy_file_name,
            mime_type=locked.proxy_file_mime_type,
            size=locked.proxy_file_size,
            resubmitted=resubmitted,
        )
        logger.info(f"Proxy document uploaded for participant {locked.pk} ({locked.proxy_file_size} bytes)")
        return locked

    @staticmethod
    def document(participant: Participant):
        """
        Return the stored credential file.

        Raises:
            NotFound: If no document was uploaded
        """
        if not participant.proxy_file:
            raise NotFound("No proxy document uploaded.")
        return participant.proxy_file
