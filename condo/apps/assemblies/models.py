# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Assembly models.

An Assembly owns its AgendaItems and Participants; an AgendaItem owns its
Votes. Rows are mutated only through the services in apps.assemblies.services,
which implement the assembly, agenda and proxy state machines.

One-time code fields (check-in on Assembly, voting on AgendaItem) are never
compared directly; apps.assemblies.services.otp_service is the only reader.
"""

import uuid
from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


# =============================================================================
# ASSEMBLY
# =============================================================================


class Assembly(models.Model):
    """
    One meeting of the condominium owners.

    Lifecycle: scheduled -> in_progress -> finished, or scheduled -> cancelled.
    Finished assemblies are kept forever (audit requirement).
    """

    STATUS_SCHEDULED = "scheduled"
    STATUS_IN_PROGRESS = "in_progress"
    STATUS_FINISHED = "finished"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_SCHEDULED, "Scheduled"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_FINISHED, "Finished"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    condominium = models.ForeignKey(
        "tenants.Condominium",
        on_delete=models.CASCADE,
        related_name="assemblies",
        verbose_name="Condominium",
    )

    # Basic info
    title = models.CharField(max_length=300, verbose_name="Title")
    description = models.TextField(blank=True, verbose_name="Description")
    location = models.CharField(max_length=300, blank=True, verbose_name="Location")
    meeting_url = models.URLField(blank=True, verbose_name="Video call URL")
    scheduled_at = models.DateTimeField(verbose_name="Scheduled for")

    # Lifecycle
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_SCHEDULED,
        verbose_name="Status",
    )
    started_at = models.DateTimeField(null=True, blank=True, verbose_name="Started at")
    finished_at = models.DateTimeField(null=True, blank=True, verbose_name="Finished at")
    cancelled_at = models.DateTimeField(null=True, blank=True, verbose_name="Cancelled at")

    # Check-in one-time code (only set while in progress)
    checkin_code = models.CharField(max_length=6, blank=True, null=True)
    checkin_code_generated_at = models.DateTimeField(null=True, blank=True)
    checkin_code_expires_at = models.DateTimeField(null=True, blank=True)

    # Token distributed as QR/link to reach the check-in page
    checkin_token = models.CharField(max_length=64, unique=True, null=True, blank=True)

    # Opaque identity supplied by the auth layer
    created_by = models.CharField(max_length=100, blank=True, verbose_name="Created by")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assemblies"
        verbose_name = "Assembly"
        verbose_name_plural = "Assemblies"
        ordering = ["-scheduled_at"]
        indexes = [
            models.Index(fields=["condominium", "status"], name="assemblies_condomi_2b1e0c_idx"),
        ]

    def __str__(self):
        return f"{self.title} ({self.scheduled_at:%Y-%m-%d})"

    @property
    def is_in_progress(self) -> bool:
        return self.status == self.STATUS_IN_PROGRESS

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.STATUS_FINISHED, self.STATUS_CANCELLED)


# =============================================================================
# AGENDA ITEM
# =============================================================================


class AgendaItem(models.Model):
    """
    One deliberation topic of an assembly.

    Lifecycle: pending -> voting -> closed. At most one item per assembly
    may be voting at any time (enforced by a partial unique constraint).
    """

    STATUS_PENDING = "pending"
    STATUS_VOTING = "voting"
    STATUS_CLOSED = "closed"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_VOTING, "Voting"),
        (STATUS_CLOSED, "Closed"),
    ]

    QUORUM_SIMPLE = "simple"
    QUORUM_QUALIFIED = "qualified"
    QUORUM_UNANIMOUS = "unanimous"

    QUORUM_TYPE_CHOICES = [
        (QUORUM_SIMPLE, "Simple majority"),
        (QUORUM_QUALIFIED, "Qualified majority"),
        (QUORUM_UNANIMOUS, "Unanimous"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assembly = models.ForeignKey(
        Assembly,
        on_delete=models.CASCADE,
        related_name="agenda_items",
        verbose_name="Assembly",
    )

    title = models.CharField(max_length=300, verbose_name="Title")
    description = models.TextField(blank=True, verbose_name="Description")
    order_index = models.PositiveIntegerField(default=0, verbose_name="Order")

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        verbose_name="Status",
    )

    # Informational; evaluated by reporting, not by the voting engine
    requires_quorum = models.BooleanField(default=True, verbose_name="Requires quorum")
    quorum_type = models.CharField(
        max_length=20,
        choices=QUORUM_TYPE_CHOICES,
        default=QUORUM_SIMPLE,
        verbose_name="Quorum type",
    )

    # Tally line written when voting closes
    result = models.TextField(blank=True, verbose_name="Result")

    # Voting one-time code (only set while voting)
    voting_code = models.CharField(max_length=6, blank=True, null=True)
    voting_code_generated_at = models.DateTimeField(null=True, blank=True)
    voting_code_expires_at = models.DateTimeField(null=True, blank=True)

    voting_started_at = models.DateTimeField(null=True, blank=True, verbose_name="Voting started at")
    voting_ended_at = models.DateTimeField(null=True, blank=True, verbose_name="Voting ended at")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assembly_agenda_items"
        verbose_name = "Agenda item"
        verbose_name_plural = "Agenda items"
        ordering = ["assembly", "order_index"]
        constraints = [
            models.UniqueConstraint(
                fields=["assembly", "order_index"],
                name="unique_agenda_order_per_assembly",
            ),
            models.UniqueConstraint(
                fields=["assembly"],
                condition=Q(status="voting"),
                name="single_voting_item_per_assembly",
            ),
        ]

    def __str__(self):
        return f"{self.order_index}. {self.title}"


# =============================================================================
# PARTICIPANT
# =============================================================================


def proxy_document_upload_path(instance, filename):
    """Store proxy documents per assembly."""
    return f"assemblies/{instance.assembly_id}/proxies/{uuid.uuid4().hex}_{filename}"


class Participant(models.Model):
    """
    One unit's representation in one assembly.

    Either the resident themself (approved on check-in) or a proxy
    (pending until a syndic approves or rejects the credential).
    Exactly one row exists per (assembly, unit); re-check-in updates it.
    """

    APPROVAL_APPROVED = "approved"
    APPROVAL_PENDING = "pending"
    APPROVAL_REJECTED = "rejected"

    APPROVAL_CHOICES = [
        (APPROVAL_APPROVED, "Approved"),
        (APPROVAL_PENDING, "Pending"),
        (APPROVAL_REJECTED, "Rejected"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assembly = models.ForeignKey(
        Assembly,
        on_delete=models.CASCADE,
        related_name="participants",
        verbose_name="Assembly",
    )
    unit = models.ForeignKey(
        "tenants.Unit",
        on_delete=models.RESTRICT,
        related_name="assembly_participations",
        verbose_name="Unit",
    )

    # Opaque reference to the resident record, if known
    resident_reference = models.CharField(max_length=100, blank=True, verbose_name="Resident")

    # Proxy sub-record (empty for residents voting themselves)
    proxy_name = models.CharField(max_length=200, blank=True, verbose_name="Proxy name")
    proxy_document = models.CharField(max_length=50, blank=True, verbose_name="Proxy ID document")
    proxy_file = models.FileField(
        upload_to=proxy_document_upload_path,
        blank=True,
        verbose_name="Proxy credential",
    )
    proxy_file_name = models.CharField(max_length=255, blank=True, verbose_name="Original file name")
    proxy_file_mime_type = models.CharField(max_length=100, blank=True, verbose_name="MIME type")
    proxy_file_size = models.PositiveIntegerField(default=0, verbose_name="File size")

    # Proxy approval workflow
    approval_status = models.CharField(
        max_length=20,
        choices=APPROVAL_CHOICES,
        default=APPROVAL_APPROVED,
        verbose_name="Approval status",
    )
    approved_by = models.CharField(max_length=100, blank=True, verbose_name="Approved by")
    approved_at = models.DateTimeField(null=True, blank=True, verbose_name="Approved at")
    rejected_by = models.CharField(max_length=100, blank=True, verbose_name="Rejected by")
    rejected_at = models.DateTimeField(null=True, blank=True, verbose_name="Rejected at")
    rejection_reason = models.TextField(blank=True, verbose_name="Rejection reason")

    # SHA-256 of the session token handed out at check-in
    session_token_hash = models.CharField(max_length=64, unique=True, null=True, blank=True)

    # Attendance
    joined_at = models.DateTimeField(null=True, blank=True, verbose_name="Joined at")
    left_at = models.DateTimeField(null=True, blank=True, verbose_name="Left at")

    voting_weight = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        default=Decimal("1"),
        validators=[MinValueValidator(Decimal("0"))],
        verbose_name="Voting weight",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assembly_participants"
        verbose_name = "Participant"
        verbose_name_plural = "Participants"
        ordering = ["assembly", "unit__identifier"]
        constraints = [
            models.UniqueConstraint(
                fields=["assembly", "unit"],
                name="unique_participant_per_unit",
            ),
        ]
        indexes = [
            models.Index(fields=["assembly", "approval_status"], name="assembly_pa_assembl_5c1f4e_idx"),
        ]

    def __str__(self):
        who = self.proxy_name or "Resident"
        return f"{self.unit.identifier}: {who}"

    @property
    def is_proxy(self) -> bool:
        return bool(self.proxy_name)

    @property
    def is_present(self) -> bool:
        return self.joined_at is not None and self.left_at is None

    @property
    def can_vote(self) -> bool:
        """Approved and currently in the room."""
        return self.approval_status == self.APPROVAL_APPROVED and self.is_present


# =============================================================================
# VOTE
# =============================================================================


class Vote(models.Model):
    """
    One ballot. Never updated or deleted after it is cast.

    voting_weight is a snapshot of the participant's weight at cast time.
    """

    CHOICE_YES = "yes"
    CHOICE_NO = "no"
    CHOICE_ABSTENTION = "abstention"

    CHOICES = [
        (CHOICE_YES, "Yes"),
        (CHOICE_NO, "No"),
        (CHOICE_ABSTENTION, "Abstention"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    agenda_item = models.ForeignKey(
        AgendaItem,
        on_delete=models.CASCADE,
        related_name="votes",
        verbose_name="Agenda item",
    )
    participant = models.ForeignKey(
        Participant,
        on_delete=models.RESTRICT,
        related_name="votes",
        verbose_name="Participant",
    )
    choice = models.CharField(max_length=20, choices=CHOICES, verbose_name="Choice")
    voting_weight = models.DecimalField(max_digits=9, decimal_places=6, verbose_name="Voting weight")
    created_at = models.DateTimeField(auto_now_add=True, verbose_name="Cast at")

    class Meta:
        db_table = "assembly_votes"
        verbose_name = "Vote"
        verbose_name_plural = "Votes"
        ordering = ["agenda_item", "created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["agenda_item", "participant"],
                name="unique_vote_per_participant",
            ),
        ]

    def __str__(self):
        return f"{self.participant} -> {self.get_choice_display()}"


# =============================================================================
# MINUTES
# =============================================================================


class AssemblyMinutes(models.Model):
    """Minutes of a finished assembly: draft -> approved -> published."""

    STATUS_DRAFT = "draft"
    STATUS_APPROVED = "approved"
    STATUS_PUBLISHED = "published"

    STATUS_CHOICES = [
        (STATUS_DRAFT, "Draft"),
        (STATUS_APPROVED, "Approved"),
        (STATUS_PUBLISHED, "Published"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assembly = models.OneToOneField(
        Assembly,
        on_delete=models.CASCADE,
        related_name="minutes",
        verbose_name="Assembly",
    )

    content = models.TextField(blank=True, verbose_name="Content")
    summary = models.TextField(blank=True, verbose_name="Summary")
    vote_summary = models.JSONField(default=dict, blank=True, verbose_name="Vote summary")
    attendance_summary = models.JSONField(default=dict, blank=True, verbose_name="Attendance summary")

    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_DRAFT,
        verbose_name="Status",
    )
    approved_by = models.CharField(max_length=100, blank=True, verbose_name="Approved by")
    approved_at = models.DateTimeField(null=True, blank=True, verbose_name="Approved at")
    published_at = models.DateTimeField(null=True, blank=True, verbose_name="Published at")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assembly_minutes"
        verbose_name = "Minutes"
        verbose_name_plural = "Minutes"

    def __str__(self):
        return f"Minutes: {self.assembly.title}"


# =============================================================================
# AUDIT LOG
# =============================================================================


class AssemblyAuditLog(models.Model):
    """
    Audit log for assembly state transitions and approval decisions.
    """

    ACTION_CHOICES = [
        ("assembly_created", "Assembly created"),
        ("assembly_started", "Assembly started"),
        ("assembly_finished", "Assembly finished"),
        ("assembly_cancelled", "Assembly cancelled"),
        ("checkin_code_issued", "Check-in code issued"),
        ("checkin_token_issued", "Check-in link issued"),
        ("participant_checked_in", "Participant checked in"),
        ("participant_left", "Participant left"),
        ("participant_registered", "Participant registered"),
        ("participant_updated", "Participant updated"),
        ("participant_joined", "Participant marked present"),
        ("participant_removed", "Participant removed"),
        ("weight_changed", "Voting weight changed"),
        ("proxy_uploaded", "Proxy document uploaded"),
        ("proxy_approved", "Proxy approved"),
        ("proxy_rejected", "Proxy rejected"),
        ("voting_started", "Voting started"),
        ("voting_code_issued", "Voting code issued"),
        ("voting_closed", "Voting closed"),
        ("minutes_generated", "Minutes generated"),
        ("minutes_approved", "Minutes approved"),
        ("minutes_published", "Minutes published"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assembly = models.ForeignKey(
        Assembly,
        on_delete=models.CASCADE,
        related_name="audit_logs",
        verbose_name="Assembly",
    )

    # Actor: user id for syndic actions, participant id for self-service actions
    actor = models.CharField(max_length=100, blank=True, verbose_name="Actor")
    action = models.CharField(max_length=50, choices=ACTION_CHOICES, verbose_name="Action")

    # Target
    model_name = models.CharField(max_length=100, verbose_name="Model")
    object_id = models.UUIDField(verbose_name="Object ID")

    details = models.JSONField(default=dict, blank=True, verbose_name="Details")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "assembly_audit_logs"
        verbose_name = "Audit entry"
        verbose_name_plural = "Audit log"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["assembly", "created_at"], name="assembly_au_assembl_8d2a7b_idx"),
        ]

    def __str__(self):
        return f"{self.actor or 'system'}: {self.action} {self.model_name}"
