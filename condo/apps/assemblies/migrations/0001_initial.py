import decimal
import uuid

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models

import apps.assemblies.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("tenants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Assembly",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=300, verbose_name="Title")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("location", models.CharField(blank=True, max_length=300, verbose_name="Location")),
                ("meeting_url", models.URLField(blank=True, verbose_name="Video call URL")),
                ("scheduled_at", models.DateTimeField(verbose_name="Scheduled for")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("scheduled", "Scheduled"),
                            ("in_progress", "In progress"),
                            ("finished", "Finished"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="scheduled",
                        max_length=20,
                        verbose_name="Status",
                    ),
                ),
                ("started_at", models.DateTimeField(blank=True, null=True, verbose_name="Started at")),
                ("finished_at", models.DateTimeField(blank=True, null=True, verbose_name="Finished at")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True, verbose_name="Cancelled at")),
                ("checkin_code", models.CharField(blank=True, max_length=6, null=True)),
                ("checkin_code_generated_at", models.DateTimeField(blank=True, null=True)),
                ("checkin_code_expires_at", models.DateTimeField(blank=True, null=True)),
                ("checkin_token", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="Created by")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "condominium",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assemblies",
                        to="tenants.condominium",
                        verbose_name="Condominium",
                    ),
                ),
            ],
            options={
                "verbose_name": "Assembly",
                "verbose_name_plural": "Assemblies",
                "db_table": "assemblies",
                "ordering": ["-scheduled_at"],
                "indexes": [models.Index(fields=["condominium", "status"], name="assemblies_condomi_2b1e0c_idx")],
            },
        ),
        migrations.CreateModel(
            name="AgendaItem",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=300, verbose_name="Title")),
                ("description", models.TextField(blank=True, verbose_name="Description")),
                ("order_index", models.PositiveIntegerField(default=0, verbose_name="Order")),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("voting", "Voting"), ("closed", "Closed")],
                        default="pending",
                        max_length=20,
                        verbose_name="Status",
                    ),
                ),
                ("requires_quorum", models.BooleanField(default=True, verbose_name="Requires quorum")),
                (
                    "quorum_type",
                    models.CharField(
                        choices=[
                            ("simple", "Simple majority"),
                            ("qualified", "Qualified majority"),
                            ("unanimous", "Unanimous"),
                        ],
                        default="simple",
                        max_length=20,
                        verbose_name="Quorum type",
                    ),
                ),
                ("result", models.TextField(blank=True, verbose_name="Result")),
                ("voting_code", models.CharField(blank=True, max_length=6, null=True)),
                ("voting_code_generated_at", models.DateTimeField(blank=True, null=True)),
                ("voting_code_expires_at", models.DateTimeField(blank=True, null=True)),
                ("voting_started_at", models.DateTimeField(blank=True, null=True, verbose_name="Voting started at")),
                ("voting_ended_at", models.DateTimeField(blank=True, null=True, verbose_name="Voting ended at")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assembly",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="agenda_items",
                        to="assemblies.assembly",
                        verbose_name="Assembly",
                    ),
                ),
            ],
            options={
                "verbose_name": "Agenda item",
                "verbose_name_plural": "Agenda items",
                "db_table": "assembly_agenda_items",
                "ordering": ["assembly", "order_index"],
                "constraints": [
                    models.UniqueConstraint(fields=("assembly", "order_index"), name="unique_agenda_order_per_assembly"),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "voting")),
                        fields=("assembly",),
                        name="single_voting_item_per_assembly",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Participant",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("resident_reference", models.CharField(blank=True, max_length=100, verbose_name="Resident")),
                ("proxy_name", models.CharField(blank=True, max_length=200, verbose_name="Proxy name")),
                ("proxy_document", models.CharField(blank=True, max_length=50, verbose_name="Proxy ID document")),
                (
                    "proxy_file",
                    models.FileField(
                        blank=True,
                        upload_to=apps.assemblies.models.proxy_document_upload_path,
                        verbose_name="Proxy credential",
                    ),
                ),
                ("proxy_file_name", models.CharField(blank=True, max_length=255, verbose_name="Original file name")),
                ("proxy_file_mime_type", models.CharField(blank=True, max_length=100, verbose_name="MIME type")),
                ("proxy_file_size", models.PositiveIntegerField(default=0, verbose_name="File size")),
                (
                    "approval_status",
                    models.CharField(
                        choices=[("approved", "Approved"), ("pending", "Pending"), ("rejected", "Rejected")],
                        default="approved",
                        max_length=20,
                        verbose_name="Approval status",
                    ),
                ),
                ("approved_by", models.CharField(blank=True, max_length=100, verbose_name="Approved by")),
                ("approved_at", models.DateTimeField(blank=True, null=True, verbose_name="Approved at")),
                ("rejected_by", models.CharField(blank=True, max_length=100, verbose_name="Rejected by")),
                ("rejected_at", models.DateTimeField(blank=True, null=True, verbose_name="Rejected at")),
                ("rejection_reason", models.TextField(blank=True, verbose_name="Rejection reason")),
                ("session_token_hash", models.CharField(blank=True, max_length=64, null=True, unique=True)),
                ("joined_at", models.DateTimeField(blank=True, null=True, verbose_name="Joined at")),
                ("left_at", models.DateTimeField(blank=True, null=True, verbose_name="Left at")),
                (
                    "voting_weight",
                    models.DecimalField(
                        decimal_places=6,
                        default=decimal.Decimal("1"),
                        max_digits=9,
                        validators=[django.core.validators.MinValueValidator(decimal.Decimal("0"))],
                        verbose_name="Voting weight",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assembly",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="participants",
                        to="assemblies.assembly",
                        verbose_name="Assembly",
                    ),
                ),
                (
                    "unit",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.RESTRICT,
                        related_name="assembly_participations",
                        to="tenants.unit",
                        verbose_name="Unit",
                    ),
                ),
            ],
            options={
                "verbose_name": "Participant",
                "verbose_name_plural": "Participants",
                "db_table": "assembly_participants",
                "ordering": ["assembly", "unit__identifier"],
                "constraints": [
                    models.UniqueConstraint(fields=("assembly", "unit"), name="unique_participant_per_unit"),
                ],
                "indexes": [
                    models.Index(fields=["assembly", "approval_status"], name="assembly_pa_assembl_5c1f4e_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Vote",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "choice",
                    models.CharField(
                        choices=[("yes", "Yes"), ("no", "No"), ("abstention", "Abstention")],
                        max_length=20,
                        verbose_name="Choice",
                    ),
                ),
                ("voting_weight", models.DecimalField(decimal_places=6, max_digits=9, verbose_name="Voting weight")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="Cast at")),
                (
                    "agenda_item",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="votes",
                        to="assemblies.agendaitem",
                        verbose_name="Agenda item",
                    ),
                ),
                (
                    "participant",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.RESTRICT,
                        related_name="votes",
                        to="assemblies.participant",
                        verbose_name="Participant",
                    ),
                ),
            ],
            options={
                "verbose_name": "Vote",
                "verbose_name_plural": "Votes",
                "db_table": "assembly_votes",
                "ordering": ["agenda_item", "created_at"],
                "constraints": [
                    models.UniqueConstraint(fields=("agenda_item", "participant"), name="unique_vote_per_participant"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AssemblyMinutes",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("content", models.TextField(blank=True, verbose_name="Content")),
                ("summary", models.TextField(blank=True, verbose_name="Summary")),
                ("vote_summary", models.JSONField(blank=True, default=dict, verbose_name="Vote summary")),
                ("attendance_summary", models.JSONField(blank=True, default=dict, verbose_name="Attendance summary")),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "Draft"), ("approved", "Approved"), ("published", "Published")],
                        default="draft",
                        max_length=20,
                        verbose_name="Status",
                    ),
                ),
                ("approved_by", models.CharField(blank=True, max_length=100, verbose_name="Approved by")),
                ("approved_at", models.DateTimeField(blank=True, null=True, verbose_name="Approved at")),
                ("published_at", models.DateTimeField(blank=True, null=True, verbose_name="Published at")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "assembly",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="minutes",
                        to="assemblies.assembly",
                        verbose_name="Assembly",
                    ),
                ),
            ],
            options={
                "verbose_name": "Minutes",
                "verbose_name_plural": "Minutes",
                "db_table": "assembly_minutes",
            },
        ),
        migrations.CreateModel(
            name="AssemblyAuditLog",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("actor", models.CharField(blank=True, max_length=100, verbose_name="Actor")),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("assembly_created", "Assembly created"),
                            ("assembly_started", "Assembly started"),
                            ("assembly_finished", "Assembly finished"),
                            ("assembly_cancelled", "Assembly cancelled"),
                            ("checkin_code_issued", "Check-in code issued"),
                            ("checkin_token_issued", "Check-in link issued"),
                            ("participant_checked_in", "Participant checked in"),
                            ("participant_left", "Participant left"),
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
                        ],
                        max_length=50,
                        verbose_name="Action",
                    ),
                ),
                ("model_name", models.CharField(max_length=100, verbose_name="Model")),
                ("object_id", models.UUIDField(verbose_name="Object ID")),
                ("details", models.JSONField(blank=True, default=dict, verbose_name="Details")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "assembly",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="audit_logs",
                        to="assemblies.assembly",
                        verbose_name="Assembly",
                    ),
                ),
            ],
            options={
                "verbose_name": "Audit entry",
                "verbose_name_plural": "Audit log",
                "db_table": "assembly_audit_logs",
                "ordering": ["-created_at"],
                "indexes": [models.Index(fields=["assembly", "created_at"], name="assembly_au_assembl_8d2a7b_idx")],
            },
        ),
    ]
