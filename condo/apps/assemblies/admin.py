# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Admin configuration for assemblies app.

Read-mostly views for support staff. State changes go through the API so
that locks, one-time codes and the audit log stay consistent; votes and
audit entries are never editable here.
"""

from django.contrib import admin
from unfold.admin import ModelAdmin, TabularInline

from .models import AgendaItem, Assembly, AssemblyAuditLog, AssemblyMinutes, Participant, Vote


class AgendaItemInline(TabularInline):
    model = AgendaItem
    extra = 0
    fields = ["order_index", "title", "status", "quorum_type", "result"]
    readonly_fields = ["status", "result"]
    ordering = ["order_index"]


@admin.register(Assembly)
class AssemblyAdmin(ModelAdmin):
    list_display = ["title", "condominium", "scheduled_at", "status", "participant_count"]
    list_filter = ["status", "condominium"]
    search_fields = ["title", "condominium__name"]
    date_hierarchy = "scheduled_at"
    ordering = ["-scheduled_at"]
    inlines = [AgendaItemInline]
    readonly_fields = [
        "status",
        "started_at",
        "finished_at",
        "cancelled_at",
        "checkin_code_expires_at",
        "created_by",
        "created_at",
        "updated_at",
    ]
    exclude = ["checkin_code", "checkin_code_generated_at", "checkin_token"]

    @admin.display(description="Participants")
    def participant_count(self, obj):
        return obj.participants.count()


@admin.register(Participant)
class ParticipantAdmin(ModelAdmin):
    list_display = ["unit", "assembly", "proxy_name", "approval_status", "voting_weight", "joined_at", "left_at"]
    list_filter = ["approval_status", "assembly__condominium"]
    search_fields = ["unit__identifier", "proxy_name", "assembly__title"]
    readonly_fields = [
        "approval_status",
        "approved_by",
        "approved_at",
        "rejected_by",
        "rejected_at",
        "rejection_reason",
        "joined_at",
        "left_at",
    ]
    exclude = ["session_token_hash"]


@admin.register(Vote)
class VoteAdmin(ModelAdmin):
    list_display = ["agenda_item", "participant", "choice", "voting_weight", "created_at"]
    list_filter = ["choice"]
    search_fields = ["agenda_item__title", "participant__unit__identifier"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AssemblyMinutes)
class AssemblyMinutesAdmin(ModelAdmin):
    list_display = ["assembly", "status", "approved_by", "approved_at", "published_at"]
    list_filter = ["status"]
    search_fields = ["assembly__title"]
    readonly_fields = ["status", "vote_summary", "attendance_summary", "approved_by", "approved_at", "published_at"]


@admin.register(AssemblyAuditLog)
class AssemblyAuditLogAdmin(ModelAdmin):
    list_display = ["created_at", "assembly", "action", "actor", "model_name"]
    list_filter = ["action"]
    search_fields = ["assembly__title", "actor"]
    readonly_fields = ["assembly", "actor", "action", "model_name", "object_id", "details", "created_at"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
