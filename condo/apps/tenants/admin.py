# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Admin configuration for tenants app.

Uses Django Unfold admin theme for a modern, clean interface.
"""

from django.contrib import admin, messages
from unfold.admin import ModelAdmin, TabularInline

from .models import Condominium, CondominiumMembership, Unit


class UnitInline(TabularInline):
    model = Unit
    extra = 0
    fields = ["block", "number", "identifier", "fraction", "is_active"]


@admin.register(Condominium)
class CondominiumAdmin(ModelAdmin):
    """Admin for condominiums (tenants)."""

    list_display = ["name", "slug", "unit_count", "total_fraction", "is_active", "created_at"]
    list_filter = ["is_active"]
    search_fields = ["name", "slug"]
    prepopulated_fields = {"slug": ["name"]}
    ordering = ["name"]
    inlines = [UnitInline]
    actions = ["activate_condominiums", "deactivate_condominiums"]

    fieldsets = (
        (None, {"fields": ("name", "slug", "address", "contact_email")}),
        ("Status", {"fields": ("is_active",)}),
    )

    @admin.display(description="Units")
    def unit_count(self, obj):
        return obj.units.count()

    @admin.display(description="Total fraction")
    def total_fraction(self, obj):
        return obj.total_fraction

    @admin.action(description="Activate selected condominiums")
    def activate_condominiums(self, request, queryset):
        count = queryset.update(is_active=True)
        messages.success(request, f"{count} condominium(s) activated.")

    @admin.action(description="Deactivate selected condominiums")
    def deactivate_condominiums(self, request, queryset):
        count = queryset.update(is_active=False)
        messages.success(request, f"{count} condominium(s) deactivated.")


@admin.register(Unit)
class UnitAdmin(ModelAdmin):
    """Admin for units and their ownership fractions."""

    list_display = ["identifier", "condominium", "block", "number", "fraction", "is_active"]
    list_filter = ["condominium", "is_active"]
    search_fields = ["identifier", "number", "condominium__name"]
    ordering = ["condominium__name", "identifier"]


@admin.register(CondominiumMembership)
class CondominiumMembershipAdmin(ModelAdmin):
    """Admin for user memberships (administrative access)."""

    list_display = ["user", "condominium", "role", "is_active", "created_at"]
    list_filter = ["role", "is_active", "condominium"]
    search_fields = ["user__username", "user__email", "condominium__name"]
    autocomplete_fields = ["user"]
