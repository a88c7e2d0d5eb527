# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Tenants app configuration.

Provides the condominium tenant boundary: condominiums, their units
and the memberships that grant administrative access.
"""

from django.apps import AppConfig


class TenantsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.tenants"
    label = "tenants"
    verbose_name = "Condominiums"
