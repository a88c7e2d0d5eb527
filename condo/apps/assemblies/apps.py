# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Assemblies app configuration.

Owns assemblies, agenda items, attendance, proxies, votes and minutes.
"""

from django.apps import AppConfig


class AssembliesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.assemblies"
    label = "assemblies"
    verbose_name = "Assemblies"
