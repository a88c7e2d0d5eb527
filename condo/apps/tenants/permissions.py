# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Role-based permissions for condominium administration.

Roles follow the usual condominium structure:
- Syndic (building manager, full control of assemblies)
- Sub-syndic (deputy, same assembly rights)
- Council member (read-only oversight)
"""

PERMISSIONS = {
    "assemblies.view": "View assemblies, attendance and results",
    "assemblies.manage": "Create, start, finish and cancel assemblies",
    "agenda.manage": "Manage agenda items and open/close voting",
    "proxies.review": "Approve or reject proxy credentials",
    "minutes.manage": "Generate, edit and publish minutes",
}

ROLE_CHOICES = [
    ("syndic", "Syndic"),
    ("subsyndic", "Sub-syndic"),
    ("council", "Council member"),
]

ROLE_PERMISSIONS = {
    "syndic": set(PERMISSIONS),
    "subsyndic": set(PERMISSIONS),
    "council": {"assemblies.view"},
}
