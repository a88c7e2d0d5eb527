# SPDX-License-Identifier: AGPL-3.0-or-later
"""Audit trail helper for assembly transitions."""

from apps.assemblies.models import AssemblyAuditLog


def record(assembly_id, action: str, obj, actor=None, **details) -> AssemblyAuditLog:
    """
    Write one audit entry.

    Details must be JSON serialisable; callers pass identifiers and
    stringified decimals, never codes or tokens.
    """
    return AssemblyAuditLog.objects.create(
        assembly_id=assembly_id,
        actor=str(actor) if actor else "",
        action=action,
        model_name=obj._meta.model_name,
        object_id=obj.pk,
        details=details,
    )
