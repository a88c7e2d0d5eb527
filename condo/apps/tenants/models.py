# SPDX-License-Identifier: AGPL-3.0-or-later
"""
Tenant models for multi-condominium support.

A Condominium is the tenant boundary: every assembly, unit and membership
belongs to exactly one condominium, and all lookups are scoped by it.

Units carry their ownership fraction, which becomes the voting weight of
whoever represents the unit in an assembly.
"""

import uuid
from decimal import Decimal

from django.conf import settings as django_settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Sum
from django.utils.text import slugify

from .permissions import ROLE_CHOICES, ROLE_PERMISSIONS

RESERVED_SLUGS = {"public"}


class Condominium(models.Model):
    """A condominium (tenant) managed in the portal."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200, verbose_name="Name")
    slug = models.SlugField(max_length=100, unique=True, verbose_name="URL slug")
    address = models.CharField(max_length=300, blank=True, verbose_name="Address")
    contact_email = models.EmailField(blank=True, verbose_name="Contact email")

    is_active = models.BooleanField(default=True, verbose_name="Active")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Condominium"
        verbose_name_plural = "Condominiums"
        ordering = ["name"]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.slug:
            self.slug = slugify(self.name)
        # /condo/public/ is taken by the participant endpoints
        if self.slug in RESERVED_SLUGS:
            self.slug = f"{self.slug}-condo"
        super().save(*args, **kwargs)

    @property
    def total_fraction(self) -> Decimal:
        """Sum of the ownership fractions of all active units."""
        total = self.units.filter(is_active=True).aggregate(total=Sum("fraction"))["total"]
        return total or Decimal("0")


class Unit(models.Model):
    """
    An apartment, house or commercial unit of a condominium.

    The identifier (e.g. "A-101") is what residents type at check-in.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    condominium = models.ForeignKey(
        Condominium,
        on_delete=models.CASCADE,
        related_name="units",
        verbose_name="Condominium",
    )

    block = models.CharField(max_length=50, blank=True, verbose_name="Block")
    number = models.CharField(max_length=50, verbose_name="Number")
    identifier = models.CharField(max_length=100, verbose_name="Identifier")

    # Ownership share; used as voting weight in assemblies
    fraction = models.DecimalField(
        max_digits=9,
        decimal_places=6,
        default=Decimal("1"),
        validators=[MinValueValidator(Decimal("0"))],
        verbose_name="Ownership fraction",
    )

    is_active = models.BooleanField(default=True, verbose_name="Active")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Unit"
        verbose_name_plural = "Units"
        ordering = ["condominium", "identifier"]
        constraints = [
            models.UniqueConstraint(
                fields=["condominium", "identifier"],
                name="unique_unit_identifier_per_condominium",
            ),
        ]

    def __str__(self):
        return f"{self.identifier} ({self.condominium.name})"

    def save(self, *args, **kwargs):
        if not self.identifier:
            self.identifier = f"{self.block}-{self.number}" if self.block else self.number
        super().save(*args, **kwargs)


class CondominiumMembership(models.Model):
    """
    Links a portal user to a condominium with a role.

    Only memberships grant access to the administrative assembly endpoints;
    participants in an assembly authenticate with their session token instead.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        django_settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="condominium_memberships",
        verbose_name="User",
    )
    condominium = models.ForeignKey(
        Condominium,
        on_delete=models.CASCADE,
        related_name="memberships",
        verbose_name="Condominium",
    )
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default="council", verbose_name="Role")

    is_active = models.BooleanField(default=True, verbose_name="Active")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Membership"
        verbose_name_plural = "Memberships"
        unique_together = ["user", "condominium"]

    def __str__(self):
        return f"{self.user} @ {self.condominium} ({self.get_role_display()})"

    def has_permission(self, permission: str) -> bool:
        """Check whether this membership's role grants a permission."""
        if not self.is_active:
            return False
        return permission in ROLE_PERMISSIONS.get(self.role, set())
