import decimal
import uuid

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Condominium",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200, verbose_name="Name")),
                ("slug", models.SlugField(max_length=100, unique=True, verbose_name="URL slug")),
                ("address", models.CharField(blank=True, max_length=300, verbose_name="Address")),
                ("contact_email", models.EmailField(blank=True, max_length=254, verbose_name="Contact email")),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Condominium",
                "verbose_name_plural": "Condominiums",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Unit",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("block", models.CharField(blank=True, max_length=50, verbose_name="Block")),
                ("number", models.CharField(max_length=50, verbose_name="Number")),
                ("identifier", models.CharField(max_length=100, verbose_name="Identifier")),
                (
                    "fraction",
                    models.DecimalField(
                        decimal_places=6,
                        default=decimal.Decimal("1"),
                        max_digits=9,
                        validators=[django.core.validators.MinValueValidator(decimal.Decimal("0"))],
                        verbose_name="Ownership fraction",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "condominium",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="units",
                        to="tenants.condominium",
                        verbose_name="Condominium",
                    ),
                ),
            ],
            options={
                "verbose_name": "Unit",
                "verbose_name_plural": "Units",
                "ordering": ["condominium", "identifier"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("condominium", "identifier"),
                        name="unique_unit_identifier_per_condominium",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="CondominiumMembership",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "role",
                    models.CharField(
                        choices=[("syndic", "Syndic"), ("subsyndic", "Sub-syndic"), ("council", "Council member")],
                        default="council",
                        max_length=20,
                        verbose_name="Role",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Active")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "condominium",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="memberships",
                        to="tenants.condominium",
                        verbose_name="Condominium",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="condominium_memberships",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="User",
                    ),
                ),
            ],
            options={
                "verbose_name": "Membership",
                "verbose_name_plural": "Memberships",
                "unique_together": {("user", "condominium")},
            },
        ),
    ]
