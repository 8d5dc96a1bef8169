import uuid

import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Certificate",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
                ("updated_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "cn",
                    models.CharField(db_index=True, help_text="Subject common name.", max_length=255),
                ),
                (
                    "sans",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Ordered subject alternative names.",
                    ),
                ),
                (
                    "serial",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Serial exactly as reported by certificate inspection.",
                        max_length=128,
                    ),
                ),
                (
                    "not_after",
                    models.DateTimeField(
                        db_index=True,
                        help_text="Expiry read from the CA-issued certificate.",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("active", "Active"), ("revoked", "Revoked"), ("expired", "Expired")],
                        db_index=True,
                        default="active",
                        max_length=10,
                    ),
                ),
                (
                    "key_strategy",
                    models.CharField(
                        choices=[("server", "Server-generated key"), ("csr", "Caller-supplied CSR")],
                        max_length=10,
                    ),
                ),
                (
                    "storage_ref",
                    models.CharField(
                        default="ephemeral",
                        help_text="Where key material lives; 'ephemeral' means it is not retained.",
                        max_length=255,
                    ),
                ),
                ("owner_user", models.CharField(default="system", max_length=255)),
            ],
            options={
                "db_table": "certificates",
                "ordering": ["-created_at"],
            },
        ),
    ]
