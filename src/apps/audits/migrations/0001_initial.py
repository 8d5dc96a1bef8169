import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="AuditEvent",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "cert_id",
                    models.CharField(
                        db_index=True,
                        help_text="ID of the certificate record this event is about.",
                        max_length=64,
                    ),
                ),
                ("who", models.CharField(max_length=255)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("issued", "Certificate issued"),
                            ("signed_csr", "CSR signed"),
                            ("renewed", "Certificate renewed"),
                            ("revoked", "Certificate revoked"),
                        ],
                        max_length=20,
                    ),
                ),
                (
                    "details",
                    models.TextField(blank=True, default="", help_text="Human-readable summary."),
                ),
                (
                    "timestamp",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
            ],
            options={
                "db_table": "audit_events",
                "ordering": ["-timestamp", "-id"],
                "indexes": [
                    models.Index(fields=["cert_id", "-timestamp"], name="audit_cert_ts_idx"),
                ],
            },
        ),
    ]
