import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("events", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="RedemptionAttempt",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "ticket_ref",
                    models.CharField(blank=True, default="", help_text="Identifier as presented.", max_length=64),
                ),
                ("validator", models.CharField(max_length=150)),
                ("attempted_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "outcome",
                    models.CharField(
                        choices=[
                            ("accepted", "Accepted"),
                            ("rejected_already_used", "Already used"),
                            ("rejected_wrong_event", "Wrong event"),
                            ("rejected_refunded", "Refunded"),
                            ("rejected_malformed", "Malformed code"),
                            ("rejected_forged", "Forged code"),
                            ("rejected_unknown_ticket", "Unknown ticket"),
                            ("rejected_check_in_closed", "Check-in closed"),
                        ],
                        max_length=32,
                    ),
                ),
                ("location", models.CharField(blank=True, default="", max_length=64)),
                ("manual_entry", models.BooleanField(default=False)),
                (
                    "raw_digest",
                    models.CharField(blank=True, help_text="SHA-256 of the raw scanned text.", max_length=64),
                ),
                (
                    "reconciled",
                    models.BooleanField(
                        default=False, help_text="Written after the fact by the audit reconciliation."
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_attempts",
                        to="events.event",
                    ),
                ),
                (
                    "ticket",
                    models.ForeignKey(
                        blank=True,
                        help_text="Empty when the code could not be resolved to a ticket.",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_attempts",
                        to="events.ticket",
                    ),
                ),
            ],
            options={
                "ordering": ["-attempted_at"],
                "indexes": [
                    models.Index(fields=["event", "-attempted_at"], name="ix_attempt_event_time"),
                    models.Index(fields=["ticket", "outcome"], name="ix_attempt_ticket_outcome"),
                ],
            },
        ),
    ]
