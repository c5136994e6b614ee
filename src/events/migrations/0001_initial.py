import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import events.models.ticket


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(max_length=255)),
                ("start", models.DateTimeField(db_index=True)),
                ("end", models.DateTimeField(db_index=True)),
                (
                    "check_in_starts_at",
                    models.DateTimeField(
                        blank=True, help_text="When check-in opens. Defaults to shortly before the start.", null=True
                    ),
                ),
                (
                    "check_in_ends_at",
                    models.DateTimeField(
                        blank=True, help_text="When check-in closes. Defaults to a while after the end.", null=True
                    ),
                ),
                (
                    "gate_staff",
                    models.ManyToManyField(
                        blank=True,
                        help_text="Users allowed to scan tickets at the door.",
                        related_name="staffed_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="organized_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-start"],
            },
        ),
        migrations.CreateModel(
            name="TicketType",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                ("name", models.CharField(default="General Admission", max_length=255)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE, related_name="ticket_types", to="events.event"
                    ),
                ),
            ],
            options={
                "constraints": [
                    models.UniqueConstraint(fields=("event", "name"), name="unique_ticket_type_name_per_event")
                ],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "reference",
                    models.CharField(
                        default=events.models.ticket.generate_ticket_reference,
                        editable=False,
                        max_length=13,
                        unique=True,
                    ),
                ),
                ("guest_name", models.CharField(blank=True, default="", max_length=255)),
                ("guest_email", models.EmailField(blank=True, default="", max_length=254)),
                (
                    "price_paid",
                    models.DecimalField(
                        decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(0)]
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("unused", "Unused"), ("used", "Used"), ("refunded", "Refunded")],
                        db_index=True,
                        default="unused",
                        max_length=20,
                    ),
                ),
                ("purchased_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("checked_in_at", models.DateTimeField(blank=True, editable=False, null=True)),
                ("checked_in_by", models.CharField(blank=True, default="", editable=False, max_length=150)),
                ("checked_in_location", models.CharField(blank=True, default="", editable=False, max_length=64)),
                ("refunded_at", models.DateTimeField(blank=True, editable=False, null=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="tickets", to="events.event"
                    ),
                ),
                (
                    "owner",
                    models.ForeignKey(
                        blank=True,
                        help_text="Empty for guest purchases.",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="tickets",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "ticket_type",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT, related_name="tickets", to="events.tickettype"
                    ),
                ),
            ],
            options={
                "ordering": ["-purchased_at"],
                "indexes": [models.Index(fields=["event", "status"], name="ix_ticket_event_status")],
            },
        ),
    ]
