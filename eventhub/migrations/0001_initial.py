import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200)),
                ("date", models.DateTimeField()),
                ("location", models.CharField(blank=True, default="", max_length=255)),
                ("price", models.DecimalField(decimal_places=2, default=0, max_digits=10,
                                              validators=[django.core.validators.MinValueValidator(0)])),
                ("organization_name", models.CharField(blank=True, default="",
                                                       help_text="Organizer display name printed on tickets",
                                                       max_length=200)),
                ("available_tickets", models.IntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("organizer", models.ForeignKey(blank=True, null=True,
                                                on_delete=django.db.models.deletion.SET_NULL,
                                                related_name="organized_events",
                                                to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["date"],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("quantity", models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ("total_price", models.DecimalField(decimal_places=2, default=0, max_digits=12,
                                                    validators=[django.core.validators.MinValueValidator(0)])),
                ("status", models.CharField(choices=[("pending", "Pending"), ("confirmed", "Confirmed"),
                                                     ("cancelled", "Cancelled"), ("refunded", "Refunded")],
                                            default="pending", max_length=20)),
                ("razorpay_order_id", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("razorpay_payment_id", models.CharField(blank=True, max_length=128, null=True, unique=True)),
                ("razorpay_signature", models.CharField(blank=True, default="", max_length=256)),
                ("attendee_details", models.JSONField(blank=True, default=list)),
                ("pdf_url", models.URLField(blank=True, default="", max_length=500)),
                ("download_count", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("event", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT,
                                            related_name="bookings", to="eventhub.event")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                           related_name="bookings", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user"], name="eventhub_bo_user_id_5b1f0e_idx"),
                    models.Index(fields=["event"], name="eventhub_bo_event_i_8c2d41_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Ticket",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=64, unique=True)),
                ("position", models.PositiveSmallIntegerField(help_text="0-based index into attendee_details")),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.CharField(blank=True, default="", max_length=255)),
                ("booking", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="tickets", to="eventhub.booking")),
            ],
            options={
                "ordering": ["booking", "position"],
                "unique_together": {("booking", "position")},
            },
        ),
        migrations.CreateModel(
            name="TicketVerification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("ticket_number", models.CharField(db_index=True, max_length=64)),
                ("verified_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("status", models.CharField(choices=[("approved", "Approved"), ("denied", "Denied")],
                                            default="approved", max_length=10)),
                ("reason", models.CharField(blank=True, default="", max_length=32)),
                ("booking", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE,
                                              related_name="verified_tickets", to="eventhub.booking")),
                ("verified_by", models.ForeignKey(blank=True, null=True,
                                                  on_delete=django.db.models.deletion.SET_NULL,
                                                  related_name="ticket_verifications",
                                                  to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ["verified_at", "id"],
            },
        ),
    ]
