#models.py
import builtins
import uuid

from django.db import models
from django.contrib.auth.models import User
from django.core.validators import MinValueValidator
from django.utils import timezone


class Event(models.Model):
    """
    Read-only input to the ticket pipeline; managed from Admin.
    """
    title = models.CharField(max_length=200)
    date = models.DateTimeField()
    location = models.CharField(max_length=255, blank=True, default="")
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0,
                                validators=[MinValueValidator(0)])
    organization_name = models.CharField(max_length=200, blank=True, default="",
                                         help_text="Organizer display name printed on tickets")
    organizer = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                  related_name="organized_events")
    available_tickets = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["date"]

    def __str__(self):
        return f"{self.title} ({self.date:%d %b %Y})"


class Booking(models.Model):
    """
    One purchase of `quantity` seats for an event. Ticket numbers live in the
    `tickets` registry; scans live in the `verified_tickets` ledger.
    """
    STATUS = (
        ("pending", "Pending"),
        ("confirmed", "Confirmed"),
        ("cancelled", "Cancelled"),
        ("refunded", "Refunded"),
    )

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name="bookings")
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="bookings")

    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    total_price = models.DecimalField(max_digits=12, decimal_places=2, default=0,
                                      validators=[MinValueValidator(0)])
    status = models.CharField(max_length=20, choices=STATUS, default="pending")

    # payment identifiers (opaque, from Razorpay)
    razorpay_order_id = models.CharField(max_length=128, unique=True, null=True, blank=True)
    razorpay_payment_id = models.CharField(max_length=128, unique=True, null=True, blank=True)
    razorpay_signature = models.CharField(max_length=256, blank=True, default="")

    # shape: [{"name": "...", "email": "...", "phone": "..."}, ...], index i -> ticket i
    attendee_details = models.JSONField(default=list, blank=True)

    pdf_url = models.URLField(max_length=500, blank=True, default="")
    download_count = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user"], name="eventhub_bo_user_id_5b1f0e_idx"),
            models.Index(fields=["event"], name="eventhub_bo_event_i_8c2d41_idx"),
        ]

    def __str__(self):
        return f"Booking {self.reference} ({self.event_id} x{self.quantity} {self.status})"

    @builtins.property
    def reference(self) -> str:
        """Short human-shareable code: last 8 chars of the ID, upper-cased."""
        return str(self.pk)[-8:].upper()

    @builtins.property
    def ticket_numbers(self) -> list[str]:
        return list(self.tickets.order_by("position").values_list("number", flat=True))

    @builtins.property
    def cancelled_tickets(self) -> set[str]:
        return set(self.tickets.filter(cancelled_at__isnull=False).values_list("number", flat=True))

    def attendee(self, index: int) -> dict:
        details = self.attendee_details or []
        if 0 <= index < len(details) and isinstance(details[index], dict):
            return details[index]
        return {}


class Ticket(models.Model):
    """
    One issued seat. `number` is unique across the whole system and is the
    key scanned at the gate.
    """
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="tickets")
    number = models.CharField(max_length=64, unique=True)
    position = models.PositiveSmallIntegerField(help_text="0-based index into attendee_details")
    issued_at = models.DateTimeField(default=timezone.now)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["booking", "position"]
        unique_together = (("booking", "position"),)

    def __str__(self):
        return self.number

    @builtins.property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None


class TicketVerification(models.Model):
    """
    Append-only check-in ledger. Every scan outcome is a new row.
    """
    STATUS = (
        ("approved", "Approved"),
        ("denied", "Denied"),
    )

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="verified_tickets")
    ticket_number = models.CharField(max_length=64, db_index=True)
    verified_at = models.DateTimeField(default=timezone.now)
    verified_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True,
                                    related_name="ticket_verifications")
    status = models.CharField(max_length=10, choices=STATUS, default="approved")
    reason = models.CharField(max_length=32, blank=True, default="")

    class Meta:
        ordering = ["verified_at", "id"]

    def __str__(self):
        return f"{self.ticket_number} {self.status} @ {self.verified_at:%Y-%m-%d %H:%M}"
