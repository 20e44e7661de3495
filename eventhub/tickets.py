# tickets.py
from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional

from django.db import IntegrityError, transaction
from django.db.models import F

from .conf import eventhub_setting
from .exceptions import BookingNotConfirmed, TicketNumberExhausted
from .models import Booking, Event, Ticket

logger = logging.getLogger("eventhub.tickets")

# no 0/O/1/I so printed codes can be typed back in at the gate
TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def random_token(length: Optional[int] = None) -> str:
    n = length or int(eventhub_setting("TICKET_TOKEN_LENGTH"))
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(n))


def make_ticket_number(booking_ref: str, seat: int, token: str) -> str:
    """TKT-{REF}-{seat}-{TOKEN}; seat is 1-based."""
    return f"TKT-{booking_ref}-{seat}-{token}"


def tickets_ready(booking: Booking) -> bool:
    """Confirmed, with one issued number per seat."""
    return booking.status == "confirmed" and len(booking.ticket_numbers) == booking.quantity


def _issue_one(booking: Booking, position: int, token_factory: Callable[[], str],
               max_attempts: int) -> Ticket:
    for attempt in range(1, max_attempts + 1):
        candidate = make_ticket_number(booking.reference, position + 1, token_factory())
        if Ticket.objects.filter(number=candidate).exists():
            logger.warning("ticket number collision booking=%s seat=%s attempt=%s",
                           booking.pk, position + 1, attempt)
            continue
        try:
            # savepoint so a lost race on the unique index doesn't poison the outer transaction
            with transaction.atomic():
                return Ticket.objects.create(booking=booking, number=candidate, position=position)
        except IntegrityError:
            logger.warning("ticket number insert collided booking=%s seat=%s attempt=%s",
                           booking.pk, position + 1, attempt)
    raise TicketNumberExhausted(booking.pk, position, max_attempts)


def assign_ticket_numbers(booking: Booking, *, token_factory: Optional[Callable[[], str]] = None,
                          max_attempts: Optional[int] = None) -> list[str]:
    """
    Issue exactly `booking.quantity` unique ticket numbers, once.

    Re-running on a booking that already holds tickets returns the existing
    numbers. Raises TicketNumberExhausted (and rolls back every seat of this
    call) if any seat can't get a unique number.
    """
    token_factory = token_factory or random_token
    max_attempts = max_attempts or int(eventhub_setting("TICKET_NUMBER_MAX_ATTEMPTS"))

    with transaction.atomic():
        locked = Booking.objects.select_for_update().get(pk=booking.pk)
        if locked.status != "confirmed":
            raise BookingNotConfirmed(locked.pk, locked.status)

        existing = locked.ticket_numbers
        if existing:
            return existing

        numbers = [
            _issue_one(locked, position, token_factory, max_attempts).number
            for position in range(locked.quantity)
        ]

    logger.info("issued %s ticket(s) for booking %s", len(numbers), booking.pk)
    return numbers


def confirm_booking(booking_id, *, payment_id: str | None = None,
                    signature: str | None = None,
                    token_factory: Optional[Callable[[], str]] = None) -> Booking:
    """
    Payment succeeded: mark confirmed, take seats off the event and issue
    ticket numbers in a single transaction. Safe to call twice.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().select_related("event", "user").get(pk=booking_id)
        if booking.status == "pending":
            booking.status = "confirmed"
            if payment_id:
                booking.razorpay_payment_id = payment_id
            if signature:
                booking.razorpay_signature = signature
            booking.save(update_fields=["status", "razorpay_payment_id", "razorpay_signature", "updated_at"])
            Event.objects.filter(pk=booking.event_id).update(
                available_tickets=F("available_tickets") - booking.quantity
            )
        assign_ticket_numbers(booking, token_factory=token_factory)

    booking.refresh_from_db()
    return booking
