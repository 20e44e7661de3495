# ledger.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .conf import eventhub_setting
from .models import Booking, Event, Ticket, TicketVerification

logger = logging.getLogger("eventhub.ledger")

APPROVED = "approved"
DENIED = "denied"


@dataclass
class VerificationResult:
    status: str                       # approved | denied
    ticket_number: str
    reason: Optional[str] = None      # not_found | cancelled | invalid | already_used | operator
    verified_at: Optional[datetime] = None

    @property
    def approved(self) -> bool:
        return self.status == APPROVED

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "ticket_number": self.ticket_number,
            "reason": self.reason,
            "verified_at": self.verified_at.isoformat() if self.verified_at else None,
        }


def _find_booking(booking_id) -> Optional[Booking]:
    try:
        return Booking.objects.get(pk=booking_id)
    except (Booking.DoesNotExist, ValidationError, ValueError):
        # malformed UUIDs are just another unknown booking at the gate
        return None


def _append(booking: Booking, ticket_number: str, actor, status: str, reason: str = "") -> TicketVerification:
    entry = TicketVerification.objects.create(
        booking=booking,
        ticket_number=ticket_number,
        verified_by=actor if getattr(actor, "pk", None) else None,
        status=status,
        reason=reason,
        verified_at=timezone.now(),
    )
    logger.info("ledger %s booking=%s ticket=%s by=%s reason=%s",
                status, booking.pk, ticket_number, getattr(actor, "pk", None), reason or "-")
    return entry


def verify_ticket(booking_id, ticket_number: str, actor, *,
                  decision: str = APPROVED,
                  single_use: Optional[bool] = None) -> VerificationResult:
    """
    Gate check for one scanned ticket. Outcomes are values, never exceptions.

    Cancelled tickets are denied and the denial is recorded. Numbers that don't
    belong to the booking are denied without touching the ledger. Re-scans of
    an approved ticket are approved again unless single-use entry is on.
    `decision="denied"` records the gate operator turning away an otherwise
    valid ticket (reason "operator").
    """
    if decision not in (APPROVED, DENIED):
        raise ValueError(f"decision must be {APPROVED!r} or {DENIED!r}, got {decision!r}")
    ticket_number = (ticket_number or "").strip()
    booking = _find_booking(booking_id)
    if booking is None:
        logger.info("verify: booking %s not found", booking_id)
        return VerificationResult(DENIED, ticket_number, reason="not_found")

    if single_use is None:
        single_use = bool(eventhub_setting("SINGLE_USE_ENTRY"))

    ticket = Ticket.objects.filter(booking=booking, number=ticket_number).first()

    if ticket is not None and ticket.is_cancelled:
        entry = _append(booking, ticket_number, actor, DENIED, "cancelled")
        return VerificationResult(DENIED, ticket_number, reason="cancelled", verified_at=entry.verified_at)

    if ticket is None:
        logger.info("verify: %s is not a ticket of booking %s", ticket_number, booking.pk)
        return VerificationResult(DENIED, ticket_number, reason="invalid")

    if decision == DENIED:
        entry = _append(booking, ticket_number, actor, DENIED, "operator")
        return VerificationResult(DENIED, ticket_number, reason="operator", verified_at=entry.verified_at)

    if single_use:
        with transaction.atomic():
            # serialize scans of one booking so two gates can't both admit the same ticket
            Booking.objects.select_for_update().filter(pk=booking.pk).first()
            used = booking.verified_tickets.filter(ticket_number=ticket_number, status=APPROVED).exists()
            status, reason = (DENIED, "already_used") if used else (APPROVED, "")
            entry = _append(booking, ticket_number, actor, status, reason)
        return VerificationResult(status, ticket_number, reason=reason or None, verified_at=entry.verified_at)

    entry = _append(booking, ticket_number, actor, APPROVED)
    return VerificationResult(APPROVED, ticket_number, verified_at=entry.verified_at)


def verification_status(booking_id, ticket_number: str) -> Optional[dict]:
    """Latest ledger entry for a ticket; None if the booking doesn't exist."""
    ticket_number = (ticket_number or "").strip()
    booking = _find_booking(booking_id)
    if booking is None:
        return None
    entries = booking.verified_tickets.filter(ticket_number=ticket_number)
    latest = entries.order_by("-verified_at", "-id").first()
    return {
        "ticket_number": ticket_number,
        "is_verified": entries.filter(status=APPROVED).exists(),
        "scan_count": entries.count(),
        "last_status": latest.status if latest else None,
        "verified_at": latest.verified_at.isoformat() if latest else None,
        "cancelled": ticket_number in booking.cancelled_tickets,
    }


def cancel_ticket(booking_id, ticket_number: str, *, reason: str = "") -> bool:
    """
    Invalidate one issued ticket and release its seat. Returns False if it was
    already cancelled. Unknown booking/ticket raise DoesNotExist.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(pk=booking_id)
        ticket = Ticket.objects.select_for_update().get(booking=booking, number=ticket_number)
        if ticket.is_cancelled:
            return False
        ticket.cancelled_at = timezone.now()
        ticket.cancellation_reason = (reason or "")[:255]
        ticket.save(update_fields=["cancelled_at", "cancellation_reason"])
        Event.objects.filter(pk=booking.event_id).update(available_tickets=F("available_tickets") + 1)

    logger.info("ticket %s of booking %s cancelled", ticket_number, booking_id)
    return True
