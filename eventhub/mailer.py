# mailer.py
from __future__ import annotations

import logging
import re
import time
from concurrent.futures import Executor, ThreadPoolExecutor
from decimal import Decimal
from typing import Callable, Optional
from urllib.parse import urlencode

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.db import close_old_connections, transaction
from django.template.loader import render_to_string
from django.utils import timezone
from django.utils.html import strip_tags

from .conf import eventhub_setting
from .models import Booking
from .pdf import build_ticket_pdf, format_event_datetime, ticket_filename, tickets_filename
from .tickets import tickets_ready

logger = logging.getLogger("eventhub.mailer")

TEMPLATE_DIR = "eventhub/emails"
_STYLE_RE = re.compile(r"<style.*?</style>", re.S)
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")


def _norm_email(value) -> str:
    return (value or "").strip().lower()


def _text_body(html: str) -> str:
    """Plain-text alternative: the HTML without its <style> block and tags."""
    text = strip_tags(_STYLE_RE.sub("", html))
    lines = "\n".join(line.strip() for line in text.splitlines())
    return _BLANK_LINES_RE.sub("\n\n", lines).strip()


def _display_name(user) -> str:
    full = (getattr(user, "get_full_name", lambda: "")() or "").strip()
    return full or getattr(user, "username", "") or "there"


class TicketMailer:
    """
    Outbound email for the ticket pipeline.

    Every send goes through `send_with_retry` (linear backoff: attempt k
    failing waits base_delay * k). Attendee emails are sent one at a time with
    `recipient_delay` between them to stay under the provider's rate limit.
    """

    def __init__(self, *, from_email: str, newsletter_from_email: Optional[str] = None,
                 frontend_url: str = "", brand: Optional[str] = None,
                 max_attempts: int = 3, base_delay: float = 2.0, recipient_delay: float = 1.5,
                 connection=None, sleep: Callable[[float], None] = time.sleep,
                 executor: Optional[Executor] = None):
        self.from_email = from_email
        self.newsletter_from_email = newsletter_from_email or from_email
        self.frontend_url = (frontend_url or "").rstrip("/")
        self.brand = brand or eventhub_setting("BRAND_NAME")
        self.max_attempts = max(1, int(max_attempts))
        self.base_delay = float(base_delay)
        self.recipient_delay = float(recipient_delay)
        self.connection = connection
        self.sleep = sleep
        self.executor = executor

    # ------------------------------------------------------------------
    # transport
    # ------------------------------------------------------------------

    def _message(self, *, to: str, subject: str, template: str, context: dict,
                 from_email: Optional[str] = None) -> EmailMultiAlternatives:
        ctx = {"brand": self.brand, "frontend_url": self.frontend_url,
               "year": timezone.now().year, **context}
        html = render_to_string(f"{TEMPLATE_DIR}/{template}.html", ctx)
        msg = EmailMultiAlternatives(
            subject=subject,
            body=_text_body(html),
            from_email=from_email or self.from_email,
            to=[to],
            connection=self.connection,
        )
        msg.attach_alternative(html, "text/html")
        return msg

    def send_with_retry(self, message: EmailMultiAlternatives):
        """Send, retrying transient failures; re-raises the last error."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                return message.send(fail_silently=False)
            except Exception as exc:
                logger.warning("email attempt %s/%s to %s failed: %s",
                               attempt, self.max_attempts, ", ".join(message.to), exc)
                if attempt == self.max_attempts:
                    raise
                wait = self.base_delay * attempt
                logger.info("retrying in %.1fs", wait)
                self.sleep(wait)

    def _price(self, value) -> str:
        return f"{eventhub_setting('CURRENCY_SYMBOL')}{Decimal(value or 0):,.2f}"

    def _event_context(self, event) -> dict:
        return {
            "event": event,
            "event_date": format_event_datetime(event.date),
            "organizer": event.organization_name or self.brand,
        }

    # ------------------------------------------------------------------
    # booking confirmation
    # ------------------------------------------------------------------

    def send_booking_confirmation(self, booking: Booking, event=None, user=None) -> bool:
        """
        Purchaser gets every ticket plus the full PDF; each attendee with a
        different email gets only their own ticket. Never raises.
        Nothing is sent unless the booking is confirmed with every seat issued.
        """
        try:
            if not tickets_ready(booking):
                logger.warning("confirmation email skipped, booking %s is %s with %s/%s tickets",
                               booking.pk, booking.status, len(booking.ticket_numbers), booking.quantity)
                return False
            event = event or booking.event
            user = user or booking.user
            numbers = booking.ticket_numbers

            tickets = []
            for i, number in enumerate(numbers):
                attendee = booking.attendee(i)
                tickets.append({
                    "seat": i + 1,
                    "number": number,
                    "name": attendee.get("name") or "Guest",
                    "email": attendee.get("email") or "",
                })

            context = {
                **self._event_context(event),
                "booking": booking,
                "reference": booking.reference,
                "name": _display_name(user),
                "tickets": tickets,
                "unit_price": self._price(event.price),
                "total_price": self._price(booking.total_price),
            }

            pdf = build_ticket_pdf(booking)
            if pdf is None:
                logger.warning("sending confirmation for booking %s without PDF", booking.pk)

            msg = self._message(
                to=user.email,
                subject=f"Booking Confirmed - {event.title}",
                template="booking_confirmation",
                context=context,
            )
            if pdf:
                msg.attach(tickets_filename(booking), pdf, "application/pdf")
            self.send_with_retry(msg)
            logger.info("confirmation email sent to %s booking=%s", user.email, booking.pk)

            purchaser = _norm_email(user.email)
            for i, ticket in enumerate(tickets):
                email = _norm_email(ticket["email"])
                if not email or email == purchaser:
                    continue
                self.sleep(self.recipient_delay)
                try:
                    self._send_attendee_ticket(booking, i, ticket, context)
                    logger.info("ticket email sent to %s ticket=%s", ticket["email"], ticket["number"])
                except Exception:
                    logger.exception("ticket email to %s failed, continuing", ticket["email"])

            return True
        except Exception:
            logger.exception("booking confirmation email failed booking=%s", getattr(booking, "pk", None))
            return False

    def _send_attendee_ticket(self, booking: Booking, index: int, ticket: dict, context: dict):
        pdf = build_ticket_pdf(booking, ticket_index=index)
        msg = self._message(
            to=ticket["email"],
            subject=f"Your Ticket - {context['event'].title}",
            template="attendee_ticket",
            context={**context, "ticket": ticket, "name": ticket["name"]},
        )
        if pdf:
            msg.attach(ticket_filename(ticket["number"]), pdf, "application/pdf")
        self.send_with_retry(msg)

    # ------------------------------------------------------------------
    # background fan-out
    # ------------------------------------------------------------------

    def schedule_booking_confirmation(self, booking_id):
        """Send confirmation after the current transaction commits, off the request path."""
        transaction.on_commit(lambda: self.dispatch(self._confirm_by_id, booking_id))

    def dispatch(self, fn, *args):
        """Run `fn` on the executor, or inline when none is configured."""
        if self.executor is None:
            return fn(*args)
        return self.executor.submit(self._in_background, fn, *args)

    @staticmethod
    def _in_background(fn, *args):
        try:
            return fn(*args)
        finally:
            close_old_connections()

    def _confirm_by_id(self, booking_id) -> bool:
        try:
            booking = Booking.objects.select_related("event", "user").get(pk=booking_id)
        except Booking.DoesNotExist:
            logger.error("confirmation email skipped, booking %s not found", booking_id)
            return False
        return self.send_booking_confirmation(booking)

    # ------------------------------------------------------------------
    # other notifications
    # ------------------------------------------------------------------

    def send_payment_failure_email(self, user, event, reason: str) -> bool:
        try:
            msg = self._message(
                to=user.email,
                subject=f"Payment Failed - {event.title}",
                template="payment_failed",
                context={"name": _display_name(user), "event": event, "reason": reason or "Unknown"},
            )
            self.send_with_retry(msg)
            logger.info("payment failure email sent to %s", user.email)
            return True
        except Exception:
            logger.exception("payment failure email to %s failed", getattr(user, "email", None))
            return False

    def send_newsletter_email(self, email: str, name: Optional[str] = None,
                              kind: str = "welcome", data: Optional[dict] = None):
        """Raises the last transport error so the caller can report it."""
        data = data or {}
        context = {
            "greeting": f"Hi {name}" if name else "Hi",
            "unsubscribe_url": f"{self.frontend_url}/unsubscribe?{urlencode({'email': email})}",
        }
        if kind == "welcome":
            subject, template = f"Welcome to {self.brand} Newsletter!", "newsletter_welcome"
        elif kind == "custom":
            subject = data.get("subject") or f"{self.brand} Newsletter Update"
            template = "newsletter_custom"
            context["content"] = data.get("content") or ""
        else:
            subject, template = f"{self.brand} Newsletter", "newsletter_generic"

        msg = self._message(to=email, subject=subject, template=template, context=context,
                            from_email=self.newsletter_from_email)
        result = self.send_with_retry(msg)
        logger.info("newsletter %s email sent to %s", kind, email)
        return result

    def send_ticket_cancellation_email(self, booking: Booking, ticket_number: str,
                                       reason: str = "") -> bool:
        """Purchaser always; the ticket's attendee too when their email differs."""
        try:
            event = booking.event
            numbers = booking.ticket_numbers
            index = numbers.index(ticket_number)
            attendee = booking.attendee(index)
            context = {
                **self._event_context(event),
                "ticket_number": ticket_number,
                "attendee_name": attendee.get("name") or "Guest",
                "reason": reason,
                "refund_amount": self._price(event.price),
                "cancelled_on": format_event_datetime(timezone.now()),
            }

            user = booking.user
            self.send_with_retry(self._message(
                to=user.email,
                subject=f"Ticket Cancellation Confirmed - {event.title}",
                template="ticket_cancelled",
                context={**context, "name": _display_name(user)},
            ))

            email = attendee.get("email") or ""
            if _norm_email(email) and _norm_email(email) != _norm_email(user.email):
                self.sleep(self.recipient_delay)
                try:
                    self.send_with_retry(self._message(
                        to=email,
                        subject=f"Ticket Cancelled - {event.title}",
                        template="ticket_cancelled",
                        context={**context, "name": context["attendee_name"]},
                    ))
                except Exception:
                    logger.exception("cancellation email to attendee %s failed", email)
            return True
        except Exception:
            logger.exception("ticket cancellation email failed booking=%s ticket=%s",
                             getattr(booking, "pk", None), ticket_number)
            return False


def build_mailer(**overrides) -> TicketMailer:
    """Construct the process-wide mailer from settings."""
    workers = int(eventhub_setting("NOTIFICATION_WORKERS"))
    options = dict(
        from_email=settings.DEFAULT_FROM_EMAIL,
        newsletter_from_email=getattr(settings, "NEWSLETTER_FROM_EMAIL", None),
        frontend_url=getattr(settings, "FRONTEND_URL", ""),
        max_attempts=eventhub_setting("EMAIL_MAX_ATTEMPTS"),
        base_delay=eventhub_setting("EMAIL_RETRY_BASE_DELAY"),
        recipient_delay=eventhub_setting("EMAIL_RECIPIENT_DELAY"),
        executor=ThreadPoolExecutor(max_workers=workers, thread_name_prefix="eventhub-mail") if workers > 0 else None,
    )
    options.update(overrides)
    return TicketMailer(**options)
