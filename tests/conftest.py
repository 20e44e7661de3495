from datetime import datetime
from decimal import Decimal
from smtplib import SMTPException

import pytest
from django.contrib.auth.models import User
from django.utils import timezone

from eventhub.mailer import TicketMailer
from eventhub.models import Booking, Event
from eventhub.tickets import assign_ticket_numbers


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


class FlakyConnection:
    """Email connection whose first `failures` sends raise; `fail_for` always fails."""

    def __init__(self, failures=0, fail_for=()):
        self.failures = failures
        self.fail_for = set(fail_for)
        self.calls = 0
        self.sent = []

    def send_messages(self, messages):
        self.calls += 1
        if self.calls <= self.failures:
            raise SMTPException("temporary failure")
        for m in messages:
            if set(m.to) & self.fail_for:
                raise SMTPException(f"mailbox unavailable: {m.to}")
        self.sent.extend(messages)
        return len(messages)


@pytest.fixture
def sleeps():
    return SleepRecorder()


@pytest.fixture
def make_mailer(sleeps):
    def _make(**kwargs):
        options = dict(from_email="tickets@eventhub.test", frontend_url="https://eventhub.test",
                       brand="EventHub", sleep=sleeps)
        options.update(kwargs)
        return TicketMailer(**options)
    return _make


@pytest.fixture
def mailer(make_mailer):
    return make_mailer()


@pytest.fixture
def buyer(db):
    return User.objects.create_user("buyer", email="buyer@example.com", password="pw",
                                    first_name="Asha", last_name="Rao")


@pytest.fixture
def organizer(db):
    return User.objects.create_user("organizer", email="org@example.com", password="pw")


@pytest.fixture
def stranger(db):
    return User.objects.create_user("stranger", email="stranger@example.com", password="pw")


@pytest.fixture
def event(organizer):
    return Event.objects.create(
        title="Summer Music Fest",
        date=timezone.make_aware(datetime(2025, 1, 5, 19, 30)),
        location="Jawaharlal Nehru Stadium, Delhi",
        price=Decimal("1500.00"),
        organization_name="Live Nation India",
        organizer=organizer,
        available_tickets=100,
    )


@pytest.fixture
def make_booking(buyer, event):
    def _make(quantity=1, status="pending", attendees=None, **kwargs):
        return Booking.objects.create(
            user=kwargs.pop("user", buyer),
            event=event,
            quantity=quantity,
            total_price=event.price * quantity,
            status=status,
            attendee_details=attendees or [],
            **kwargs,
        )
    return _make


@pytest.fixture
def pending_booking(make_booking):
    return make_booking(quantity=2, razorpay_order_id="order_TEST123", attendees=[
        {"name": "Asha Rao", "email": "buyer@example.com"},
        {"name": "Vikram Shah", "email": "vikram@example.com"},
    ])


@pytest.fixture
def issued_booking(make_booking):
    """Confirmed booking of 3 with ticket numbers already assigned."""
    booking = make_booking(quantity=3, status="confirmed", attendees=[
        {"name": "Asha Rao", "email": "buyer@example.com"},
        {"name": "Vikram Shah", "email": "vikram@example.com"},
        {"name": "Meera Iyer", "email": "meera@example.com"},
    ])
    assign_ticket_numbers(booking)
    return booking


@pytest.fixture
def flaky():
    return FlakyConnection
