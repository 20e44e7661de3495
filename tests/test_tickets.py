import re

import pytest

from eventhub.exceptions import BookingNotConfirmed, TicketNumberExhausted
from eventhub.models import Ticket
from eventhub.tickets import (
    TOKEN_ALPHABET,
    assign_ticket_numbers,
    confirm_booking,
    make_ticket_number,
    random_token,
)

NUMBER_RE = re.compile(r"^TKT-[0-9A-F]{8}-\d+-[A-Z2-9]{8}$")


def test_random_token_uses_unambiguous_alphabet():
    token = random_token(32)
    assert len(token) == 32
    assert set(token) <= set(TOKEN_ALPHABET)
    assert not set("01IO") & set(token)


def test_make_ticket_number_format():
    assert make_ticket_number("AB12CD34", 2, "XYZ23456") == "TKT-AB12CD34-2-XYZ23456"


@pytest.mark.django_db
def test_assigns_one_unique_number_per_seat(make_booking):
    booking = make_booking(quantity=5, status="confirmed")
    numbers = assign_ticket_numbers(booking)

    assert len(numbers) == 5
    assert len(set(numbers)) == 5
    assert all(NUMBER_RE.match(n) for n in numbers)
    assert [n.split("-")[2] for n in numbers] == ["1", "2", "3", "4", "5"]
    assert all(n.split("-")[1] == booking.reference for n in numbers)
    assert booking.ticket_numbers == numbers


@pytest.mark.django_db
def test_numbers_are_unique_across_bookings(make_booking):
    numbers = []
    for _ in range(4):
        numbers += assign_ticket_numbers(make_booking(quantity=3, status="confirmed"))
    assert len(numbers) == 12
    assert len(set(numbers)) == 12
    assert Ticket.objects.count() == 12


@pytest.mark.django_db
def test_reassigning_returns_existing_numbers(make_booking):
    booking = make_booking(quantity=2, status="confirmed")
    first = assign_ticket_numbers(booking)
    second = assign_ticket_numbers(booking)
    assert first == second
    assert booking.tickets.count() == 2


@pytest.mark.django_db
def test_collision_is_retried_with_a_fresh_token(make_booking):
    booking = make_booking(quantity=1, status="confirmed")
    other = make_booking(quantity=1, status="confirmed")
    taken = make_ticket_number(booking.reference, 1, "DUPDUPDU")
    Ticket.objects.create(booking=other, number=taken, position=0)

    tokens = iter(["DUPDUPDU", "FRESHAAA"])
    numbers = assign_ticket_numbers(booking, token_factory=lambda: next(tokens))

    assert numbers == [make_ticket_number(booking.reference, 1, "FRESHAAA")]


@pytest.mark.django_db
def test_exhausted_retries_roll_back_every_seat(make_booking):
    booking = make_booking(quantity=2, status="confirmed")
    other = make_booking(quantity=1, status="confirmed")
    Ticket.objects.create(booking=other, number=make_ticket_number(booking.reference, 2, "SAMESAME"),
                          position=0)

    with pytest.raises(TicketNumberExhausted) as exc:
        assign_ticket_numbers(booking, token_factory=lambda: "SAMESAME", max_attempts=3)

    assert exc.value.position == 1
    assert exc.value.attempts == 3
    # seat 1 got a number before seat 2 failed; it must not survive
    assert booking.tickets.count() == 0


@pytest.mark.django_db
def test_pending_booking_gets_no_tickets(make_booking):
    booking = make_booking(quantity=2, status="pending")
    with pytest.raises(BookingNotConfirmed):
        assign_ticket_numbers(booking)
    assert booking.tickets.count() == 0


@pytest.mark.django_db
def test_confirm_booking_takes_seats_and_issues(pending_booking, event):
    booking = confirm_booking(pending_booking.pk, payment_id="pay_1", signature="sig")

    assert booking.status == "confirmed"
    assert booking.razorpay_payment_id == "pay_1"
    assert len(booking.ticket_numbers) == 2
    event.refresh_from_db()
    assert event.available_tickets == 98


@pytest.mark.django_db
def test_confirm_booking_twice_is_harmless(pending_booking, event):
    first = confirm_booking(pending_booking.pk).ticket_numbers
    second = confirm_booking(pending_booking.pk).ticket_numbers
    assert first == second
    event.refresh_from_db()
    assert event.available_tickets == 98
