import uuid

import pytest

from eventhub.ledger import cancel_ticket, verification_status, verify_ticket
from eventhub.models import Ticket, TicketVerification

pytestmark = pytest.mark.django_db


def test_valid_ticket_is_approved_and_recorded(issued_booking, organizer):
    number = issued_booking.ticket_numbers[0]
    result = verify_ticket(issued_booking.pk, number, organizer)

    assert result.approved
    assert result.reason is None
    entry = issued_booking.verified_tickets.get()
    assert entry.ticket_number == number
    assert entry.verified_by == organizer
    assert entry.status == "approved"
    assert result.verified_at == entry.verified_at


def test_unknown_booking_is_not_found(organizer):
    result = verify_ticket(uuid.uuid4(), "TKT-XXXXXXXX-1-AAAAAAAA", organizer)
    assert result.status == "denied"
    assert result.reason == "not_found"
    assert TicketVerification.objects.count() == 0


def test_malformed_booking_id_is_not_found(organizer):
    assert verify_ticket("not-a-uuid", "TKT-1", organizer).reason == "not_found"


def test_number_from_another_booking_is_invalid_and_not_recorded(issued_booking, make_booking, organizer):
    from eventhub.tickets import assign_ticket_numbers

    other = make_booking(quantity=1, status="confirmed")
    foreign = assign_ticket_numbers(other)[0]

    result = verify_ticket(issued_booking.pk, foreign, organizer)
    assert result.status == "denied"
    assert result.reason == "invalid"
    assert TicketVerification.objects.count() == 0


def test_cancelled_ticket_is_denied_and_recorded(issued_booking, organizer):
    number = issued_booking.ticket_numbers[1]
    cancel_ticket(issued_booking.pk, number, reason="refund")

    result = verify_ticket(issued_booking.pk, number, organizer)
    assert result.status == "denied"
    assert result.reason == "cancelled"
    entry = issued_booking.verified_tickets.get()
    assert (entry.status, entry.reason) == ("denied", "cancelled")


def test_rescan_is_approved_again_by_default(issued_booking, organizer, settings):
    settings.EVENTHUB = {"SINGLE_USE_ENTRY": False}
    number = issued_booking.ticket_numbers[0]
    first = verify_ticket(issued_booking.pk, number, organizer)
    second = verify_ticket(issued_booking.pk, number, organizer)

    assert first.approved and second.approved
    assert issued_booking.verified_tickets.filter(ticket_number=number).count() == 2


def test_single_use_denies_second_scan(issued_booking, organizer):
    number = issued_booking.ticket_numbers[2]
    first = verify_ticket(issued_booking.pk, number, organizer, single_use=True)
    second = verify_ticket(issued_booking.pk, number, organizer, single_use=True)

    assert first.approved
    assert second.status == "denied"
    assert second.reason == "already_used"
    statuses = list(issued_booking.verified_tickets.values_list("status", "reason"))
    assert statuses == [("approved", ""), ("denied", "already_used")]


def test_single_use_from_settings(issued_booking, organizer, settings):
    settings.EVENTHUB = {"SINGLE_USE_ENTRY": True}
    number = issued_booking.ticket_numbers[0]
    verify_ticket(issued_booking.pk, number, organizer)
    assert verify_ticket(issued_booking.pk, number, organizer).reason == "already_used"


def test_ledger_is_append_only_across_outcomes(issued_booking, organizer):
    a, b, _ = issued_booking.ticket_numbers
    verify_ticket(issued_booking.pk, a, organizer)
    cancel_ticket(issued_booking.pk, b)
    verify_ticket(issued_booking.pk, b, organizer)
    verify_ticket(issued_booking.pk, a, organizer)

    rows = list(issued_booking.verified_tickets.values_list("ticket_number", "status"))
    assert rows == [(a, "approved"), (b, "denied"), (a, "approved")]


def test_verification_status(issued_booking, organizer):
    number = issued_booking.ticket_numbers[0]
    before = verification_status(issued_booking.pk, number)
    assert before["is_verified"] is False
    assert before["scan_count"] == 0
    assert before["verified_at"] is None

    verify_ticket(issued_booking.pk, number, organizer)
    after = verification_status(issued_booking.pk, number)
    assert after["is_verified"] is True
    assert after["scan_count"] == 1
    assert after["last_status"] == "approved"
    assert after["cancelled"] is False


def test_verification_status_unknown_booking():
    assert verification_status(uuid.uuid4(), "TKT-1") is None


def test_cancel_ticket_releases_seat(issued_booking, event):
    number = issued_booking.ticket_numbers[0]
    before = event.available_tickets

    assert cancel_ticket(issued_booking.pk, number, reason="Changed plans") is True
    ticket = Ticket.objects.get(number=number)
    assert ticket.is_cancelled
    assert ticket.cancellation_reason == "Changed plans"
    assert issued_booking.cancelled_tickets == {number}
    event.refresh_from_db()
    assert event.available_tickets == before + 1


def test_cancel_twice_reports_false(issued_booking, event):
    number = issued_booking.ticket_numbers[0]
    cancel_ticket(issued_booking.pk, number)
    assert cancel_ticket(issued_booking.pk, number) is False
    event.refresh_from_db()
    assert event.available_tickets == 101


def test_cancel_unknown_ticket_raises(issued_booking):
    with pytest.raises(Ticket.DoesNotExist):
        cancel_ticket(issued_booking.pk, "TKT-NOPE")


def test_operator_can_turn_away_a_valid_ticket(issued_booking, organizer):
    number = issued_booking.ticket_numbers[0]
    result = verify_ticket(issued_booking.pk, number, organizer, decision="denied")

    assert result.status == "denied"
    assert result.reason == "operator"
    entry = issued_booking.verified_tickets.get()
    assert (entry.status, entry.reason, entry.verified_by) == ("denied", "operator", organizer)
    assert verification_status(issued_booking.pk, number)["is_verified"] is False


def test_operator_denial_does_not_count_as_entry_for_single_use(issued_booking, organizer):
    number = issued_booking.ticket_numbers[0]
    verify_ticket(issued_booking.pk, number, organizer, decision="denied", single_use=True)
    assert verify_ticket(issued_booking.pk, number, organizer, single_use=True).approved


def test_cancelled_reason_wins_over_operator_decision(issued_booking, organizer):
    number = issued_booking.ticket_numbers[1]
    cancel_ticket(issued_booking.pk, number)
    assert verify_ticket(issued_booking.pk, number, organizer, decision="denied").reason == "cancelled"


def test_unknown_decision_rejected(issued_booking, organizer):
    with pytest.raises(ValueError):
        verify_ticket(issued_booking.pk, issued_booking.ticket_numbers[0], organizer, decision="maybe")
    assert TicketVerification.objects.count() == 0


def test_verification_status_trims_scanned_number(issued_booking, organizer):
    number = issued_booking.ticket_numbers[0]
    verify_ticket(issued_booking.pk, number, organizer)

    status = verification_status(issued_booking.pk, f" {number}\n")
    assert status["ticket_number"] == number
    assert status["scan_count"] == 1
    assert status["is_verified"] is True
