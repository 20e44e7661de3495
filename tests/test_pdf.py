from datetime import datetime, timezone as dt_timezone
from decimal import Decimal

import pytest

from eventhub import pdf
from eventhub.pdf import (
    BOTTOM,
    CARD_GAP,
    CARD_H,
    TicketEntry,
    TicketPdfComposer,
    TicketSheet,
    build_ticket_pdf,
    download_filename,
    format_event_datetime,
    money,
    sheet_for_booking,
    ticket_filename,
    tickets_filename,
)


def make_sheet(count=1, **kwargs):
    fields = dict(
        booking_ref="AB12CD34",
        event_title="Summer Music Fest",
        event_date=datetime(2025, 1, 5, 19, 30),
        location="Jawaharlal Nehru Stadium, Delhi",
        organizer="Live Nation India",
        quantity=count,
        unit_price=Decimal("1500.00"),
        total_price=Decimal("1500.00") * count,
        tickets=[
            TicketEntry(seat=i + 1, number=f"TKT-AB12CD34-{i + 1}-TOKEN{i:03d}",
                        attendee_name=f"Guest {i + 1}", attendee_email=f"guest{i + 1}@example.com")
            for i in range(count)
        ],
    )
    fields.update(kwargs)
    return TicketSheet(**fields)


def sections(composer):
    return [p[0] for p in composer.placements]


def test_single_ticket_layout_order():
    composer = TicketPdfComposer(make_sheet(1))
    data = composer.render()

    assert data.startswith(b"%PDF")
    assert sections(composer) == [
        "header", "event", "reference", "tickets_heading",
        "ticket:TKT-AB12CD34-1-TOKEN000", "summary", "notes", "footer",
    ]
    assert composer.page_count == 1
    assert composer.qr_failures == []


def test_cards_are_never_split_across_pages():
    composer = TicketPdfComposer(make_sheet(14))
    composer.render()

    cards = [p for p in composer.placements if p[0].startswith("ticket:")]
    assert len(cards) == 14
    assert composer.page_count > 1
    for _, _, top, bottom in cards:
        assert top - bottom == pytest.approx(CARD_H + CARD_GAP)
        assert bottom >= BOTTOM

    # the heading stays with the first card
    heading = next(p for p in composer.placements if p[0] == "tickets_heading")
    assert heading[1] == cards[0][1]

    # closing block is kept together on the last page
    closing = [p for p in composer.placements if p[0] in ("summary", "notes", "footer")]
    assert {p[1] for p in closing} == {composer.page_count}


def test_cards_run_in_seat_order():
    composer = TicketPdfComposer(make_sheet(4))
    composer.render()
    cards = [p[0] for p in composer.placements if p[0].startswith("ticket:")]
    assert cards == [f"ticket:TKT-AB12CD34-{i}-TOKEN{i - 1:03d}" for i in range(1, 5)]


def test_qr_failure_draws_placeholder_and_still_renders():
    def broken(_data):
        raise RuntimeError("encoder exploded")

    composer = TicketPdfComposer(make_sheet(2), qr_renderer=broken)
    data = composer.render()

    assert data.startswith(b"%PDF")
    assert composer.qr_failures == ["TKT-AB12CD34-1-TOKEN000", "TKT-AB12CD34-2-TOKEN001"]


def test_render_writes_to_sink():
    class Sink:
        def __init__(self):
            self.chunks = []

        def write(self, chunk):
            self.chunks.append(chunk)

    sink = Sink()
    data = TicketPdfComposer(make_sheet(1)).render(sink=sink)
    assert b"".join(sink.chunks) == data


def test_long_values_are_truncated_not_overflowing():
    sheet = make_sheet(1, event_title="A " * 200, location="Somewhere " * 50)
    assert TicketPdfComposer(sheet).render().startswith(b"%PDF")


def test_format_event_datetime():
    assert format_event_datetime(datetime(2025, 1, 5, 19, 30)) == "January 5, 2025 at 07:30 PM"
    assert format_event_datetime(datetime(2025, 11, 15, 9, 5)) == "November 15, 2025 at 09:05 AM"


def test_money_uses_fallback_when_no_unicode_font(monkeypatch):
    monkeypatch.setattr(pdf, "ensure_unicode_font", lambda: False)
    assert money(Decimal("1500")) == "Rs 1,500.00"


def test_money_uses_symbol_when_font_available(monkeypatch):
    monkeypatch.setattr(pdf, "ensure_unicode_font", lambda: True)
    assert money(Decimal("123456.5")) == "₹ 123,456.50"


@pytest.mark.django_db
def test_sheet_for_whole_booking(issued_booking):
    sheet = sheet_for_booking(issued_booking)
    assert sheet.booking_ref == issued_booking.reference
    assert sheet.quantity == 3
    assert sheet.total_price == Decimal("4500.00")
    assert [t.number for t in sheet.tickets] == issued_booking.ticket_numbers
    assert [t.attendee_name for t in sheet.tickets] == ["Asha Rao", "Vikram Shah", "Meera Iyer"]


@pytest.mark.django_db
def test_sheet_for_single_attendee(issued_booking):
    sheet = sheet_for_booking(issued_booking, ticket_index=1)
    assert sheet.quantity == 1
    assert sheet.total_price == sheet.unit_price == Decimal("1500.00")
    assert len(sheet.tickets) == 1
    assert sheet.tickets[0].seat == 2
    assert sheet.tickets[0].number == issued_booking.ticket_numbers[1]


@pytest.mark.django_db
def test_build_ticket_pdf(issued_booking):
    assert build_ticket_pdf(issued_booking).startswith(b"%PDF")
    assert build_ticket_pdf(issued_booking, ticket_index=2).startswith(b"%PDF")


@pytest.mark.django_db
def test_build_ticket_pdf_returns_none_on_failure(issued_booking):
    assert build_ticket_pdf(issued_booking, ticket_index=9) is None


@pytest.mark.django_db
def test_filenames(issued_booking):
    pk = str(issued_booking.pk)
    assert tickets_filename(issued_booking) == f"tickets-{pk[-8:]}.pdf"
    assert ticket_filename("TKT-AB12CD34-1-XYZ23456") == "ticket-TKT-AB12CD34-1-XYZ23456.pdf"
    now = datetime(2025, 1, 1, tzinfo=dt_timezone.utc)
    assert download_filename(issued_booking, now=now) == "summer-music-fest-tickets-1735689600000.pdf"


@pytest.mark.django_db
def test_build_ticket_pdf_refuses_unconfirmed_booking(make_booking):
    assert build_ticket_pdf(make_booking(quantity=2, status="pending")) is None


@pytest.mark.django_db
def test_build_ticket_pdf_refuses_booking_without_tickets(make_booking):
    assert build_ticket_pdf(make_booking(quantity=2, status="confirmed")) is None


def test_tickets_heading_moves_with_first_card_near_page_bottom():
    from io import BytesIO

    from reportlab.lib.units import mm
    from reportlab.pdfgen import canvas

    composer = TicketPdfComposer(make_sheet(1))
    composer.c = canvas.Canvas(BytesIO())
    # room for heading + card, but not for the gap that follows the card
    composer.y = BOTTOM + 10 * mm + CARD_H + 2 * mm
    composer._tickets()

    heading = next(p for p in composer.placements if p[0] == "tickets_heading")
    card = next(p for p in composer.placements if p[0].startswith("ticket:"))
    assert heading[1] == card[1] == 2
    assert card[3] >= BOTTOM
