# pdf.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import BinaryIO, Callable, List, Optional, Tuple

from django.conf import settings
from django.contrib.staticfiles import finders
from django.utils import timezone
from django.utils.text import slugify

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib import colors
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from .conf import eventhub_setting
from .qr import render_qr_png
from .tickets import tickets_ready

logger = logging.getLogger("eventhub.pdf")


# =====================================================================
# DESIGN TOKENS & LAYOUT SYSTEM
# =====================================================================

# Page + margins
PAGE_W, PAGE_H = A4
MARGIN_L = 18 * mm
MARGIN_R = 18 * mm
MARGIN_T = 16 * mm
MARGIN_B = 16 * mm

LEFT   = MARGIN_L
RIGHT  = PAGE_W - MARGIN_R
TOP    = PAGE_H - MARGIN_T
BOTTOM = MARGIN_B

# Grid & rhythm
GRID   = 4 * mm
INSET  = 5 * mm
SECTION_GAP = 2 * GRID
LABEL_COL = 30 * mm

# Block heights
HEADER_H    = 32 * mm
CARD_H      = 38 * mm
CARD_GAP    = 5 * mm
QR_SIZE     = 30 * mm
SUMMARY_H   = 30 * mm
NOTE_LINE_H = 5 * mm
FOOTER_H    = 14 * mm


def _hex(rgb: str) -> colors.Color:
    rgb = rgb.lstrip("#")
    r, g, b = tuple(int(rgb[i:i+2], 16) / 255 for i in (0, 2, 4))
    return colors.Color(r, g, b)

BRAND         = _hex("#3B82F6")
BRAND_DARK    = _hex("#6366F1")
PANEL_BORDER  = _hex("#E5E7EB")
PANEL_FILL    = _hex("#F3F4F6")
SHADOW        = _hex("#E5E7EB")
TEXT          = _hex("#111827")
HEADING       = _hex("#1F2937")
MUTE          = _hex("#4B5563")
FAINT         = _hex("#9CA3AF")
MONEY         = _hex("#059669")

# Type scale (pt)
T_9  = 9
T_10 = 10
T_11 = 11
T_13 = 13
T_16 = 16
T_26 = 26

# Fonts (registered in ensure_unicode_font)
_FONT_READY = False
_FONT_BODY = "Helvetica"
_FONT_BOLD = "Helvetica-Bold"

NOTES = (
    "Please present this ticket at the event entrance",
    "Tickets are non-transferable and non-refundable",
    "Arrive 15 minutes before the event start time",
    "Keep your QR code safe and do not share it",
)


# =====================================================================
# FONT UTILITIES (₹ safe)
# =====================================================================

def _find_static(*filenames: str) -> Optional[str]:
    """Try multiple filenames via Django finders and common static dirs."""
    for name in filenames:
        if not name:
            continue
        if os.path.isabs(name) and os.path.exists(name):
            return name

        p = finders.find(name)
        if p:
            return p

        sroot = getattr(settings, "STATIC_ROOT", None)
        if sroot:
            cand = os.path.join(sroot, name)
            if os.path.exists(cand):
                return cand

        here = os.path.dirname(__file__)
        cand = os.path.join(here, name)
        if os.path.exists(cand):
            return cand
    return None


def ensure_unicode_font() -> bool:
    """
    Register DejaVu Sans Regular/Bold if available (supports ₹).
    Return True iff DejaVu regular is available.
    """
    global _FONT_READY, _FONT_BODY, _FONT_BOLD
    if _FONT_READY:
        return _FONT_BODY.startswith("DejaVu")

    reg = _find_static("DejaVuSans.ttf", "fonts/DejaVuSans.ttf")
    bold = _find_static("DejaVuSans-Bold.ttf", "fonts/DejaVuSans-Bold.ttf")

    ok = False
    try:
        if reg:
            pdfmetrics.registerFont(TTFont("DejaVuSans", reg))
            _FONT_BODY = "DejaVuSans"
            ok = True
        if bold:
            pdfmetrics.registerFont(TTFont("DejaVuSans-Bold", bold))
            _FONT_BOLD = "DejaVuSans-Bold"
        elif ok:
            _FONT_BOLD = "DejaVuSans"
    except Exception:
        logger.warning("could not register DejaVu fonts, using Helvetica", exc_info=True)
        _FONT_BODY, _FONT_BOLD = "Helvetica", "Helvetica-Bold"
        ok = False

    _FONT_READY = True
    return ok


def currency_symbol() -> str:
    """Configured symbol, or its ASCII fallback when no font can draw it."""
    symbol = eventhub_setting("CURRENCY_SYMBOL")
    if symbol.isascii() or ensure_unicode_font():
        return symbol
    return eventhub_setting("CURRENCY_FALLBACK")


def money(value) -> str:
    return f"{currency_symbol()} {Decimal(value or 0):,.2f}"


def format_event_datetime(value: datetime) -> str:
    """'January 5, 2025 at 07:30 PM' in the project time zone."""
    if timezone.is_aware(value):
        value = timezone.localtime(value)
    return f"{value:%B} {value.day}, {value.year} at {value:%I:%M %p}"


# =====================================================================
# TICKET SHEET (what gets printed)
# =====================================================================

@dataclass
class TicketEntry:
    seat: int                 # 1-based label within the booking
    number: str
    attendee_name: str = ""
    attendee_email: str = ""


@dataclass
class TicketSheet:
    booking_ref: str
    event_title: str
    event_date: datetime
    location: str
    organizer: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    tickets: List[TicketEntry] = field(default_factory=list)


def sheet_for_booking(booking, *, ticket_index: Optional[int] = None) -> TicketSheet:
    """
    Full booking (all tickets) or, with `ticket_index`, a single-ticket sheet
    for one attendee.
    """
    event = booking.event
    numbers = booking.ticket_numbers
    indexes = range(len(numbers)) if ticket_index is None else [ticket_index]

    tickets = []
    for i in indexes:
        attendee = booking.attendee(i)
        tickets.append(TicketEntry(
            seat=i + 1,
            number=numbers[i],
            attendee_name=(attendee.get("name") or "").strip(),
            attendee_email=(attendee.get("email") or "").strip(),
        ))

    unit_price = Decimal(event.price or 0)
    if ticket_index is None:
        quantity, total = booking.quantity, Decimal(booking.total_price or 0)
    else:
        quantity, total = 1, unit_price

    return TicketSheet(
        booking_ref=booking.reference,
        event_title=event.title,
        event_date=event.date,
        location=event.location or "",
        organizer=event.organization_name or "",
        quantity=quantity,
        unit_price=unit_price,
        total_price=total,
        tickets=tickets,
    )


# =====================================================================
# PRIMITIVES
# =====================================================================

def _text_width(c: canvas.Canvas, text: str, font: str, size: float) -> float:
    return c.stringWidth(text or "", font, size)


def _ellipsis(c: canvas.Canvas, text: str, max_w: float, font: str, size: float) -> str:
    """Truncate with ellipsis without mid-word clipping."""
    txt = (text or "").strip()
    if _text_width(c, txt, font, size) <= max_w:
        return txt
    dots = "..."
    out = ""
    for w in txt.split():
        cand = (out + " " + w).strip()
        if _text_width(c, cand + dots, font, size) <= max_w:
            out = cand
        else:
            break
    return (out or txt[:1]) + dots


def draw_panel(c: canvas.Canvas, x: float, y: float, w: float, h: float,
               fill: colors.Color | None = None, stroke: colors.Color = PANEL_BORDER,
               line_width: float = 1):
    c.saveState()
    c.setLineWidth(line_width)
    c.setStrokeColor(stroke)
    if fill is not None:
        c.setFillColor(fill)
        c.rect(x, y, w, h, stroke=1, fill=1)
    else:
        c.rect(x, y, w, h, stroke=1, fill=0)
    c.restoreState()


def draw_h_rule(c: canvas.Canvas, x1: float, y: float, x2: float):
    c.saveState()
    c.setStrokeColor(PANEL_BORDER)
    c.setLineWidth(1)
    c.line(x1, y, x2, y)
    c.restoreState()


def _qr_placeholder(c: canvas.Canvas, x: float, y: float, size: float):
    c.saveState()
    c.setStrokeColor(FAINT)
    c.setDash(3, 2)
    c.rect(x, y, size, size, stroke=1, fill=0)
    c.setDash()
    c.setFillColor(FAINT)
    c.setFont(_FONT_BODY, T_9)
    c.drawCentredString(x + size / 2.0, y + size / 2.0 - 3, "QR unavailable")
    c.restoreState()


# =====================================================================
# COMPOSER
# =====================================================================

class TicketPdfComposer:
    """
    Lays out a TicketSheet on A4 pages with a running vertical cursor.

    Every block goes through `_place`, which starts a new page when the block
    would cross the bottom margin, so no block (ticket card included) is ever
    split. `placements` keeps (section, page, top, bottom) for each block.
    """

    def __init__(self, sheet: TicketSheet, *, brand: Optional[str] = None,
                 qr_renderer: Callable[[str], bytes] = render_qr_png):
        self.sheet = sheet
        self.brand = brand or eventhub_setting("BRAND_NAME")
        self.qr_renderer = qr_renderer
        self.placements: List[Tuple[str, int, float, float]] = []
        self.qr_failures: List[str] = []
        self.page = 1
        self.y = TOP
        self.c: Optional[canvas.Canvas] = None

    # ---- layout bookkeeping ----

    def _new_page(self):
        self.c.showPage()
        self.page += 1
        self.y = TOP

    def _ensure(self, height: float):
        if self.y - height < BOTTOM:
            self._new_page()

    def _place(self, section: str, height: float) -> float:
        """Reserve `height` below the cursor; returns the block's top y."""
        self._ensure(height)
        top = self.y
        self.placements.append((section, self.page, top, top - height))
        self.y = top - height
        return top

    # ---- sections ----

    def _header(self):
        c = self.c
        self.placements.append(("header", self.page, PAGE_H, PAGE_H - HEADER_H))
        c.setFillColor(BRAND)
        c.rect(0, PAGE_H - HEADER_H, PAGE_W, HEADER_H, stroke=0, fill=1)
        c.setFillColor(BRAND_DARK)
        c.rect(0, PAGE_H - HEADER_H - 1.5 * mm, PAGE_W, 1.5 * mm, stroke=0, fill=1)

        c.setFillColor(colors.white)
        c.setFont(_FONT_BOLD, T_26)
        c.drawCentredString(PAGE_W / 2.0, PAGE_H - 15 * mm, self.brand)
        c.setFont(_FONT_BODY, T_13)
        c.drawCentredString(PAGE_W / 2.0, PAGE_H - 24 * mm, "Event Ticket")
        self.y = PAGE_H - HEADER_H - SECTION_GAP

    def _label_value(self, y: float, label: str, value: str):
        c = self.c
        c.setFont(_FONT_BOLD, T_11)
        c.setFillColor(MUTE)
        c.drawString(LEFT, y, label)
        c.setFont(_FONT_BODY, T_11)
        c.setFillColor(TEXT)
        c.drawString(LEFT + LABEL_COL, y,
                     _ellipsis(c, value, RIGHT - LEFT - LABEL_COL, _FONT_BODY, T_11))

    def _event_block(self):
        s = self.sheet
        rows = [
            ("Event:", s.event_title),
            ("Date:", format_event_datetime(s.event_date)),
            ("Location:", s.location or "-"),
            ("Organizer:", s.organizer or self.brand),
        ]
        height = 9 * mm + len(rows) * 6.5 * mm + GRID
        top = self._place("event", height)

        c = self.c
        c.setFont(_FONT_BOLD, T_16)
        c.setFillColor(HEADING)
        c.drawString(LEFT, top - 6 * mm, "Event Details")
        y = top - 13 * mm
        for label, value in rows:
            self._label_value(y, label, value)
            y -= 6.5 * mm

    def _reference(self):
        top = self._place("reference", 16 * mm)
        c = self.c
        c.setFont(_FONT_BOLD, T_11)
        c.setFillColor(MUTE)
        c.drawString(LEFT, top - 5 * mm, "Booking Reference:")
        c.setFont(_FONT_BOLD, T_13)
        c.setFillColor(BRAND)
        c.drawString(LEFT, top - 11 * mm, self.sheet.booking_ref)

    def _tickets(self):
        heading_h = 10 * mm
        # keep the heading with the first card
        self._ensure(heading_h + CARD_H + CARD_GAP)
        top = self._place("tickets_heading", heading_h)
        c = self.c
        c.setFont(_FONT_BOLD, T_16)
        c.setFillColor(HEADING)
        c.drawString(LEFT, top - 6 * mm, "Your Tickets")

        for entry in self.sheet.tickets:
            self._card(entry)

    def _card(self, entry: TicketEntry):
        top = self._place(f"ticket:{entry.number}", CARD_H + CARD_GAP)
        c = self.c
        w = RIGHT - LEFT
        box_y = top - CARD_H

        c.setFillColor(SHADOW)
        c.rect(LEFT + 1.5, box_y - 1.5, w, CARD_H, stroke=0, fill=1)
        draw_panel(c, LEFT, box_y, w, CARD_H, fill=colors.white, stroke=BRAND, line_width=2)

        text_x = LEFT + INSET
        text_w = w - QR_SIZE - 3 * INSET
        c.setFont(_FONT_BOLD, T_11)
        c.setFillColor(BRAND)
        c.drawString(text_x, top - 8 * mm,
                     _ellipsis(c, f"Ticket #{entry.seat}: {entry.number}", text_w, _FONT_BOLD, T_11))

        c.setFont(_FONT_BOLD, T_10)
        c.setFillColor(MUTE)
        c.drawString(text_x, top - 15 * mm, "Attendee:")
        c.setFont(_FONT_BODY, T_10)
        c.setFillColor(TEXT)
        c.drawString(text_x + 20 * mm, top - 15 * mm,
                     _ellipsis(c, entry.attendee_name or "Guest", text_w - 20 * mm, _FONT_BODY, T_10))
        if entry.attendee_email:
            c.setFont(_FONT_BOLD, T_10)
            c.setFillColor(MUTE)
            c.drawString(text_x, top - 21 * mm, "Email:")
            c.setFont(_FONT_BODY, T_10)
            c.setFillColor(TEXT)
            c.drawString(text_x + 20 * mm, top - 21 * mm,
                         _ellipsis(c, entry.attendee_email, text_w - 20 * mm, _FONT_BODY, T_10))

        qr_x = RIGHT - INSET - QR_SIZE
        qr_y = box_y + (CARD_H - QR_SIZE) / 2.0
        try:
            png = self.qr_renderer(entry.number)
            c.drawImage(ImageReader(BytesIO(png)), qr_x, qr_y, QR_SIZE, QR_SIZE)
        except Exception:
            logger.warning("QR render failed for ticket %s, drawing placeholder",
                           entry.number, exc_info=True)
            self.qr_failures.append(entry.number)
            _qr_placeholder(c, qr_x, qr_y, QR_SIZE)

    def _closing(self):
        notes_h = 9 * mm + len(NOTES) * NOTE_LINE_H + GRID
        # summary, notes and footer travel together
        self._ensure(SECTION_GAP + SUMMARY_H + SECTION_GAP + notes_h + FOOTER_H)
        self.y -= SECTION_GAP
        self._summary()
        self.y -= SECTION_GAP
        self._notes(notes_h)
        self._footer()

    def _summary(self):
        s = self.sheet
        top = self._place("summary", SUMMARY_H)
        c = self.c
        draw_panel(c, LEFT, top - SUMMARY_H, RIGHT - LEFT, SUMMARY_H, fill=PANEL_FILL)

        x = LEFT + INSET
        value_x = LEFT + 70 * mm
        c.setFont(_FONT_BOLD, T_13)
        c.setFillColor(HEADING)
        c.drawString(x, top - 7 * mm, "Payment Summary")

        c.setFont(_FONT_BODY, T_11)
        c.setFillColor(MUTE)
        c.drawString(x, top - 14 * mm, "Number of Tickets:")
        c.drawString(x, top - 20 * mm, "Price per Ticket:")
        c.setFillColor(TEXT)
        c.drawString(value_x, top - 14 * mm, str(s.quantity))
        c.drawString(value_x, top - 20 * mm, money(s.unit_price))

        c.setFont(_FONT_BOLD, T_11)
        c.setFillColor(HEADING)
        c.drawString(x, top - 26.5 * mm, "Total Amount Paid:")
        c.setFont(_FONT_BOLD, T_13)
        c.setFillColor(MONEY)
        c.drawString(value_x, top - 26.5 * mm, money(s.total_price))

    def _notes(self, height: float):
        top = self._place("notes", height)
        c = self.c
        c.setFont(_FONT_BOLD, T_13)
        c.setFillColor(HEADING)
        c.drawString(LEFT, top - 6 * mm, "Important Notes:")
        c.setFont(_FONT_BODY, T_10)
        c.setFillColor(MUTE)
        y = top - 12 * mm
        for note in NOTES:
            c.drawString(LEFT + 2 * mm, y, f"- {note}")
            y -= NOTE_LINE_H

    def _footer(self):
        top = self._place("footer", FOOTER_H)
        c = self.c
        draw_h_rule(c, LEFT, top - 2 * mm, RIGHT)
        c.setFont(_FONT_BODY, T_9)
        c.setFillColor(FAINT)
        year = timezone.now().year
        c.drawCentredString(PAGE_W / 2.0, top - 7 * mm, f"© {year} {self.brand}. All rights reserved.")
        c.drawCentredString(PAGE_W / 2.0, top - 11.5 * mm,
                            "This ticket is valid only for the specified event and attendee.")

    # ---- entry point ----

    def render(self, sink: Optional[BinaryIO] = None) -> bytes:
        """Render to bytes; also write them to `sink` when one is given."""
        ensure_unicode_font()
        buf = BytesIO()
        self.c = canvas.Canvas(buf, pagesize=A4)
        self.c.setTitle(f"{self.brand} tickets {self.sheet.booking_ref}")
        self.c.setAuthor(self.brand)

        self._header()
        self._event_block()
        self._reference()
        self._tickets()
        self._closing()

        self.c.showPage()
        self.c.save()
        data = buf.getvalue()
        if sink is not None:
            sink.write(data)
        return data

    @property
    def page_count(self) -> int:
        return self.page


def build_ticket_pdf(booking, *, ticket_index: Optional[int] = None) -> Optional[bytes]:
    """
    Server-side attachment. Returns None (and logs) on failure so the caller
    can send the email without an attachment instead of a broken one.
    Bookings without a full set of confirmed tickets get None as well.
    """
    if not tickets_ready(booking):
        logger.warning("ticket PDF refused, booking %s is %s with %s/%s tickets",
                       booking.pk, booking.status, len(booking.ticket_numbers), booking.quantity)
        return None
    try:
        sheet = sheet_for_booking(booking, ticket_index=ticket_index)
        return TicketPdfComposer(sheet).render()
    except Exception:
        logger.exception("ticket PDF render failed booking=%s ticket_index=%s",
                         getattr(booking, "pk", None), ticket_index)
        return None


# =====================================================================
# FILENAMES
# =====================================================================

def tickets_filename(booking) -> str:
    return f"tickets-{str(booking.pk)[-8:]}.pdf"


def ticket_filename(ticket_number: str) -> str:
    return f"ticket-{ticket_number}.pdf"


def download_filename(booking, now: Optional[datetime] = None) -> str:
    now = now or timezone.now()
    slug = slugify(booking.event.title) or "event"
    return f"{slug}-tickets-{int(now.timestamp() * 1000)}.pdf"
