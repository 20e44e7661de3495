import os
import sys

import django

sys.path.append(os.path.dirname(os.path.abspath(__file__)))
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')
django.setup()

from django.db.models import Q

from eventhub.models import Booking
from eventhub.tickets import assign_ticket_numbers


def diagnose(term, repair=False):
    print("--- DIAGNOSING BOOKING ---")

    # Booking ID prefix/suffix, payment id, buyer username or email
    bookings = Booking.objects.select_related("user", "event").filter(
        Q(id__icontains=term)
        | Q(razorpay_order_id=term)
        | Q(razorpay_payment_id=term)
        | Q(user__username__iexact=term)
        | Q(user__email__iexact=term)
    ).order_by("-created_at")
    print(f"Found {bookings.count()} bookings matching '{term}'")

    for b in bookings[:10]:
        print(f"Booking {b.id} [{b.reference}] | {b.event.title} | x{b.quantity} | Status: {b.status}")
        print(f"  Buyer: {b.user.username} <{b.user.email}> | Order: {b.razorpay_order_id} | Payment: {b.razorpay_payment_id}")

        tickets = list(b.tickets.all())
        print(f"  Tickets: {len(tickets)}/{b.quantity}")
        for t in tickets:
            attendee = b.attendee(t.position)
            state = f"CANCELLED {t.cancelled_at:%Y-%m-%d %H:%M} ({t.cancellation_reason or '-'})" if t.is_cancelled else "active"
            print(f"    #{t.position + 1} {t.number} -> {attendee.get('name') or 'Guest'} <{attendee.get('email') or '-'}> {state}")

        scans = list(b.verified_tickets.select_related("verified_by"))
        print(f"  Ledger entries: {len(scans)}")
        for s in scans:
            by = s.verified_by.username if s.verified_by else "-"
            print(f"    {s.verified_at:%Y-%m-%d %H:%M:%S} {s.ticket_number} {s.status} {s.reason or ''} by {by}")

        if b.status == "confirmed" and not tickets:
            print("  -> CONFIRMED WITHOUT TICKETS.")
            if repair:
                try:
                    numbers = assign_ticket_numbers(b)
                    print(f"    ISSUED: {numbers}")
                except Exception as e:
                    print(f"    ISSUE FAILED: {e}")
                    import traceback
                    traceback.print_exc()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("usage: python diagnose_booking.py <booking-id|order-id|username|email> [--repair]")
        sys.exit(1)
    diagnose(sys.argv[1], repair="--repair" in sys.argv[2:])
