# views.py
import logging

import razorpay
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F
from django.http import HttpResponse
from rest_framework import renderers
from rest_framework.decorators import api_view, permission_classes, renderer_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from .apps import get_mailer
from .exceptions import BookingNotConfirmed, TicketNumberExhausted
from .ledger import cancel_ticket, verification_status, verify_ticket
from .models import Booking, Ticket
from .pdf import TicketPdfComposer, download_filename, sheet_for_booking
from .serializers import (
    BookingSerializer,
    PaymentFailedSerializer,
    TicketActionSerializer,
    VerifyPaymentSerializer,
)
from .tickets import confirm_booking

logger = logging.getLogger("eventhub.views")


def _can_manage(user, booking: Booking) -> bool:
    """Staff, or the organizer who owns the booking's event."""
    if not getattr(user, "is_authenticated", False):
        return False
    return bool(user.is_staff or booking.event.organizer_id == user.id)


def _get_booking(booking_id):
    try:
        return Booking.objects.select_related("event", "user").get(pk=booking_id)
    except (Booking.DoesNotExist, ValidationError, ValueError):
        # malformed UUID text is just another unknown booking
        return None


@api_view(["GET"])
@permission_classes([AllowAny])
def health(request):
    return Response({"ok": True})


# -----------------------------------
# Razorpay helpers
# -----------------------------------
def _get_razorpay_client():
    """
    Return a configured Razorpay client.
    Raises RuntimeError with a clear message if the keys are missing.
    """
    key_id = getattr(settings, "RAZORPAY_KEY_ID", None)
    key_secret = getattr(settings, "RAZORPAY_KEY_SECRET", None)
    if not key_id or not key_secret:
        raise RuntimeError("Razorpay keys are not configured (RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET).")
    return razorpay.Client(auth=(key_id, key_secret))


def _payment_signature_ok(order_id: str, payment_id: str, signature: str) -> bool:
    client = _get_razorpay_client()
    try:
        client.utility.verify_payment_signature({
            "razorpay_order_id": order_id,
            "razorpay_payment_id": payment_id,
            "razorpay_signature": signature,
        })
    except razorpay.errors.SignatureVerificationError:
        return False
    return True


# -----------------------------------
# Payments -> ticket issuance
# -----------------------------------
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def verify_payment(request):
    """
    Razorpay checkout success: check the signature, confirm the booking, issue
    tickets, and queue the confirmation emails for after commit.
    """
    ser = VerifyPaymentSerializer(data=request.data)
    if not ser.is_valid():
        return Response({"error": "invalid_request", "detail": ser.errors}, status=400)
    data = ser.validated_data

    booking = _get_booking(data["booking_id"])
    if booking is None:
        return Response({"error": "booking not found"}, status=404)
    if booking.user_id != request.user.id:
        return Response({"error": "forbidden"}, status=403)
    if not booking.razorpay_order_id or booking.razorpay_order_id != data["razorpay_order_id"]:
        logger.warning("order mismatch booking=%s stored=%s sent=%s",
                       booking.pk, booking.razorpay_order_id, data["razorpay_order_id"])
        return Response({"error": "order does not match booking"}, status=400)

    try:
        ok = _payment_signature_ok(data["razorpay_order_id"], data["razorpay_payment_id"],
                                   data["razorpay_signature"])
    except RuntimeError as e:
        logger.error("payment verification unavailable: %s", e)
        return Response({"error": "payments not configured"}, status=503)
    if not ok:
        logger.warning("bad payment signature booking=%s", booking.pk)
        return Response({"error": "payment verification failed"}, status=400)

    try:
        with transaction.atomic():
            booking = confirm_booking(
                booking.pk,
                payment_id=data["razorpay_payment_id"],
                signature=data["razorpay_signature"],
            )
            get_mailer().schedule_booking_confirmation(booking.pk)
    except TicketNumberExhausted:
        logger.exception("ticket issuance failed booking=%s", booking.pk)
        return Response({"error": "ticket_issue_failed"}, status=500)
    except BookingNotConfirmed as e:
        return Response({"error": "booking not payable", "status": e.status}, status=409)
    except IntegrityError:
        # razorpay_payment_id is unique: this payment already confirmed another booking
        logger.warning("payment %s reused for booking=%s", data["razorpay_payment_id"], booking.pk)
        return Response({"error": "payment already used"}, status=409)

    return Response({
        "message": "Payment verified and booking confirmed",
        "booking": BookingSerializer(booking).data,
    })


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def payment_failed(request):
    ser = PaymentFailedSerializer(data=request.data)
    if not ser.is_valid():
        return Response({"error": "invalid_request", "detail": ser.errors}, status=400)
    data = ser.validated_data

    booking = _get_booking(data["booking_id"])
    if booking is None:
        return Response({"error": "booking not found"}, status=404)
    if booking.user_id != request.user.id:
        return Response({"error": "forbidden"}, status=403)
    if booking.status != "pending":
        return Response({"error": "booking is not pending", "status": booking.status}, status=409)

    mailer = get_mailer()
    reason = data["reason"] or "Payment was not completed"
    with transaction.atomic():
        booking.status = "cancelled"
        booking.save(update_fields=["status", "updated_at"])
        transaction.on_commit(
            lambda: mailer.dispatch(mailer.send_payment_failure_email, booking.user, booking.event, reason)
        )

    return Response({"message": "Booking cancelled", "booking_id": str(booking.pk)})


# -----------------------------------
# Ticket PDF (download without email)
# -----------------------------------
class PassthroughPDFRenderer(renderers.BaseRenderer):
    """
    Accepts Accept: application/pdf so DRF doesn't 406 before our view runs.
    We still return HttpResponse(pdf_bytes), so this is a no-op renderer.
    """
    media_type = "application/pdf"
    format = "pdf"
    charset = None
    render_style = "binary"

    def render(self, data, accepted_media_type=None, renderer_context=None):
        return data


@api_view(["GET"])
@permission_classes([IsAuthenticated])
@renderer_classes([renderers.JSONRenderer, PassthroughPDFRenderer])
def booking_tickets_pdf(request, booking_id):
    booking = _get_booking(booking_id)
    if booking is None:
        return Response({"error": "not found"}, status=404)
    if booking.user_id != request.user.id and not request.user.is_staff:
        return Response({"error": "forbidden"}, status=403)
    if booking.status != "confirmed" or not booking.tickets.exists():
        return Response({"error": "booking not confirmed"}, status=400)

    resp = HttpResponse(content_type="application/pdf")
    try:
        TicketPdfComposer(sheet_for_booking(booking)).render(sink=resp)
    except Exception as e:
        logger.exception("ticket download render failed booking=%s", booking.pk)
        return Response({"error": "pdf_render_failed", "detail": repr(e)}, status=500)

    Booking.objects.filter(pk=booking.pk).update(download_count=F("download_count") + 1)
    resp["Content-Disposition"] = f'attachment; filename="{download_filename(booking)}"'
    return resp


# -----------------------------------
# Gate verification
# -----------------------------------
@api_view(["POST"])
@permission_classes([IsAuthenticated])
def verify_ticket_view(request):
    ser = TicketActionSerializer(data=request.data)
    if not ser.is_valid():
        return Response({"error": "ticket_number and booking_id are required", "detail": ser.errors},
                        status=400)
    data = ser.validated_data

    booking = _get_booking(data["booking_id"])
    if booking is None:
        return Response({"status": "denied", "reason": "not_found",
                         "ticket_number": data["ticket_number"], "verified_at": None}, status=404)
    if not _can_manage(request.user, booking):
        return Response({"error": "not authorized to verify this ticket"}, status=403)

    result = verify_ticket(booking.pk, data["ticket_number"], request.user, decision=data["status"])
    return Response(result.as_dict())


@api_view(["GET"])
@permission_classes([IsAuthenticated])
def ticket_status_view(request):
    booking_id = request.query_params.get("booking_id")
    ticket_number = request.query_params.get("ticket_number")
    if not booking_id or not ticket_number:
        return Response({"error": "ticket_number and booking_id are required"}, status=400)

    booking = _get_booking(booking_id)
    if booking is None:
        return Response({"error": "booking not found"}, status=404)
    if not _can_manage(request.user, booking):
        return Response({"error": "forbidden"}, status=403)

    return Response(verification_status(booking.pk, ticket_number))


@api_view(["POST"])
@permission_classes([IsAuthenticated])
def cancel_ticket_view(request):
    ser = TicketActionSerializer(data=request.data)
    if not ser.is_valid():
        return Response({"error": "ticket_number and booking_id are required", "detail": ser.errors},
                        status=400)
    data = ser.validated_data

    booking = _get_booking(data["booking_id"])
    if booking is None:
        return Response({"error": "booking not found"}, status=404)
    if not _can_manage(request.user, booking):
        return Response({"error": "not authorized to cancel this ticket"}, status=403)

    mailer = get_mailer()
    try:
        with transaction.atomic():
            changed = cancel_ticket(booking.pk, data["ticket_number"], reason=data["reason"])
            if changed:
                transaction.on_commit(lambda: mailer.dispatch(
                    mailer.send_ticket_cancellation_email, booking, data["ticket_number"], data["reason"]
                ))
    except Ticket.DoesNotExist:
        return Response({"error": "ticket not found in this booking"}, status=404)

    if not changed:
        return Response({"error": "ticket is already cancelled"}, status=400)

    return Response({
        "message": "Ticket cancelled successfully",
        "booking_id": str(booking.pk),
        "cancelled_tickets": sorted(booking.cancelled_tickets),
    })
