from rest_framework import serializers

from .models import Booking, Event, TicketVerification


# --- Read models ---

class EventSerializer(serializers.ModelSerializer):
    class Meta:
        model = Event
        fields = ["id", "title", "date", "location", "price", "organization_name", "available_tickets"]


class TicketVerificationSerializer(serializers.ModelSerializer):
    verified_by = serializers.PrimaryKeyRelatedField(read_only=True)

    class Meta:
        model = TicketVerification
        fields = ["ticket_number", "verified_at", "verified_by", "status", "reason"]


class BookingSerializer(serializers.ModelSerializer):
    event = EventSerializer(read_only=True)
    reference = serializers.CharField(read_only=True)
    ticket_numbers = serializers.ListField(child=serializers.CharField(), read_only=True)
    cancelled_tickets = serializers.SerializerMethodField()
    verified_tickets = TicketVerificationSerializer(many=True, read_only=True)

    class Meta:
        model = Booking
        fields = [
            "id", "reference", "event", "quantity", "total_price", "status",
            "ticket_numbers", "attendee_details", "cancelled_tickets", "verified_tickets",
            "download_count", "created_at",
        ]

    def get_cancelled_tickets(self, obj):
        return sorted(obj.cancelled_tickets)


# --- Request payloads ---

class VerifyPaymentSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    razorpay_order_id = serializers.CharField(max_length=128)
    razorpay_payment_id = serializers.CharField(max_length=128)
    razorpay_signature = serializers.CharField(max_length=256)


class PaymentFailedSerializer(serializers.Serializer):
    booking_id = serializers.UUIDField()
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")


class TicketActionSerializer(serializers.Serializer):
    booking_id = serializers.CharField(max_length=64)
    ticket_number = serializers.CharField(max_length=64)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    # gate operator decision; only read by the verify endpoint
    status = serializers.ChoiceField(choices=["approved", "denied"], required=False, default="approved")
