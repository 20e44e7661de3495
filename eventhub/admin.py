# admin.py
from django.contrib import admin
from django.db import models as dj_models
from django.forms import Textarea

from .models import Event, Booking, Ticket, TicketVerification


admin.site.site_header = "EventHub Admin Panel"
admin.site.site_title = "EventHub Admin"
admin.site.index_title = "Welcome to EventHub Admin"


@admin.register(Event)
class EventAdmin(admin.ModelAdmin):
    list_display = ("title", "date", "location", "price", "organization_name", "available_tickets")
    search_fields = ("title", "location", "organization_name")
    list_filter = ("date",)
    fieldsets = (
        (None, {"fields": ("title", "date", "location")}),
        ("Organizer", {"fields": ("organization_name", "organizer")}),
        ("Seats & Pricing", {"fields": ("price", "available_tickets")}),
    )


class TicketInline(admin.TabularInline):
    model = Ticket
    extra = 0
    fields = ("position", "number", "issued_at", "cancelled_at", "cancellation_reason")
    readonly_fields = ("position", "number", "issued_at")
    can_delete = False


class TicketVerificationInline(admin.TabularInline):
    model = TicketVerification
    extra = 0
    fields = ("verified_at", "ticket_number", "status", "reason", "verified_by")
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        # ledger rows only come from gate scans
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("reference", "user", "event", "quantity", "total_price", "status",
                    "ticket_count", "download_count", "created_at")
    list_filter = ("status", "event")
    search_fields = ("id", "user__username", "user__email", "razorpay_order_id",
                     "razorpay_payment_id", "tickets__number")
    readonly_fields = ("id", "reference", "razorpay_payment_id", "razorpay_signature",
                       "download_count", "created_at", "updated_at")

    formfield_overrides = {
        dj_models.JSONField: {"widget": Textarea(attrs={"rows": 6, "cols": 100})},
    }

    fieldsets = (
        ("Core", {"fields": ("id", "reference", "user", "event", "quantity", "total_price", "status")}),
        ("Attendees", {
            "fields": ("attendee_details",),
            "description": "List of {name, email, phone}; entry i belongs to ticket i.",
        }),
        ("Payment", {"fields": ("razorpay_order_id", "razorpay_payment_id", "razorpay_signature")}),
        ("Delivery", {"fields": ("pdf_url", "download_count", "created_at", "updated_at")}),
    )
    inlines = [TicketInline, TicketVerificationInline]

    def get_queryset(self, request):
        return super().get_queryset(request).select_related("user", "event")

    @admin.display(description="Tickets")
    def ticket_count(self, obj):
        return obj.tickets.count()


@admin.register(TicketVerification)
class TicketVerificationAdmin(admin.ModelAdmin):
    list_display = ("ticket_number", "booking", "status", "reason", "verified_by", "verified_at")
    list_filter = ("status", "reason")
    search_fields = ("ticket_number", "booking__id")
    date_hierarchy = "verified_at"

    def get_readonly_fields(self, request, obj=None):
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
