from django.urls import path
from . import views

urlpatterns = [
    path("health/", views.health, name="health"),
    path("payments/verify", views.verify_payment, name="verify_payment"),
    path("payments/failed", views.payment_failed, name="payment_failed"),
    path("bookings/<uuid:booking_id>/tickets.pdf", views.booking_tickets_pdf, name="booking_tickets_pdf"),
    path("tickets/verify", views.verify_ticket_view, name="verify_ticket"),
    path("tickets/status", views.ticket_status_view, name="ticket_status"),
    path("tickets/cancel", views.cancel_ticket_view, name="cancel_ticket"),
]
