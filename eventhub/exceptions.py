class EventHubError(Exception):
    """Base class for ticket pipeline errors."""


class BookingNotConfirmed(EventHubError):
    """Tickets can only be issued for confirmed bookings."""

    def __init__(self, booking_id, status):
        self.booking_id = booking_id
        self.status = status
        super().__init__(f"Booking {booking_id} is {status!r}, not confirmed")


class TicketNumberExhausted(EventHubError):
    """No unique ticket number could be found within the attempt budget."""

    def __init__(self, booking_id, position: int, attempts: int):
        self.booking_id = booking_id
        self.position = position
        self.attempts = attempts
        super().__init__(
            f"Could not issue a unique ticket number for booking {booking_id} "
            f"seat #{position + 1} after {attempts} attempts"
        )
