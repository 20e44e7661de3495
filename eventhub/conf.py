# conf.py
from django.conf import settings

DEFAULTS = {
    "BRAND_NAME": "EventHub",
    "CURRENCY_SYMBOL": "₹",
    "CURRENCY_FALLBACK": "Rs",
    "EMAIL_MAX_ATTEMPTS": 3,
    "EMAIL_RETRY_BASE_DELAY": 2.0,     # seconds; attempt k waits base * k
    "EMAIL_RECIPIENT_DELAY": 1.5,      # seconds between attendee emails
    "NOTIFICATION_WORKERS": 2,         # 0 -> send inline in the request
    "TICKET_NUMBER_MAX_ATTEMPTS": 5,
    "TICKET_TOKEN_LENGTH": 8,
    "SINGLE_USE_ENTRY": False,
}


def eventhub_setting(key: str):
    """Read settings.EVENTHUB[key], falling back to DEFAULTS."""
    overrides = getattr(settings, "EVENTHUB", None) or {}
    if key in overrides:
        return overrides[key]
    return DEFAULTS[key]
