from django.apps import AppConfig, apps


class EventhubConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "eventhub"
    verbose_name = "EventHub Tickets"

    mailer = None

    def ready(self):
        # one configured mailer per process, handed to views via get_mailer()
        from .mailer import build_mailer
        self.mailer = build_mailer()


def get_mailer():
    return apps.get_app_config("eventhub").mailer
