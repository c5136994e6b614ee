from django.apps import AppConfig


class EventsConfig(AppConfig):
    """Events, ticket types and the tickets issued for them."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "events"
