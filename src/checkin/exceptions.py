from uuid import UUID


class ImmutableAttemptError(Exception):
    """Redemption attempts are append-only."""


class UnknownEventError(Exception):
    """A scan was presented against an event that does not exist."""

    def __init__(self, event_id: UUID) -> None:
        self.event_id = event_id
        super().__init__(f"Event {event_id} does not exist.")
