"""
Project-wide fixtures: users, an event with its ticket types and tickets, and JWT clients.
"""

import secrets
import string
import typing as t
from datetime import timedelta
from decimal import Decimal

import faker
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import AbstractUser
from django.core.cache import cache
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken

from checkin import ledger
from events.models import Event, Ticket, TicketType
from events.service import ticket_service


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture(autouse=True)
def clear_cache() -> t.Iterator[None]:
    """Throttle counters and cached stats must not leak between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def fresh_ledger() -> t.Iterator[None]:
    """Drop the per-process ledger instance so each test starts from the configured backend."""
    ledger._load.cache_clear()
    yield
    ledger._load.cache_clear()


class UserFactory:
    """Factory for creating users for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> AbstractUser:
        username = kwargs.pop("username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(10)))
        email = kwargs.pop("email", f"{username}@user.test")
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        return t.cast(
            AbstractUser,
            get_user_model().objects.create_user(  # type: ignore[attr-defined]
                username=username,
                email=email,
                password=password,
                first_name=first_name,
                last_name=last_name,
                **kwargs,
            ),
        )

    def __call__(self, **kwargs: t.Any) -> AbstractUser:
        return self.create_user(**kwargs)


def auth_client(user: AbstractUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def user_factory() -> UserFactory:
    return UserFactory()


@pytest.fixture
def organizer(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="organizer")


@pytest.fixture
def gate_staff(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="north-door")


@pytest.fixture
def other_gate_staff(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="south-door")


@pytest.fixture
def outsider(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="outsider")


@pytest.fixture
def attendee(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="attendee", first_name="Ada", last_name="Lovelace", email="ada@example.com")


@pytest.fixture
def superuser(user_factory: UserFactory) -> AbstractUser:
    return user_factory(username="root", is_superuser=True, is_staff=True)


@pytest.fixture
def event(organizer: AbstractUser, gate_staff: AbstractUser, other_gate_staff: AbstractUser) -> Event:
    """An event whose default check-in window is open right now."""
    now = timezone.now()
    event = Event.objects.create(
        name="Spring Gala",
        organizer=organizer,
        start=now - timedelta(minutes=30),
        end=now + timedelta(hours=3),
    )
    event.gate_staff.add(gate_staff, other_gate_staff)
    return event


@pytest.fixture
def other_event(organizer: AbstractUser) -> Event:
    now = timezone.now()
    return Event.objects.create(
        name="Autumn Fair",
        organizer=organizer,
        start=now - timedelta(minutes=30),
        end=now + timedelta(hours=3),
    )


@pytest.fixture
def ticket_type(event: Event) -> TicketType:
    return TicketType.objects.create(event=event, name="General Admission", price=Decimal("25.00"))


@pytest.fixture
def vip_ticket_type(event: Event) -> TicketType:
    return TicketType.objects.create(event=event, name="VIP", price=Decimal("80.00"))


@pytest.fixture
def other_ticket_type(other_event: Event) -> TicketType:
    return TicketType.objects.create(event=other_event, name="General Admission", price=Decimal("10.00"))


@pytest.fixture
def ticket(event: Event, ticket_type: TicketType, attendee: AbstractUser) -> Ticket:
    return ticket_service.issue_ticket(event, ticket_type, owner=attendee)


@pytest.fixture
def guest_ticket(event: Event, ticket_type: TicketType) -> Ticket:
    return ticket_service.issue_ticket(event, ticket_type, guest_name="Grace Hopper")


@pytest.fixture
def other_event_ticket(other_event: Event, other_ticket_type: TicketType) -> Ticket:
    return ticket_service.issue_ticket(other_event, other_ticket_type, guest_name="Alan Turing")


@pytest.fixture
def organizer_client(organizer: AbstractUser) -> Client:
    return auth_client(organizer)


@pytest.fixture
def gate_staff_client(gate_staff: AbstractUser) -> Client:
    return auth_client(gate_staff)


@pytest.fixture
def other_gate_staff_client(other_gate_staff: AbstractUser) -> Client:
    return auth_client(other_gate_staff)


@pytest.fixture
def outsider_client(outsider: AbstractUser) -> Client:
    return auth_client(outsider)


@pytest.fixture
def attendee_client(attendee: AbstractUser) -> Client:
    return auth_client(attendee)
