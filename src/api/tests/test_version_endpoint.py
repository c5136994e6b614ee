"""Tests for the /version and /healthcheck endpoints."""

from django.conf import settings
from django.test.client import Client
from django.urls import reverse

VERSION_URL = reverse("api:version")


def test_returns_version_and_demo(client: Client) -> None:
    """Test that /version returns the app version and demo flag."""
    response = client.get(VERSION_URL)
    data = response.json()

    assert response.status_code == 200
    assert data["version"] == settings.VERSION
    assert data["demo"] == settings.DEMO_MODE


def test_healthcheck(client: Client) -> None:
    response = client.get(reverse("api:healthcheck"))

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
