"""Tests for environment-dependent settings."""

import pytest
from httpx import AsyncClient

from app.core.config import Settings

API = "/api/v1"


def test_unset_environment_is_treated_as_production(monkeypatch):
    """A deployment that forgets ENVIRONMENT must not leak stack traces."""
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    settings = Settings(_env_file=None)

    assert settings.ENVIRONMENT == "production"
    assert settings.DEBUG is False
    assert settings.COOKIE_SECURE is True


def test_only_development_is_debug(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    settings = Settings(_env_file=None)

    assert settings.DEBUG is True
    assert settings.COOKIE_SECURE is False


@pytest.mark.asyncio
async def test_error_body_has_no_internals_outside_development(async_client: AsyncClient):
    resp = await async_client.get(f"{API}/tours/999")
    assert resp.status_code == 404
    assert set(resp.json()) == {"status", "message"}
