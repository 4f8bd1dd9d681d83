"""Tests for the FastAPI main application factory and health checks.

This module validates that:
    - The FastAPI app is correctly instantiated via main.create_app,
    - OpenAPI metadata (title, version) matches the project contract,
    - The polygon and object routers are registered,
    - The /health endpoint returns the expected response,
    - The lifespan opens and closes the shared storage handle.

See Also:
    - backend/map_server/main.py for the application factory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from fastapi import testclient

from map_server import main
from map_server.db import database

if TYPE_CHECKING:
    import pytest

    from map_server.core import config


def test_create_app() -> None:
    """Test that create_app returns a configured FastAPI instance."""
    app = main.create_app()
    assert app.title == "Map Server"
    assert app.version == "0.1.0"


def test_health_endpoint() -> None:
    """Test the health check endpoint returns ok status."""
    client = testclient.TestClient(main.create_app())
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_app_includes_routers() -> None:
    """Test that all API routers are included in the app."""
    app = main.create_app()
    routes: list[str] = [
        cast(str, getattr(route, "path", ""))
        for route in app.routes  # type: ignore[attr-defined]
        if hasattr(route, "path")
    ]
    assert "/health" in routes
    assert "/api/polygons" in routes
    assert "/api/polygons/{polygon_id}" in routes
    assert "/api/objects" in routes
    assert "/api/objects/batch" in routes


def test_lifespan_manages_store(
    monkeypatch: pytest.MonkeyPatch,
    settings: config.Settings,
    fake_client,
) -> None:
    """Test that the store is created at startup and closed at shutdown."""
    monkeypatch.setattr(
        database.pymongo,
        "MongoClient",
        lambda *args, **kwargs: fake_client,
    )
    monkeypatch.setattr(main.config, "get_settings", lambda: settings)

    app = main.create_app()
    with testclient.TestClient(app) as client:
        assert isinstance(app.state.store, database.MongoStore)
        assert client.get("/api/polygons").json() == []
        assert fake_client.closed is False

    assert fake_client.closed is True
