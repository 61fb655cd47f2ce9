"""Unit tests for the reportcourier.runtime module."""

from __future__ import annotations

import typing as typ

import falcon.testing
import pytest
import sqlalchemy as sa
from sqlalchemy.ext.asyncio import create_async_engine

from reportcourier.export import ExportConfigError
from reportcourier.runtime import _parse_port, _StartupTables, create_app

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def no_database(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run the factory without a database URL."""
    monkeypatch.delenv("COURIER_DATABASE_URL", raising=False)


@pytest.fixture
def sqlite_database(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Point the factory at a temporary SQLite file."""
    monkeypatch.setenv(
        "COURIER_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'rt.db'}"
    )


class TestParsePort:
    """Tests for _parse_port."""

    def test_valid(self) -> None:
        """Ports in range parse to integers."""
        assert _parse_port("8080") == 8080, "wrong port"

    @pytest.mark.parametrize("raw", ["0", "65536", "http", ""])
    def test_invalid_exits(self, raw: str) -> None:
        """Invalid ports terminate with exit status 1."""
        with pytest.raises(SystemExit) as excinfo:
            _parse_port(raw)
        assert excinfo.value.code == 1, "expected exit status 1"


@pytest.mark.usefixtures("no_database")
def test_without_database_serves_health_only() -> None:
    """No database URL yields a health-only app."""
    client = falcon.testing.TestClient(create_app())
    assert client.simulate_get("/health").json == {"status": "ok"}
    assert client.simulate_get("/ready").json == {
        "status": "ready",
        "subscriptions": False,
    }, "domain routes unexpectedly enabled"
    assert client.simulate_get("/subscriptions").status_code == 404


@pytest.mark.usefixtures("sqlite_database")
def test_with_database_enables_subscriptions(monkeypatch: pytest.MonkeyPatch) -> None:
    """A database URL and Mailjet credentials enable the domain routes."""
    monkeypatch.setenv("COURIER_MAILJET_API_KEY", "key")
    monkeypatch.setenv("COURIER_MAILJET_SECRET_KEY", "secret")

    client = falcon.testing.TestClient(create_app())

    assert client.simulate_get("/ready").json["subscriptions"] is True, (
        "domain routes not enabled"
    )


@pytest.mark.usefixtures("sqlite_database")
def test_with_database_requires_mailjet(monkeypatch: pytest.MonkeyPatch) -> None:
    """Missing Mailjet credentials fail fast at startup."""
    monkeypatch.delenv("COURIER_MAILJET_API_KEY", raising=False)

    with pytest.raises(ExportConfigError, match="COURIER_MAILJET_API_KEY"):
        create_app()


@pytest.mark.asyncio
async def test_startup_creates_tables(tmp_path: Path) -> None:
    """The startup hook creates the subscription tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'startup.db'}")
    try:
        await _StartupTables(engine).process_startup(None, None)
        async with engine.connect() as conn:
            names = await conn.run_sync(
                lambda sync_conn: sa.inspect(sync_conn).get_table_names()
            )
    finally:
        await engine.dispose()

    assert {"report_subscriptions", "subscription_logs"} <= set(names), (
        "tables not created"
    )
