"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import dramatiq
import pytest
import pytest_asyncio
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from reportcourier.export.config import ExportConfig, MailjetConfig
from reportcourier.subscriptions.storage import init_storage

if typ.TYPE_CHECKING:
    from pathlib import Path

# Actors bind to the global broker when their module is imported.
dramatiq.set_broker(StubBroker())


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite.

    ``NullPool`` opens a connection per session so steps that drive the
    store through ``asyncio.run`` never reuse a connection across loops.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'courier_test.db'}", poolclass=NullPool
    )
    try:
        await init_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def export_config() -> ExportConfig:
    """Export configuration with fast polling and test endpoints."""
    return ExportConfig(
        mailjet=MailjetConfig(
            api_key="mj-key",
            secret_key="mj-secret",
            endpoint="https://mailjet.test/v3.1/send",
        ),
        app_base_url="https://courier.test",
        sender_email="reports@courier.test",
        sender_name="Courier Tests",
        powerbi_api_url="https://powerbi.test/v1.0/myorg",
        authority_url="https://login.test",
        poll_interval_s=0.01,
        poll_max_attempts=3,
    )
