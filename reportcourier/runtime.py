"""Report Courier runtime entrypoint.

``reportcourier.runtime:create_app`` is the Granian factory. When
``COURIER_DATABASE_URL`` is set the app serves the subscription endpoints;
otherwise it starts in health-only mode.

Configuration is driven by environment variables:

- ``COURIER_HOST``: Bind address (default ``0.0.0.0``)
- ``COURIER_PORT``: Listen port (default ``8080``)
- ``COURIER_LOG_LEVEL``: Log level (default ``INFO``)
- ``COURIER_DATABASE_URL``: Database connection URL (optional)
- ``COURIER_CREATE_TABLES``: create missing tables at startup when truthy

Export settings are described in :mod:`reportcourier.export.config`.

Run the service directly with ``python -m reportcourier.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from reportcourier.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi
    from sqlalchemy.ext.asyncio import AsyncEngine

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535
_TRUTHY = frozenset({"1", "true", "yes"})


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If *port_str* is not an integer in 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid COURIER_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def _create_tables_requested() -> bool:
    return os.environ.get("COURIER_CREATE_TABLES", "").strip().lower() in _TRUTHY


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment.

    Returns
    -------
    falcon.asgi.App
        Full app when ``COURIER_DATABASE_URL`` is set, else health-only.

    """
    from reportcourier.api.app import create_app as _create_api_app

    database_url = os.environ.get("COURIER_DATABASE_URL")
    if database_url is None:
        log_warning(logger, "COURIER_DATABASE_URL unset; serving health probes only")
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from reportcourier.api.factory import build_dependencies

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    app = _create_api_app(build_dependencies(session_factory))

    if _create_tables_requested():
        app.add_middleware(_StartupTables(engine))
    return app


class _StartupTables:
    """ASGI lifespan middleware creating missing tables on startup."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    async def process_startup(self, _scope: object, _event: object) -> None:
        from reportcourier.subscriptions.storage import init_storage

        await init_storage(self._engine)
        log_info(logger, "Subscription tables ensured")


def main() -> None:
    """Start the Report Courier server using Granian."""
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("COURIER_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("COURIER_PORT", "8080"))
    log_level_str = os.environ.get("COURIER_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid COURIER_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting Report Courier on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "reportcourier.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
