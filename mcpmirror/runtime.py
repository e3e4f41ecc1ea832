"""mcpmirror runtime entrypoint.

Provides the ASGI application factory served by Granian and keeps the
``mcpmirror.runtime:create_app`` entrypoint stable.

When ``MCPMIRROR_DATABASE_URL`` is set, the runtime builds the store, the
registry client and the sync service so the app exposes
``POST /api/cron/sync``; tables are created on ASGI startup. Otherwise it
serves the probes only.

Configuration is driven by environment variables:

- ``MCPMIRROR_HOST``: Bind address (default ``0.0.0.0``)
- ``MCPMIRROR_PORT``: Listen port (default ``8080``)
- ``MCPMIRROR_LOG_LEVEL``: Log level (default ``INFO``)
- ``MCPMIRROR_DATABASE_URL``: SQLAlchemy async URL (optional; enables the
  sync trigger when set)
- ``MCPMIRROR_SYNC_SECRET``: Bearer secret for the trigger (optional)

Run the service directly with ``python -m mcpmirror.runtime``.
"""

from __future__ import annotations

import os
import typing as typ

from mcpmirror.common.env import read_str
from mcpmirror.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import falcon.asgi

__all__ = ["create_app", "main"]

logger = get_logger(__name__)

_MIN_PORT = 1
_MAX_PORT = 65535


def _parse_port(port_str: str) -> int:
    """Parse and validate a port number string.

    Raises
    ------
    SystemExit
        If port_str is not a valid integer in range 1-65535.

    """
    try:
        port = int(port_str)
        if not (_MIN_PORT <= port <= _MAX_PORT):
            msg = f"port {port} outside valid range {_MIN_PORT}-{_MAX_PORT}"
            raise ValueError(msg)  # noqa: TRY301 - unify conversion and range errors
    except ValueError as exc:
        log_error(
            logger,
            "Invalid MCPMIRROR_PORT value: %r (must be %d-%d): %s",
            port_str,
            _MIN_PORT,
            _MAX_PORT,
            exc,
        )
        raise SystemExit(1) from exc
    return port


def create_app() -> falcon.asgi.App:
    """Create the Falcon ASGI application from the environment.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    Raises
    ------
    ValueError
        If a numeric ``MCPMIRROR_*`` variable is invalid.

    """
    from mcpmirror.api.app import create_app as _create_api_app

    database_url = read_str("MCPMIRROR_DATABASE_URL")

    if database_url is None:
        log_info(logger, "MCPMIRROR_DATABASE_URL unset; serving probes only")
        return _create_api_app()

    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from mcpmirror.api.app import AppDependencies
    from mcpmirror.api.middleware import StorageLifecycle
    from mcpmirror.sync.config import SyncConfig
    from mcpmirror.sync.service import SyncService
    from mcpmirror.upstream import RegistryClient, RegistryClientConfig

    engine = create_async_engine(database_url)
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    client = RegistryClient(RegistryClientConfig.from_env())
    service = SyncService(session_factory, client, config=SyncConfig.from_env())

    secret = read_str("MCPMIRROR_SYNC_SECRET")
    if secret is None:
        log_warning(logger, "MCPMIRROR_SYNC_SECRET unset; sync trigger is open")

    app = _create_api_app(AppDependencies(sync_service=service, sync_secret=secret))
    app.add_middleware(StorageLifecycle(engine, client))
    return app


def main() -> None:
    """Start the mcpmirror server using Granian.

    Reads ``MCPMIRROR_HOST``, ``MCPMIRROR_PORT`` and ``MCPMIRROR_LOG_LEVEL``
    from the environment and starts the ASGI server.
    """
    from granian import Granian
    from granian.constants import Interfaces

    host = os.environ.get("MCPMIRROR_HOST", "0.0.0.0")  # noqa: S104 - bind all interfaces for container
    port = _parse_port(os.environ.get("MCPMIRROR_PORT", "8080"))
    log_level_str = os.environ.get("MCPMIRROR_LOG_LEVEL", "INFO")

    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid MCPMIRROR_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    log_info(
        logger,
        "Starting mcpmirror on %s:%d (log_level=%s)",
        host,
        port,
        normalized_level,
    )

    server = Granian(
        "mcpmirror.runtime:create_app",
        address=host,
        port=port,
        interface=Interfaces.ASGI,
        factory=True,
    )
    server.serve()


if __name__ == "__main__":
    main()
