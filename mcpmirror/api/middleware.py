"""ASGI lifespan middleware owning the store and registry client.

Falcon calls ``process_startup`` and ``process_shutdown`` on lifespan
events, so tables are created before the first request and pooled
connections are released on shutdown.

Usage
-----
Attach the middleware when building the app::

    app = create_app(deps)
    app.add_middleware(StorageLifecycle(engine, client))

"""

from __future__ import annotations

import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from mcpmirror.logging import get_logger, log_error, log_info
from mcpmirror.storage import init_storage

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from mcpmirror.upstream.client import RegistryClient

__all__ = ["StorageLifecycle"]

logger = get_logger(__name__)


class StorageLifecycle:
    """Create tables on startup; close the client and engine on shutdown.

    Parameters
    ----------
    engine
        Engine bound to the local store.
    client
        Registry client closed on shutdown, if given.

    """

    def __init__(
        self, engine: AsyncEngine, client: RegistryClient | None = None
    ) -> None:
        """Initialize the middleware with the resources it owns."""
        self._engine = engine
        self._client = client

    async def process_startup(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Create any missing tables before requests are served."""
        try:
            await init_storage(self._engine)
        except SQLAlchemyError:
            log_error(logger, "Could not initialise the store", exc_info=True)
            raise
        log_info(logger, "Store initialised at %s", self._engine.url.render_as_string())

    async def process_shutdown(
        self, _scope: dict[str, typ.Any], _event: dict[str, typ.Any]
    ) -> None:
        """Close the registry client and dispose of pooled connections."""
        if self._client is not None:
            await self._client.aclose()
        await self._engine.dispose()
