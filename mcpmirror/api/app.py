"""Application factory for the mcpmirror Falcon ASGI application.

Usage
-----
Create a probe-only app (no store)::

    app = create_app()

Create an app with the sync trigger::

    from mcpmirror.api.app import AppDependencies, create_app

    deps = AppDependencies(sync_service=service, sync_secret="s3cret")
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from mcpmirror.api.errors import (
    UnauthorizedError,
    handle_sync_error,
    handle_sync_in_progress,
    handle_unauthorized,
)
from mcpmirror.api.health.resources import HealthResource, ReadyResource
from mcpmirror.sync.errors import SyncError, SyncInProgressError

if typ.TYPE_CHECKING:
    from mcpmirror.sync.service import SyncService

__all__ = ["SYNC_ROUTE", "AppDependencies", "create_app"]

SYNC_ROUTE = "/api/cron/sync"


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Dependencies for the Falcon ASGI application.

    Attributes
    ----------
    sync_service
        Service behind ``POST /api/cron/sync``. When ``None`` only the
        probes are registered.
    sync_secret
        Bearer secret required by the trigger; ``None`` leaves it open.

    """

    sync_service: SyncService | None = None
    sync_secret: str | None = None


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional application dependencies. When ``None`` or without a sync
        service, only ``/health`` and ``/ready`` are available.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()  # type: ignore[no-matching-overload]  # Falcon stubs

    sync_service = dependencies.sync_service if dependencies is not None else None

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(sync_enabled=sync_service is not None))

    if sync_service is not None and dependencies is not None:
        from mcpmirror.api.sync.resources import SyncResource

        app.add_route(
            SYNC_ROUTE,
            SyncResource(
                sync_service=sync_service, secret=dependencies.sync_secret
            ),
        )

    # Falcon resolves the most specific handler, so registration order is free.
    app.add_error_handler(UnauthorizedError, handle_unauthorized)
    app.add_error_handler(SyncInProgressError, handle_sync_in_progress)
    app.add_error_handler(SyncError, handle_sync_error)

    return app
