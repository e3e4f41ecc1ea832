"""Domain exceptions and Falcon error handlers for the API layer.

Every response body produced here carries ``success: false`` so cron
callers can branch on a single field.

Usage
-----
Register error handlers on the Falcon app::

    from mcpmirror.api.errors import (
        UnauthorizedError,
        handle_sync_error,
        handle_sync_in_progress,
        handle_unauthorized,
    )

    app.add_error_handler(UnauthorizedError, handle_unauthorized)
    app.add_error_handler(SyncInProgressError, handle_sync_in_progress)
    app.add_error_handler(SyncError, handle_sync_error)

"""

from __future__ import annotations

import typing as typ

import falcon

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from mcpmirror.sync.errors import SyncError, SyncInProgressError

__all__ = [
    "UnauthorizedError",
    "handle_sync_error",
    "handle_sync_in_progress",
    "handle_unauthorized",
]


class UnauthorizedError(Exception):
    """Raised when a trigger request does not carry the configured secret."""

    def __init__(self) -> None:
        """Initialize with a fixed message that reveals nothing about the secret."""
        super().__init__("Unauthorized")


async def handle_unauthorized(
    _req: Request,
    resp: Response,
    _ex: UnauthorizedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``UnauthorizedError`` to an HTTP 401 JSON response."""
    resp.status = falcon.HTTP_401
    resp.media = {"success": False, "error": "Unauthorized"}


async def handle_sync_in_progress(
    _req: Request,
    resp: Response,
    ex: SyncInProgressError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``SyncInProgressError`` to an HTTP 409 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The contention error naming the busy job.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_409
    resp.media = {
        "success": False,
        "error": "Sync already in progress",
        "details": str(ex),
    }


async def handle_sync_error(
    _req: Request,
    resp: Response,
    ex: SyncError,
    _params: dict[str, typ.Any],
) -> None:
    """Map an aborted run to an HTTP 500 JSON response.

    Parameters
    ----------
    _req
        Falcon request (unused).
    resp
        Falcon response whose status and media are set.
    ex
        The run-level error; only its message is exposed.
    _params
        URI template parameters (unused).

    """
    resp.status = falcon.HTTP_500
    resp.media = {
        "success": False,
        "error": "Sync failed",
        "details": str(ex),
    }
