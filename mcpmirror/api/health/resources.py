"""Liveness and readiness probes for container orchestration.

Both resources are stateless and are registered whether or not a store is
configured.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """Liveness probe answering ``{"status": "ok"}``."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """Readiness probe answering ``{"status": "ready"}``.

    Parameters
    ----------
    sync_enabled
        Whether the sync trigger is mounted; reported so operators can tell
        a probe-only deployment from a full one.

    """

    def __init__(self, *, sync_enabled: bool = False) -> None:
        """Record whether the sync endpoint is available."""
        self._sync_enabled = sync_enabled

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /ready requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with readiness status.

        """
        resp.media = {"status": "ready", "sync_enabled": self._sync_enabled}
        resp.status = HTTPStatus.OK
