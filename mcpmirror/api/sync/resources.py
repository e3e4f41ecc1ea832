"""Falcon resource triggering a registry sync run.

Usage
-----
Register the trigger on the Falcon app::

    from mcpmirror.api.sync.resources import SyncResource

    app.add_route(
        "/api/cron/sync",
        SyncResource(sync_service=service, secret=os.environ.get("SECRET")),
    )

"""

from __future__ import annotations

import secrets
import typing as typ
from http import HTTPStatus

from mcpmirror.api.errors import UnauthorizedError
from mcpmirror.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from mcpmirror.sync.service import SyncService

__all__ = ["SyncResource"]

logger = get_logger(__name__)

_BEARER_SCHEME = "Bearer"


class SyncResource:
    """Run one sync pass per POST and report its outcome.

    Errors raised by the run are left to the application's error handlers,
    which map them to 409 (run already active) or 500 (run aborted).

    Parameters
    ----------
    sync_service
        Service executing the run.
    secret
        Shared secret expected as ``Authorization: Bearer <secret>``.
        ``None`` disables the check.

    """

    def __init__(self, *, sync_service: SyncService, secret: str | None = None) -> None:
        """Bind the resource to a service and optional shared secret."""
        self._sync_service = sync_service
        self._secret = secret

    def _authorize(self, req: Request) -> None:
        if self._secret is None:
            return
        scheme, _, token = (req.get_header("Authorization") or "").partition(" ")
        if scheme != _BEARER_SCHEME:
            token = ""
        if not secrets.compare_digest(token.encode(), self._secret.encode()):
            raise UnauthorizedError

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle POST /api/cron/sync requests.

        Parameters
        ----------
        req
            Falcon request; must carry the bearer secret when one is set.
        resp
            Falcon response populated with the run summary.

        Raises
        ------
        UnauthorizedError
            If the bearer secret is missing or wrong.

        """
        self._authorize(req)
        result = await self._sync_service.run_sync()
        log_info(
            logger,
            "Sync %s triggered over HTTP wrote %d servers",
            result.job_key,
            result.servers_written,
        )
        resp.media = {
            "success": True,
            "message": "Sync completed successfully",
            "result": result.as_dict(),
        }
        resp.status = HTTPStatus.OK
