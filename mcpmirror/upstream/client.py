"""HTTP client for the upstream registry's paginated server listing."""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

import httpx
import msgspec

from mcpmirror.common.env import read_int, read_str
from mcpmirror.common.time import format_iso_datetime
from mcpmirror.logging import get_logger, log_warning

from .errors import FetchError
from .models import UpstreamPage, decode_page

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

logger = get_logger(__name__)

DEFAULT_REGISTRY_URL = "https://registry.modelcontextprotocol.io"
SERVERS_PATH = "/v0.1/servers"
MAX_PAGE_LIMIT = 100

_HTTP_SERVER_ERROR_THRESHOLD = 500
_HTTP_RATE_LIMITED = 429


class CatalogueClient(typ.Protocol):
    """Interface the sync orchestrator uses to page through the catalogue."""

    async def fetch_page(
        self,
        cursor: str | None,
        updated_since: dt.datetime | None,
        limit: int | None = None,
    ) -> UpstreamPage:
        """Fetch one page of server entries."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class RegistryClientConfig:
    """Configuration for :class:`RegistryClient`."""

    base_url: str = DEFAULT_REGISTRY_URL
    page_limit: int = MAX_PAGE_LIMIT
    timeout_s: float = 30.0
    max_attempts: int = 3
    backoff_s: float = 0.5
    user_agent: str = "mcpmirror/0.1"

    @classmethod
    def from_env(cls) -> RegistryClientConfig:
        """Build configuration from ``MCPMIRROR_*`` environment variables.

        Reads ``MCPMIRROR_REGISTRY_BASE_URL``, ``MCPMIRROR_FETCH_MAX_ATTEMPTS``
        and ``MCPMIRROR_FETCH_TIMEOUT_S``.
        """
        return cls(
            base_url=read_str("MCPMIRROR_REGISTRY_BASE_URL", DEFAULT_REGISTRY_URL)
            or DEFAULT_REGISTRY_URL,
            max_attempts=read_int("MCPMIRROR_FETCH_MAX_ATTEMPTS", 3),
            timeout_s=float(read_int("MCPMIRROR_FETCH_TIMEOUT_S", 30)),
        )


def _clamp_limit(limit: int) -> int:
    return max(1, min(limit, MAX_PAGE_LIMIT))


def _retry_after_seconds(response: httpx.Response) -> float | None:
    """Extract a numeric Retry-After header value if present."""
    retry_after = response.headers.get("Retry-After", "")
    if retry_after.isdigit():
        return float(retry_after)
    return None


def _is_retryable_status(status_code: int) -> bool:
    return (
        status_code == _HTTP_RATE_LIMITED
        or status_code >= _HTTP_SERVER_ERROR_THRESHOLD
    )


class RegistryClient:
    """Fetch catalogue pages from ``GET {base_url}/v0.1/servers``.

    Transient failures (network errors, timeouts, HTTP 429 and 5xx) are
    retried with exponential backoff up to ``max_attempts`` requests. Other
    non-2xx responses fail immediately.

    Parameters
    ----------
    config
        Client configuration; defaults to the public registry.
    http_client
        Optional pre-built ``httpx.AsyncClient``. When omitted the instance
        creates and owns one.
    sleep
        Awaitable used between attempts.

    """

    def __init__(
        self,
        config: RegistryClientConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Create a client bound to the configured registry."""
        self._config = config or RegistryClientConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=self._config.timeout_s,
            headers={
                "Accept": "application/json",
                "User-Agent": self._config.user_agent,
            },
        )
        self._sleep = sleep
        self._url = f"{self._config.base_url.rstrip('/')}{SERVERS_PATH}"

    async def __aenter__(self) -> RegistryClient:
        """Return the client for use as an async context manager."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the underlying HTTP client if owned."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client when this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_page(
        self,
        cursor: str | None,
        updated_since: dt.datetime | None,
        limit: int | None = None,
    ) -> UpstreamPage:
        """Fetch one catalogue page.

        Parameters
        ----------
        cursor
            Opaque cursor from the previous page, or ``None`` for the first.
        updated_since
            Only entries updated strictly after this instant are returned.
        limit
            Page size; clamped to 1..100 and defaulting to the configured
            ``page_limit``.

        Raises
        ------
        FetchError
            If the page cannot be fetched or its envelope cannot be decoded.

        """
        params: dict[str, str] = {
            "limit": str(_clamp_limit(limit or self._config.page_limit)),
        }
        if cursor:
            params["cursor"] = cursor
        if updated_since is not None:
            params["updated_since"] = format_iso_datetime(updated_since)

        response = await self._get_with_retries(params)
        try:
            return decode_page(response.content)
        except msgspec.MsgspecError as exc:
            raise FetchError.invalid_payload(str(exc)) from exc

    async def _get_with_retries(self, params: dict[str, str]) -> httpx.Response:
        max_attempts = max(1, self._config.max_attempts)
        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._client.get(self._url, params=params)
            except httpx.RequestError as exc:
                if attempt >= max_attempts:
                    raise FetchError.network_error(
                        f"{type(exc).__name__}: {exc}", attempts=attempt
                    ) from exc
                await self._backoff(attempt, reason=type(exc).__name__)
                continue

            if response.is_success:
                return response
            status = response.status_code
            if not _is_retryable_status(status) or attempt >= max_attempts:
                raise FetchError.http_error(status, attempts=attempt)
            await self._backoff(
                attempt,
                reason=f"HTTP {status}",
                retry_after=_retry_after_seconds(response),
            )

    async def _backoff(
        self,
        attempt: int,
        *,
        reason: str,
        retry_after: float | None = None,
    ) -> None:
        delay = self._config.backoff_s * (2 ** (attempt - 1))
        if retry_after is not None:
            delay = max(delay, retry_after)
        log_warning(
            logger,
            "Registry fetch attempt %d failed (%s); retrying in %.2fs",
            attempt,
            reason,
            delay,
        )
        await self._sleep(delay)
