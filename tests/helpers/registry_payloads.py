"""Builders for upstream registry payloads and an in-memory catalogue.

>>> entry = server_entry("io.example/weather", updated_at="2025-01-02T00:00:00Z")
>>> catalogue = FakeCatalogue([entry], page_size=2)
"""

from __future__ import annotations

import copy
import dataclasses
import typing as typ

import msgspec

from mcpmirror.common.time import parse_iso_datetime
from mcpmirror.upstream.models import (
    OFFICIAL_META_KEY,
    PUBLISHER_META_KEY,
    UpstreamPage,
    decode_page,
)

if typ.TYPE_CHECKING:
    import datetime as dt


def npm_package(
    identifier: str = "@example/weather-mcp",
    version: str | None = "1.2.0",
    *,
    env: list[dict[str, typ.Any]] | None = None,
) -> dict[str, typ.Any]:
    """Return an npm package block."""
    package: dict[str, typ.Any] = {
        "registryType": "npm",
        "identifier": identifier,
        "transport": {"type": "stdio"},
    }
    if version is not None:
        package["version"] = version
    if env is not None:
        package["environmentVariables"] = env
    return package


def streamable_remote(
    url: str = "https://mcp.example.com/mcp",
    *,
    headers: list[dict[str, typ.Any]] | None = None,
) -> dict[str, typ.Any]:
    """Return a streamable-http remote block."""
    remote: dict[str, typ.Any] = {"type": "streamable-http", "url": url}
    if headers is not None:
        remote["headers"] = headers
    return remote


def server_entry(  # noqa: PLR0913 - mirrors the registry entry shape
    name: str,
    *,
    version: str = "1.0.0",
    updated_at: str = "2025-01-01T00:00:00Z",
    status: str = "active",
    description: str = "Example MCP server",
    title: str | None = None,
    packages: list[dict[str, typ.Any]] | None = None,
    remotes: list[dict[str, typ.Any]] | None = None,
    repository: dict[str, typ.Any] | None = None,
    is_latest: bool = True,
) -> dict[str, typ.Any]:
    """Return one ``servers[]`` entry in the registry's wire shape.

    A single npm package is attached when neither ``packages`` nor
    ``remotes`` is given; pass empty lists to build an entry that has no
    installation method.
    """
    if packages is None and remotes is None:
        packages = [npm_package()]
    server: dict[str, typ.Any] = {
        "$schema": "https://static.modelcontextprotocol.io/schemas/server.schema.json",
        "name": name,
        "description": description,
        "version": version,
        "packages": packages or [],
        "remotes": remotes or [],
    }
    if title is not None:
        server["title"] = title
    if repository is not None:
        server["repository"] = repository
    return {
        "server": server,
        "_meta": {
            OFFICIAL_META_KEY: {
                "status": status,
                "publishedAt": "2024-12-01T00:00:00Z",
                "updatedAt": updated_at,
                "isLatest": is_latest,
            },
            PUBLISHER_META_KEY: {"tool": "publisher-cli"},
        },
    }


def page_payload(
    entries: list[dict[str, typ.Any]], next_cursor: str | None = None
) -> dict[str, typ.Any]:
    """Wrap entries in the ``/v0.1/servers`` envelope."""
    metadata: dict[str, typ.Any] = {"count": len(entries)}
    if next_cursor is not None:
        metadata["nextCursor"] = next_cursor
    return {"servers": entries, "metadata": metadata}


def _entry_updated_at(entry: dict[str, typ.Any]) -> dt.datetime:
    return parse_iso_datetime(entry["_meta"][OFFICIAL_META_KEY]["updatedAt"])


@dataclasses.dataclass(slots=True)
class FetchCall:
    """Arguments of one ``fetch_page`` call."""

    cursor: str | None
    updated_since: dt.datetime | None


@dataclasses.dataclass
class FakeCatalogue:
    """In-memory catalogue honouring ``updated_since`` and offset cursors.

    ``failures`` maps a zero-based call number to an exception raised
    instead of serving that call. Pages are encoded and decoded through the
    real page decoder.
    """

    entries: list[dict[str, typ.Any]] = dataclasses.field(default_factory=list)
    page_size: int = 100
    failures: dict[int, Exception] = dataclasses.field(default_factory=dict)
    calls: list[FetchCall] = dataclasses.field(default_factory=list)

    def upsert(self, entry: dict[str, typ.Any]) -> None:
        """Replace the entry with the same name and version, or append it."""
        key = (entry["server"]["name"], entry["server"]["version"])
        for index, existing in enumerate(self.entries):
            if (existing["server"]["name"], existing["server"]["version"]) == key:
                self.entries[index] = copy.deepcopy(entry)
                return
        self.entries.append(copy.deepcopy(entry))

    async def fetch_page(
        self,
        cursor: str | None,
        updated_since: dt.datetime | None,
        limit: int | None = None,
    ) -> UpstreamPage:
        """Serve one page of the entries updated after ``updated_since``."""
        call_number = len(self.calls)
        self.calls.append(FetchCall(cursor=cursor, updated_since=updated_since))
        if call_number in self.failures:
            raise self.failures[call_number]

        visible = [
            entry
            for entry in self.entries
            if updated_since is None or _entry_updated_at(entry) > updated_since
        ]
        size = limit or self.page_size
        size = min(size, self.page_size)
        offset = int(cursor) if cursor else 0
        chunk = visible[offset : offset + size]
        next_offset = offset + size
        next_cursor = str(next_offset) if next_offset < len(visible) else None
        return decode_page(msgspec.json.encode(page_payload(chunk, next_cursor)))
