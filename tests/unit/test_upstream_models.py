"""Unit tests for decoding registry pages."""

from __future__ import annotations

import msgspec
import pytest

from mcpmirror.upstream.models import decode_page
from tests.helpers.registry_payloads import (
    npm_package,
    page_payload,
    server_entry,
    streamable_remote,
)


def _encode(payload: object) -> bytes:
    return msgspec.json.encode(payload)


class TestDecodePage:
    """Tests for decode_page."""

    def test_decodes_entries_and_cursor(self) -> None:
        """Entries, nested children and the next cursor are decoded."""
        entry = server_entry(
            "io.example/weather",
            title="Weather",
            packages=[
                npm_package(
                    env=[{"name": "API_KEY", "isRequired": True, "isSecret": True}]
                )
            ],
            remotes=[
                streamable_remote(headers=[{"name": "Authorization"}]),
            ],
            repository={
                "url": "https://github.com/example/weather",
                "source": "github",
            },
        )

        page = decode_page(_encode(page_payload([entry], next_cursor="abc")))

        assert page.next_cursor == "abc"
        assert page.rejected == []
        [upstream] = page.servers
        assert upstream.server.name == "io.example/weather"
        assert upstream.server.title == "Weather"
        assert upstream.server.schema is not None
        [package] = upstream.server.packages or []
        assert package.registry_type == "npm"
        assert package.transport == {"type": "stdio"}
        [env] = package.environment_variables or []
        assert env.is_required is True
        assert env.is_secret is True
        [remote] = upstream.server.remotes or []
        assert remote.headers is not None
        assert remote.headers[0].name == "Authorization"
        assert upstream.meta.official is not None
        assert upstream.meta.official["updatedAt"] == "2025-01-01T00:00:00Z"
        assert upstream.meta.publisher == {"tool": "publisher-cli"}

    def test_missing_cursor_means_last_page(self) -> None:
        """An absent or empty nextCursor decodes to None."""
        payload = page_payload([server_entry("io.example/a")])
        payload["metadata"]["nextCursor"] = ""

        page = decode_page(_encode(payload))

        assert page.next_cursor is None

    def test_bad_entry_is_rejected_without_failing_the_page(self) -> None:
        """An entry that does not fit the schema is isolated."""
        good = server_entry("io.example/good")
        bad = server_entry("io.example/bad")
        bad["server"]["packages"] = [{"identifier": "no-registry-type"}]

        page = decode_page(_encode(page_payload([good, bad])))

        assert [s.server.name for s in page.servers] == ["io.example/good"]
        [rejected] = page.rejected
        assert rejected.index == 1
        assert rejected.name == "io.example/bad"
        assert "registryType" in rejected.reason

    def test_unknown_fields_are_ignored(self) -> None:
        """New upstream keys do not break decoding."""
        entry = server_entry("io.example/a")
        entry["server"]["brandNewField"] = {"nested": True}

        page = decode_page(_encode(page_payload([entry])))

        assert len(page.servers) == 1

    def test_non_page_envelope_raises(self) -> None:
        """A body that is not a page envelope fails as a whole."""
        with pytest.raises(msgspec.MsgspecError):
            decode_page(b'{"servers": "nope"}')
