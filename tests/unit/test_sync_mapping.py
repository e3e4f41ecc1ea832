"""Unit tests for mapping registry entries onto the local schema."""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec
import pytest

from mcpmirror.storage import ServerStatus
from mcpmirror.sync.errors import MalformedRecordError
from mcpmirror.sync.mapping import DEFAULT_VERSION, map_server, map_status
from mcpmirror.upstream.models import (
    OFFICIAL_META_KEY,
    PUBLISHER_META_KEY,
    UpstreamServer,
)
from tests.helpers.registry_payloads import (
    npm_package,
    server_entry,
    streamable_remote,
)


def _upstream(entry: dict[str, typ.Any]) -> UpstreamServer:
    return msgspec.convert(entry, UpstreamServer)


class TestMapStatus:
    """Status mapping from upstream lifecycle to local moderation state."""

    @pytest.mark.parametrize(
        ("upstream", "expected"),
        [
            ("active", ServerStatus.APPROVED),
            ("deprecated", ServerStatus.PENDING),
            ("deleted", ServerStatus.PENDING),
            ("", ServerStatus.PENDING),
            (None, ServerStatus.PENDING),
        ],
    )
    def test_only_active_is_approved(
        self, upstream: str | None, expected: ServerStatus
    ) -> None:
        """Every status other than active maps to pending."""
        assert map_status(upstream) is expected


class TestMapServer:
    """Tests for map_server."""

    def test_projects_server_fields(self) -> None:
        """Top-level fields land in their local columns."""
        entry = server_entry(
            "io.example/weather",
            version="2.1.0",
            title="Weather tools",
            updated_at="2025-03-04T05:06:07Z",
            remotes=[streamable_remote("https://a.example/mcp"), streamable_remote()],
            packages=[npm_package()],
        )
        entry["server"]["websiteUrl"] = "https://docs.example.com"
        entry["server"]["icons"] = [{"src": "https://cdn.example.com/icon.png"}]
        entry["server"]["_meta"] = {"io.example/extra": {"k": "v"}}

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert mapped.natural_key == ("io.example/weather", "2.1.0")
        assert mapped.category == "Weather tools"
        assert mapped.mcp_url == "https://a.example/mcp"
        assert mapped.documentation_url == "https://docs.example.com"
        assert mapped.icon_url == "https://cdn.example.com/icon.png"
        assert mapped.status is ServerStatus.APPROVED
        assert mapped.mcp_status == "active"
        assert mapped.is_latest is True
        assert mapped.updated_at == dt.datetime(2025, 3, 4, 5, 6, 7, tzinfo=dt.UTC)
        assert mapped.published_at == dt.datetime(2024, 12, 1, tzinfo=dt.UTC)
        assert mapped.official_meta is not None
        assert mapped.official_meta["updatedAt"] == "2025-03-04T05:06:07Z"
        assert mapped.publisher_meta == {
            "io.example/extra": {"k": "v"},
            "tool": "publisher-cli",
        }
        assert len(mapped.remotes) == 2

    def test_skips_entries_without_packages_or_remotes(self) -> None:
        """No installation method means the entry is skipped."""
        entry = server_entry("io.example/empty", packages=[], remotes=[])

        assert map_server(_upstream(entry)) is None

    def test_remote_only_entry_is_mapped(self) -> None:
        """Remotes alone are enough to mirror an entry."""
        entry = server_entry("io.example/hosted", remotes=[streamable_remote()])

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert mapped.packages == ()
        assert mapped.mcp_url == "https://mcp.example.com/mcp"

    def test_packages_without_version_are_dropped(self) -> None:
        """Only packages carrying a version are mirrored."""
        entry = server_entry(
            "io.example/mixed",
            packages=[
                npm_package("@example/versioned", "3.0.0"),
                npm_package("@example/unversioned", None),
            ],
        )

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert [p.identifier for p in mapped.packages] == ["@example/versioned"]

    def test_entry_with_only_unversioned_packages_is_still_mirrored(self) -> None:
        """The skip rule looks at upstream packages, not mirrored ones."""
        entry = server_entry(
            "io.example/unversioned", packages=[npm_package(version=None)]
        )

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert mapped.packages == ()

    def test_missing_version_defaults(self) -> None:
        """Entries without a version use the default version."""
        entry = server_entry("io.example/unversioned-server", version="")

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert mapped.version == DEFAULT_VERSION

    def test_non_active_status_maps_to_pending(self) -> None:
        """Deprecated entries are mirrored as pending."""
        entry = server_entry("io.example/old", status="deprecated")

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert mapped.status is ServerStatus.PENDING
        assert mapped.mcp_status == "deprecated"

    def test_maps_children(self) -> None:
        """Environment variables, headers and the repository are carried over."""
        entry = server_entry(
            "io.example/children",
            packages=[
                npm_package(
                    env=[
                        {
                            "name": "API_KEY",
                            "description": "Key",
                            "isRequired": True,
                            "isSecret": True,
                            "choices": ["a", "b"],
                        },
                        {"name": "REGION", "default": "eu"},
                    ]
                )
            ],
            remotes=[
                streamable_remote(headers=[{"name": "X-Token", "isSecret": True}])
            ],
            repository={
                "url": "https://github.com/example/children",
                "source": "github",
                "id": "123",
            },
        )

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        [package] = mapped.packages
        api_key, region = package.environment_variables
        assert api_key.is_required is True
        assert api_key.is_secret is True
        assert api_key.choices == ["a", "b"]
        assert region.is_required is False
        assert region.default == "eu"
        [remote] = mapped.remotes
        assert remote.headers[0].name == "X-Token"
        assert remote.headers[0].is_secret is True
        assert mapped.repository is not None
        assert mapped.repository.repo_id == "123"

    def test_repository_without_url_is_dropped(self) -> None:
        """A repository block with no URL is not mirrored."""
        entry = server_entry("io.example/norepo", repository={"source": "github"})

        mapped = map_server(_upstream(entry))

        assert mapped is not None
        assert mapped.repository is None

    @pytest.mark.parametrize(
        ("updated_at", "reason"),
        [
            ("not-a-date", "invalid updatedAt"),
            ("", "missing updatedAt"),
        ],
    )
    def test_bad_updated_at_is_malformed(self, updated_at: str, reason: str) -> None:
        """Unparseable or missing timestamps reject the record."""
        entry = server_entry("io.example/bad-date", updated_at=updated_at)

        with pytest.raises(MalformedRecordError) as excinfo:
            map_server(_upstream(entry))

        assert excinfo.value.name == "io.example/bad-date"
        assert reason in excinfo.value.reason

    def test_missing_official_meta_is_malformed(self) -> None:
        """Entries without registry metadata cannot be watermarked."""
        entry = server_entry("io.example/nometa")
        del entry["_meta"][OFFICIAL_META_KEY]

        with pytest.raises(MalformedRecordError, match="official registry metadata"):
            map_server(_upstream(entry))

    def test_blank_name_is_malformed(self) -> None:
        """A blank name cannot form a natural key."""
        entry = server_entry("   ")

        with pytest.raises(MalformedRecordError, match="missing server name"):
            map_server(_upstream(entry))


def _entry_with_unknown_keys() -> dict[str, typ.Any]:
    package = npm_package()
    package["transport"] = {"type": "stdio", "futureOption": {"x": 1}}
    package["runtimeArguments"] = []
    package["packageArguments"] = []
    package["environmentVariables"] = [{"name": "MODE", "choices": []}]
    entry = server_entry("io.example/forward", packages=[package])
    entry["_meta"][OFFICIAL_META_KEY].update(
        {"serverId": "srv-1", "versionId": "ver-9"}
    )
    entry["_meta"][PUBLISHER_META_KEY]["buildInfo"] = {"commit": "abc123"}
    return entry


class TestOpaquePassthrough:
    """Metadata and transport blocks keep keys the mapper does not read."""

    def test_official_block_is_stored_whole(self) -> None:
        """Registry identifiers beyond the typed fields survive mapping."""
        mapped = map_server(_upstream(_entry_with_unknown_keys()))

        assert mapped is not None
        assert mapped.official_meta is not None
        assert mapped.official_meta["serverId"] == "srv-1"
        assert mapped.official_meta["versionId"] == "ver-9"
        assert mapped.official_meta["status"] == "active"

    def test_publisher_block_and_transport_keep_unknown_keys(self) -> None:
        """Publisher metadata and transport options pass through untouched."""
        mapped = map_server(_upstream(_entry_with_unknown_keys()))

        assert mapped is not None
        assert mapped.publisher_meta is not None
        assert mapped.publisher_meta["buildInfo"] == {"commit": "abc123"}
        [package] = mapped.packages
        assert package.transport == {"type": "stdio", "futureOption": {"x": 1}}

    def test_empty_lists_are_not_collapsed(self) -> None:
        """Declared but empty argument and choice lists stay empty lists."""
        mapped = map_server(_upstream(_entry_with_unknown_keys()))

        assert mapped is not None
        [package] = mapped.packages
        assert package.runtime_arguments == []
        assert package.package_arguments == []
        assert package.environment_variables[0].choices == []

    def test_absent_lists_stay_none(self) -> None:
        """Lists the registry omits are stored as null."""
        mapped = map_server(_upstream(server_entry("io.example/plain")))

        assert mapped is not None
        [package] = mapped.packages
        assert package.runtime_arguments is None
        assert package.package_arguments is None

    def test_mistyped_official_field_is_malformed(self) -> None:
        """A known official field with the wrong type rejects the record."""
        entry = server_entry("io.example/odd")
        entry["_meta"][OFFICIAL_META_KEY]["isLatest"] = "yes"

        with pytest.raises(MalformedRecordError, match="official registry metadata"):
            map_server(_upstream(entry))
