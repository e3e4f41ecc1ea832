"""Project upstream registry entries onto the local schema."""

from __future__ import annotations

import typing as typ

import msgspec

from mcpmirror.common.time import parse_iso_datetime
from mcpmirror.storage import ServerStatus
from mcpmirror.sync.errors import MalformedRecordError
from mcpmirror.sync.models import (
    MappedInputField,
    MappedPackage,
    MappedRemote,
    MappedRepository,
    MappedServer,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from mcpmirror.upstream.models import (
        InputField,
        PackageDetail,
        RemoteDetail,
        RepositoryDetail,
        UpstreamServer,
    )

DEFAULT_VERSION = "1.0.0"
ACTIVE_STATUS = "active"


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    return value or None


def _copy_list(values: list[typ.Any] | None) -> list[typ.Any] | None:
    return list(values) if values is not None else None


def map_status(upstream_status: str | None) -> ServerStatus:
    """Map the upstream lifecycle status onto the local moderation state.

    Only ``active`` entries are approved; every other upstream value,
    including ``deprecated`` and ``deleted``, lands in ``pending``.
    """
    if upstream_status == ACTIVE_STATUS:
        return ServerStatus.APPROVED
    return ServerStatus.PENDING


def _parse_timestamp(name: str, field: str, value: str | None) -> dt.datetime:
    if not value:
        raise MalformedRecordError(name, f"missing {field}")
    try:
        return parse_iso_datetime(value)
    except ValueError as exc:
        raise MalformedRecordError(name, f"invalid {field} {value!r}") from exc


def map_input_field(field: InputField) -> MappedInputField:
    """Map an environment variable or header declaration."""
    return MappedInputField(
        name=field.name,
        description=_blank_to_none(field.description),
        is_required=bool(field.is_required),
        is_secret=bool(field.is_secret),
        default=_blank_to_none(field.default),
        format=_blank_to_none(field.format),
        choices=_copy_list(field.choices),
    )


def map_repository(repository: RepositoryDetail | None) -> MappedRepository | None:
    """Map repository info, dropping references without a URL."""
    if repository is None or not repository.url:
        return None
    return MappedRepository(
        url=repository.url,
        source=repository.source or "",
        repo_id=_blank_to_none(repository.id),
        subfolder=_blank_to_none(repository.subfolder),
    )


def map_package(package: PackageDetail) -> MappedPackage | None:
    """Map a package; packages without a version are not mirrored."""
    if not package.version:
        return None
    return MappedPackage(
        registry_type=package.registry_type,
        identifier=package.identifier,
        version=package.version,
        registry_base_url=_blank_to_none(package.registry_base_url),
        file_sha256=_blank_to_none(package.file_sha256),
        runtime_hint=_blank_to_none(package.runtime_hint),
        transport=dict(package.transport),
        runtime_arguments=_copy_list(package.runtime_arguments),
        package_arguments=_copy_list(package.package_arguments),
        environment_variables=tuple(
            map_input_field(env) for env in package.environment_variables or ()
        ),
    )


def map_remote(remote: RemoteDetail) -> MappedRemote:
    """Map a remote endpoint with its headers."""
    return MappedRemote(
        type=remote.type,
        url=remote.url,
        headers=tuple(map_input_field(header) for header in remote.headers or ()),
    )


def _publisher_meta(upstream: UpstreamServer) -> dict[str, typ.Any] | None:
    merged: dict[str, typ.Any] = {}
    if upstream.server.meta:
        merged.update(upstream.server.meta)
    if upstream.meta.publisher:
        merged.update(upstream.meta.publisher)
    return merged or None


def map_server(upstream: UpstreamServer) -> MappedServer | None:
    """Map one upstream entry, returning ``None`` when it should be skipped.

    Entries with neither packages nor remotes offer no way to install or
    reach the server and are skipped.

    Raises
    ------
    MalformedRecordError
        If the entry has no name, lacks registry metadata, or carries an
        unparseable timestamp.

    """
    server = upstream.server
    name = server.name.strip()
    if not server.packages and not server.remotes:
        return None
    if not name:
        raise MalformedRecordError(None, "missing server name")

    try:
        official = upstream.meta.official_fields()
    except msgspec.ValidationError as exc:
        msg = f"invalid official registry metadata: {exc}"
        raise MalformedRecordError(name, msg) from exc
    if official is None:
        raise MalformedRecordError(name, "missing official registry metadata")

    updated_at = _parse_timestamp(name, "updatedAt", official.updated_at)
    published_at = (
        _parse_timestamp(name, "publishedAt", official.published_at)
        if official.published_at
        else None
    )

    remotes = tuple(map_remote(remote) for remote in server.remotes or ())
    packages = tuple(
        mapped
        for mapped in (map_package(package) for package in server.packages or ())
        if mapped is not None
    )
    icon_url = server.icons[0].src if server.icons else None

    return MappedServer(
        name=name,
        version=server.version.strip() or DEFAULT_VERSION,
        description=server.description or "",
        category=server.title or "",
        mcp_url=remotes[0].url if remotes else "",
        status=map_status(official.status),
        updated_at=updated_at,
        mcp_status=official.status or None,
        documentation_url=_blank_to_none(server.website_url),
        icon_url=_blank_to_none(icon_url),
        is_latest=official.is_latest,
        published_at=published_at,
        official_meta=dict(upstream.meta.official or {}),
        publisher_meta=_publisher_meta(upstream),
        repository=map_repository(server.repository),
        packages=packages,
        remotes=remotes,
    )
