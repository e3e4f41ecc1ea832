"""Typed shapes of the upstream registry ``/v0.1/servers`` payloads.

Field names follow Python conventions and are renamed to the registry's
camelCase keys on decode. Unknown keys are ignored so new upstream fields do
not break decoding. The official and publisher metadata blocks are kept as
plain dictionaries and stored verbatim; :class:`OfficialMeta` only types the
fields the mapper reads.
"""

from __future__ import annotations

import typing as typ

import msgspec

OFFICIAL_META_KEY = "io.modelcontextprotocol.registry/official"
PUBLISHER_META_KEY = "io.modelcontextprotocol.registry/publisher-provided"


class InputField(msgspec.Struct, kw_only=True, rename="camel"):
    """User-supplied value declared by a package or remote.

    Environment variables and remote headers share this shape.
    """

    name: str
    description: str | None = None
    is_required: bool | None = None
    is_secret: bool | None = None
    default: str | None = None
    format: str | None = None
    choices: list[str] | None = None


class PackageDetail(msgspec.Struct, kw_only=True, rename="camel"):
    """Installable package published to a package registry."""

    registry_type: str
    identifier: str
    version: str | None = None
    registry_base_url: str | None = None
    file_sha256: str | None = None
    runtime_hint: str | None = None
    transport: dict[str, typ.Any] = msgspec.field(default_factory=dict)
    runtime_arguments: list[typ.Any] | None = None
    package_arguments: list[typ.Any] | None = None
    environment_variables: list[InputField] | None = None


class RemoteDetail(msgspec.Struct, kw_only=True, rename="camel"):
    """Hosted transport endpoint."""

    type: str
    url: str
    headers: list[InputField] | None = None


class RepositoryDetail(msgspec.Struct, kw_only=True, rename="camel"):
    """Source repository reference."""

    url: str = ""
    source: str = ""
    id: str | None = None
    subfolder: str | None = None


class Icon(msgspec.Struct, kw_only=True, rename="camel"):
    """Icon advertised by a server."""

    src: str
    mime_type: str | None = None
    sizes: list[str] | None = None
    theme: str | None = None


class ServerDetail(msgspec.Struct, kw_only=True, rename="camel"):
    """The ``server`` object of a registry entry."""

    name: str
    description: str = ""
    title: str | None = None
    version: str = ""
    repository: RepositoryDetail | None = None
    website_url: str | None = None
    icons: list[Icon] | None = None
    packages: list[PackageDetail] | None = None
    remotes: list[RemoteDetail] | None = None
    schema: str | None = msgspec.field(default=None, name="$schema")
    meta: dict[str, typ.Any] | None = msgspec.field(default=None, name="_meta")


class OfficialMeta(msgspec.Struct, kw_only=True, rename="camel"):
    """Registry-maintained metadata for one server version.

    Timestamps stay as strings here; the mapper parses them so a bad value
    rejects a single record instead of the page it arrived in.
    """

    status: str = ""
    published_at: str | None = None
    updated_at: str | None = None
    is_latest: bool = False


class RegistryMeta(msgspec.Struct, kw_only=True):
    """The top-level ``_meta`` object of a registry entry.

    Both blocks are kept as decoded so keys this module does not know about
    survive into storage.
    """

    official: dict[str, typ.Any] | None = msgspec.field(
        default=None, name=OFFICIAL_META_KEY
    )
    publisher: dict[str, typ.Any] | None = msgspec.field(
        default=None, name=PUBLISHER_META_KEY
    )

    def official_fields(self) -> OfficialMeta | None:
        """Return the typed view of the official block, if present.

        Raises
        ------
        msgspec.ValidationError
            If a known field carries a value of the wrong type.

        """
        if self.official is None:
            return None
        return msgspec.convert(self.official, OfficialMeta)


class UpstreamServer(msgspec.Struct, kw_only=True):
    """One entry of the ``servers`` array."""

    server: ServerDetail
    meta: RegistryMeta = msgspec.field(default_factory=RegistryMeta, name="_meta")


class RejectedRecord(msgspec.Struct, kw_only=True, frozen=True):
    """Page entry that could not be decoded into :class:`UpstreamServer`."""

    index: int
    reason: str
    name: str | None = None


class UpstreamPage(msgspec.Struct, kw_only=True, frozen=True):
    """Decoded catalogue page."""

    servers: list[UpstreamServer]
    next_cursor: str | None = None
    rejected: list[RejectedRecord] = msgspec.field(default_factory=list)


class _PageMetadata(msgspec.Struct, kw_only=True, rename="camel"):
    next_cursor: str | None = None
    count: int | None = None


class _PageEnvelope(msgspec.Struct, kw_only=True):
    servers: list[msgspec.Raw] | None = None
    metadata: _PageMetadata = msgspec.field(default_factory=_PageMetadata)


class _NameProbe(msgspec.Struct):
    server: dict[str, typ.Any] | None = None


_envelope_decoder = msgspec.json.Decoder(_PageEnvelope)
_server_decoder = msgspec.json.Decoder(UpstreamServer)
_probe_decoder = msgspec.json.Decoder(_NameProbe)


def _probe_name(raw: msgspec.Raw) -> str | None:
    try:
        probe = _probe_decoder.decode(raw)
    except msgspec.MsgspecError:
        return None
    name = (probe.server or {}).get("name")
    return name if isinstance(name, str) else None


def decode_page(content: bytes) -> UpstreamPage:
    """Decode a catalogue page, isolating entries that do not fit the schema.

    Raises
    ------
    msgspec.MsgspecError
        If the envelope itself is not a catalogue page.

    """
    envelope = _envelope_decoder.decode(content)
    servers: list[UpstreamServer] = []
    rejected: list[RejectedRecord] = []
    for index, raw in enumerate(envelope.servers or []):
        try:
            servers.append(_server_decoder.decode(raw))
        except msgspec.MsgspecError as exc:
            rejected.append(
                RejectedRecord(index=index, reason=str(exc), name=_probe_name(raw))
            )
    return UpstreamPage(
        servers=servers,
        next_cursor=envelope.metadata.next_cursor or None,
        rejected=rejected,
    )
