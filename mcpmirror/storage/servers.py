"""Mirrored registry entities: servers and their nested child records."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from mcpmirror.common.time import utcnow
from mcpmirror.storage.base import Base, UTCDateTime


def _new_id() -> str:
    return str(uuid.uuid4())


class ServerStatus(enum.StrEnum):
    """Local moderation state of a mirrored server."""

    PENDING = "pending"
    APPROVED = "approved"


class ServerRecord(Base):
    """Versioned snapshot of one upstream server descriptor."""

    __tablename__ = "servers"
    __table_args__ = (
        UniqueConstraint("name", "version", name="uq_servers_name_version"),
        Index("ix_servers_updated_at", "updated_at"),
        Index("ix_servers_name_updated_at", "name", "updated_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255))
    version: Mapped[str] = mapped_column(String(128))
    description: Mapped[str] = mapped_column(Text(), default="")
    category: Mapped[str] = mapped_column(String(255), default="")
    maintainer_name: Mapped[str | None] = mapped_column(String(255), default=None)
    maintainer_url: Mapped[str | None] = mapped_column(Text(), default=None)
    mcp_url: Mapped[str] = mapped_column(Text(), default="")
    documentation_url: Mapped[str | None] = mapped_column(Text(), default=None)
    icon_url: Mapped[str | None] = mapped_column(Text(), default=None)
    authentication_type: Mapped[str | None] = mapped_column(String(64), default=None)
    dynamic_client_registration: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[ServerStatus] = mapped_column(
        Enum(
            ServerStatus,
            native_enum=False,
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            validate_strings=True,
        ),
        default=ServerStatus.PENDING,
    )
    mcp_status: Mapped[str | None] = mapped_column(String(64), default=None)
    is_official: Mapped[bool] = mapped_column(Boolean, default=True)
    is_latest: Mapped[bool] = mapped_column(Boolean, default=False)
    published_at: Mapped[dt.datetime | None] = mapped_column(UTCDateTime())
    publisher_meta: Mapped[dict[str, typ.Any] | None] = mapped_column(
        JSON, default=None
    )
    official_meta: Mapped[dict[str, typ.Any] | None] = mapped_column(
        JSON, default=None
    )
    # Upstream timestamp; this column drives the sync watermark.
    updated_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    last_synced_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow
    )

    repository: Mapped[RepositoryRecord | None] = relationship(
        back_populates="server", cascade="all, delete-orphan"
    )
    packages: Mapped[list[PackageRecord]] = relationship(
        back_populates="server", cascade="all, delete-orphan"
    )
    remotes: Mapped[list[RemoteRecord]] = relationship(
        back_populates="server", cascade="all, delete-orphan"
    )


class RepositoryRecord(Base):
    """Source repository of a server; at most one per server."""

    __tablename__ = "server_repositories"
    __table_args__ = (
        UniqueConstraint("server_id", name="uq_server_repositories_server"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(Text())
    source: Mapped[str] = mapped_column(String(64), default="")
    repo_id: Mapped[str | None] = mapped_column(String(255), default=None)
    subfolder: Mapped[str | None] = mapped_column(Text(), default=None)

    server: Mapped[ServerRecord] = relationship(back_populates="repository")


class PackageRecord(Base):
    """Installable package published for a server version."""

    __tablename__ = "packages"
    __table_args__ = (
        UniqueConstraint(
            "server_id",
            "registry_type",
            "identifier",
            "version",
            name="uq_packages_server_registry_identifier_version",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    registry_type: Mapped[str] = mapped_column(String(64))
    registry_base_url: Mapped[str | None] = mapped_column(Text(), default=None)
    identifier: Mapped[str] = mapped_column(String(512))
    version: Mapped[str] = mapped_column(String(128))
    file_sha256: Mapped[str | None] = mapped_column(String(64), default=None)
    runtime_hint: Mapped[str | None] = mapped_column(String(64), default=None)
    transport: Mapped[dict[str, typ.Any]] = mapped_column(JSON, default=dict)
    runtime_arguments: Mapped[list[typ.Any] | None] = mapped_column(
        JSON, default=None
    )
    package_arguments: Mapped[list[typ.Any] | None] = mapped_column(
        JSON, default=None
    )

    server: Mapped[ServerRecord] = relationship(back_populates="packages")
    environment_variables: Mapped[list[EnvironmentVariableRecord]] = relationship(
        back_populates="package", cascade="all, delete-orphan"
    )


class _InputFieldColumns:
    """Columns shared by environment variables and remote headers."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text(), default=None)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    is_secret: Mapped[bool] = mapped_column(Boolean, default=False)
    default: Mapped[str | None] = mapped_column(Text(), default=None)
    format: Mapped[str | None] = mapped_column(String(64), default=None)
    choices: Mapped[list[str] | None] = mapped_column(JSON, default=None)


class EnvironmentVariableRecord(_InputFieldColumns, Base):
    """Environment variable consumed by a package at runtime."""

    __tablename__ = "environment_variables"
    __table_args__ = (
        UniqueConstraint("package_id", "name", name="uq_environment_variables_name"),
    )

    package_id: Mapped[str] = mapped_column(
        ForeignKey("packages.id", ondelete="CASCADE"), nullable=False
    )

    package: Mapped[PackageRecord] = relationship(
        back_populates="environment_variables"
    )


class RemoteRecord(Base):
    """Hosted endpoint through which a server can be reached."""

    __tablename__ = "remotes"
    __table_args__ = (
        UniqueConstraint("server_id", "type", "url", name="uq_remotes_type_url"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(64))
    url: Mapped[str] = mapped_column(String(2048))

    server: Mapped[ServerRecord] = relationship(back_populates="remotes")
    headers: Mapped[list[HeaderRecord]] = relationship(
        back_populates="remote", cascade="all, delete-orphan"
    )


class HeaderRecord(_InputFieldColumns, Base):
    """HTTP header expected by a remote endpoint."""

    __tablename__ = "remote_headers"
    __table_args__ = (
        UniqueConstraint("remote_id", "name", name="uq_remote_headers_name"),
    )

    remote_id: Mapped[str] = mapped_column(
        ForeignKey("remotes.id", ondelete="CASCADE"), nullable=False
    )

    remote: Mapped[RemoteRecord] = relationship(back_populates="headers")
