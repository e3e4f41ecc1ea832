"""Client and payload models for the upstream MCP registry API."""

from __future__ import annotations

from .client import (
    DEFAULT_REGISTRY_URL,
    CatalogueClient,
    RegistryClient,
    RegistryClientConfig,
)
from .errors import FetchError
from .models import (
    Icon,
    InputField,
    OfficialMeta,
    PackageDetail,
    RegistryMeta,
    RejectedRecord,
    RemoteDetail,
    RepositoryDetail,
    ServerDetail,
    UpstreamPage,
    UpstreamServer,
    decode_page,
)

__all__ = [
    "DEFAULT_REGISTRY_URL",
    "CatalogueClient",
    "FetchError",
    "Icon",
    "InputField",
    "OfficialMeta",
    "PackageDetail",
    "RegistryClient",
    "RegistryClientConfig",
    "RegistryMeta",
    "RejectedRecord",
    "RemoteDetail",
    "RepositoryDetail",
    "ServerDetail",
    "UpstreamPage",
    "UpstreamServer",
    "decode_page",
]
