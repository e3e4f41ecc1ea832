"""HTTP trigger for registry sync runs."""

from mcpmirror.api.sync.resources import SyncResource

__all__ = ["SyncResource"]
