"""mcpmirror HTTP API layer.

Usage
-----
Create and run the application::

    from mcpmirror.api import create_app

    app = create_app()              # probes only
    app = create_app(dependencies)  # probes plus the sync trigger

Public API
----------
create_app
    Application factory registering the health probes and, when a sync
    service is provided, ``POST /api/cron/sync``.
AppDependencies
    Frozen dataclass carrying the sync service and trigger secret.
"""

from mcpmirror.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
