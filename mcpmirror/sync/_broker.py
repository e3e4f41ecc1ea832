"""Broker selection for the Dramatiq sync actor.

``sync_registry_job`` must be declared against a broker, and Dramatiq looks
the global broker up when the actor decorator runs. Deployments configure a
real broker (RabbitMQ or Redis) before importing :mod:`mcpmirror.sync.actor`.
Test runs and local one-off syncs may instead fall back to an in-memory
``StubBroker``; anywhere else a missing broker is a configuration error.
"""

from __future__ import annotations

import os
import sys
import threading
import typing as typ

import dramatiq
from dramatiq.brokers.stub import StubBroker

from mcpmirror.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

ALLOW_STUB_BROKER_ENV = "MCPMIRROR_ALLOW_STUB_BROKER"
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_PYTEST_ENV_MARKERS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER")

logger = get_logger(__name__)

_broker_lock = threading.Lock()
_sync_broker: dramatiq.Broker | None = None


def stub_broker_allowed(
    environ: cabc.Mapping[str, str] | None = None,
    modules: cabc.Mapping[str, object] | None = None,
) -> bool:
    """Return whether the sync actor may run on an in-memory broker.

    Parameters
    ----------
    environ
        Environment to inspect; defaults to ``os.environ``.
    modules
        Imported modules to inspect; defaults to ``sys.modules``.

    Returns
    -------
    bool
        True when ``MCPMIRROR_ALLOW_STUB_BROKER`` is truthy or the process is
        a pytest run.

    """
    env = os.environ if environ is None else environ
    loaded = sys.modules if modules is None else modules
    if env.get(ALLOW_STUB_BROKER_ENV, "").strip().lower() in _TRUTHY:
        return True
    return "pytest" in loaded or any(key in env for key in _PYTEST_ENV_MARKERS)


def _resolve_broker() -> dramatiq.Broker:
    try:
        return dramatiq.get_broker()
    except (ImportError, LookupError) as exc:
        # ImportError: the default RabbitMQ broker's client is not installed.
        if not stub_broker_allowed():
            msg = (
                f"No Dramatiq broker available for registry sync ({exc}); "
                f"configure one or set {ALLOW_STUB_BROKER_ENV}=1 for local runs"
            )
            raise RuntimeError(msg) from exc

    broker = StubBroker()
    dramatiq.set_broker(broker)
    log_info(logger, "Registry sync actor is using an in-memory StubBroker")
    return broker


def ensure_broker_configured() -> dramatiq.Broker:
    """Return the broker the sync actor is declared on, resolving it once.

    Safe to call from several Dramatiq worker threads; only the first call
    inspects the global broker.

    Returns
    -------
    dramatiq.Broker
        The globally configured broker, or the ``StubBroker`` installed in
        its place.

    Raises
    ------
    RuntimeError
        If no broker is configured and :func:`stub_broker_allowed` is false.

    """
    global _sync_broker

    with _broker_lock:
        if _sync_broker is None:
            _sync_broker = _resolve_broker()
        return _sync_broker
