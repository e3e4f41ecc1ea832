"""Liveness and readiness probes.

Usage
-----
Import health resources for route registration::

    from mcpmirror.api.health.resources import HealthResource, ReadyResource
"""
