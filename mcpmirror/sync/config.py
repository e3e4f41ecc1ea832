"""Configuration for registry sync runs.

Usage
-----
Create a configuration with defaults:

>>> config = SyncConfig()
>>> config.page_limit
100

Or load from environment variables:

>>> import os
>>> os.environ["MCPMIRROR_SYNC_TIMEOUT_S"] = "600"
>>> SyncConfig.from_env().run_timeout.total_seconds()
600.0

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt

from mcpmirror.common.env import read_int, read_str

DEFAULT_JOB_KEY = "registry"


@dc.dataclass(frozen=True, slots=True)
class SyncConfig:
    """Knobs for one sync job.

    Attributes
    ----------
    job_key
        Identifier of the sync job; the lease and checkpoint are keyed on it.
    page_limit
        Page size requested from the registry (at most 100).
    run_timeout
        Deadline for a whole run. Default is 30 minutes.
    watermark_overlap
        Margin subtracted from the watermark before it is sent upstream.
        Default is 5 minutes.
    lease_grace
        Extra time a lease outlives ``run_timeout`` so a crashed run's lease
        expires shortly after its deadline.

    """

    job_key: str = DEFAULT_JOB_KEY
    page_limit: int = 100
    run_timeout: dt.timedelta = dt.timedelta(minutes=30)
    watermark_overlap: dt.timedelta = dt.timedelta(minutes=5)
    lease_grace: dt.timedelta = dt.timedelta(minutes=1)

    @property
    def lease_ttl(self) -> dt.timedelta:
        """Return how long an acquired lease stays valid."""
        return self.run_timeout + self.lease_grace

    @classmethod
    def from_env(cls) -> SyncConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``MCPMIRROR_SYNC_JOB_KEY``: lease/checkpoint key.
        - ``MCPMIRROR_SYNC_TIMEOUT_S``: run deadline in seconds (positive).
        - ``MCPMIRROR_WATERMARK_OVERLAP_S``: overlap margin in seconds
          (zero or more).

        Raises
        ------
        ValueError
            If a numeric variable is not an integer in range.

        """
        defaults = cls()
        timeout_s = read_int(
            "MCPMIRROR_SYNC_TIMEOUT_S", int(defaults.run_timeout.total_seconds())
        )
        overlap_s = read_int(
            "MCPMIRROR_WATERMARK_OVERLAP_S",
            int(defaults.watermark_overlap.total_seconds()),
            minimum=0,
        )
        return cls(
            job_key=read_str("MCPMIRROR_SYNC_JOB_KEY", DEFAULT_JOB_KEY)
            or DEFAULT_JOB_KEY,
            run_timeout=dt.timedelta(seconds=timeout_s),
            watermark_overlap=dt.timedelta(seconds=overlap_s),
        )
