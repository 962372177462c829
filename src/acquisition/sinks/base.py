from datetime import date
from typing import Protocol

from acquisition.domain import ExtractedPayload


class SinkError(Exception):
    """A sink rejected provisioning or a write."""


class SinkNotProvisionedError(RuntimeError):
    pass


class IngestSink(Protocol):
    """
    Durable destination for one run's extracted payload.

    Two-phase: `ensure_schema()` moves the sink from unprovisioned to ready;
    `write()` is only valid afterwards.
    """

    # True when the sink stores one row per line rather than one row per run.
    wants_lines: bool

    def ensure_schema(self) -> None: ...

    def write(self, payload: ExtractedPayload, run_date: date) -> int: ...

    def close(self) -> None: ...
