from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from acquisition.domain import DownloadedArtifact
from acquisition.fresh_file import latest

logger = logging.getLogger(__name__)


class DownloadTimeoutError(Exception):
    """A new file appeared in the download directory but never settled."""

    def __init__(self, message: str, artifact: DownloadedArtifact):
        super().__init__(message)
        self.artifact = artifact


@dataclass
class DownloadWatcher:
    """
    Polls a download directory until the browser has finished writing a file.

    A candidate is the freshest entry not older than `newer_than`. It is
    accepted once its size and mtime were identical for `stable_polls`
    consecutive polls and its mtime is at least `min_age_seconds` old.

    The loop is bounded both by `max_polls` and by `timeout_seconds`.
    """

    poll_interval_seconds: float = 1.0
    max_polls: int = 30
    stable_polls: int = 2
    min_age_seconds: float = 1.0
    timeout_seconds: float = 60.0
    clock: Callable[[], float] = field(default=time.time, repr=False)
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def wait_for_download(self, directory: Path, *, newer_than: float | None = None) -> DownloadedArtifact | None:
        deadline = self.clock() + self.timeout_seconds
        previous: DownloadedArtifact | None = None
        stable_count = 0

        for attempt in range(1, self.max_polls + 1):
            candidate = latest(directory)

            if candidate is not None and (newer_than is None or candidate.mtime >= newer_than):
                if previous is not None and candidate == previous:
                    stable_count += 1
                else:
                    stable_count = 1
                previous = candidate

                age = self.clock() - candidate.mtime
                if stable_count >= self.stable_polls and age >= self.min_age_seconds:
                    logger.debug("Download settled after %s polls: %s", attempt, candidate.path)
                    return candidate

            if attempt == self.max_polls or self.clock() >= deadline:
                break
            self.sleep(self.poll_interval_seconds)

        if previous is not None:
            raise DownloadTimeoutError(
                f"Download {previous.path} did not settle within {self.timeout_seconds}s / {self.max_polls} polls",
                previous,
            )

        logger.debug("No new file appeared in %s", directory)
        return None
