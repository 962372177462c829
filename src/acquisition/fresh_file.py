import logging
import os
from pathlib import Path

from acquisition.domain import DownloadedArtifact

logger = logging.getLogger(__name__)


def latest(directory: Path) -> DownloadedArtifact | None:
    """
    Return the most recently modified entry of `directory`, or None if empty.

    Ties keep the first entry seen in os.scandir order, which is not stable
    across filesystems. Entries removed between listing and stat are skipped.
    """
    freshest: DownloadedArtifact | None = None

    with os.scandir(directory) as it:
        for entry in it:
            try:
                stat = entry.stat()
            except FileNotFoundError:
                logger.debug("Entry vanished before stat: %s", entry.path)
                continue

            if freshest is None or stat.st_mtime > freshest.mtime:
                freshest = DownloadedArtifact(
                    path=Path(entry.path),
                    mtime=stat.st_mtime,
                    size_bytes=stat.st_size,
                )

    return freshest
