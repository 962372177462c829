from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class RunContext:
    """
    Per-run context.

    today:
      Calendar date fixed once at run start. The same value is used to match
      the listing row and to stamp persisted records.

    date_format:
      Rendering of `today` used for string-equality matching against the page.
    """
    run_id: str
    today: date
    date_format: str = "%Y-%m-%d"

    @property
    def today_str(self) -> str:
        return self.today.strftime(self.date_format)


@dataclass(frozen=True)
class SourceListingRow:
    """One row of the source page's table, valid only while the page is open."""
    display_date: str
    download_control: Any
    href: str | None = None


@dataclass(frozen=True)
class DownloadedArtifact:
    """A directory entry; identity is the path."""
    path: Path
    mtime: float
    size_bytes: int = 0


@dataclass(frozen=True)
class ExtractedPayload:
    """
    Content of the first text member of an archive.

    lines is populated only when the caller asked for line splitting.
    """
    member_name: str
    text: str
    lines: tuple[str, ...] | None = None


class RunStatus(str, Enum):
    PERSISTED = "persisted"
    NO_LINK_FOR_TODAY = "no_link_for_today"
    NO_FILE_DOWNLOADED = "no_file_downloaded"
    DOWNLOAD_TIMED_OUT = "download_timed_out"
    EXTRACTION_FAILED = "extraction_failed"
    SINK_ERROR = "sink_error"
    SETUP_FAILED = "setup_failed"
    NAVIGATION_FAILED = "navigation_failed"


_OK_STATUSES = {RunStatus.PERSISTED, RunStatus.NO_LINK_FOR_TODAY, RunStatus.NO_FILE_DOWNLOADED}


@dataclass(frozen=True)
class RunOutcome:
    """Result of one pipeline run."""
    status: RunStatus
    run_date: date | None = None
    rows_written: int = 0
    reason: str | None = None
    source_link: str | None = None
    artifact: Path | None = None
    finished_at_utc: datetime | None = None

    @property
    def ok(self) -> bool:
        return self.status in _OK_STATUSES
