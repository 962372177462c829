from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable

from acquisition.archive import ArchiveExtractionError, ArchiveUnpacker
from acquisition.domain import RunContext, RunOutcome, RunStatus
from acquisition.download_watcher import DownloadTimeoutError, DownloadWatcher
from acquisition.listing import ExactDateMatch, ListingSession, NavigationError, RowMatchPolicy
from acquisition.sinks.base import IngestSink, SinkError

logger = logging.getLogger(__name__)

# Filesystems with coarse mtime resolution may stamp a fresh download slightly
# before the moment the click was issued.
MTIME_SLACK_SECONDS = 2.0


def utc_today() -> date:
    """Calendar date of the run, taken in UTC."""
    return datetime.now(timezone.utc).date()


@dataclass(frozen=True)
class PipelineConfig:
    download_dir: Path
    archive_suffix: str = ".zip"
    date_format: str = "%Y-%m-%d"


class AcquisitionPipeline:
    """
    Coordinates: provision -> navigate -> match today's row -> download -> unpack -> persist.

    The sink is injected and provisioned at the start of every run. The
    browser session is created per run and released on every exit path.
    Failures are reported as a RunOutcome, never raised to the caller.
    """

    def __init__(
        self,
        *,
        sink: IngestSink,
        session_factory: Callable[[], ListingSession],
        unpacker: ArchiveUnpacker,
        watcher: DownloadWatcher,
        config: PipelineConfig,
        match_policy: RowMatchPolicy | None = None,
        today: Callable[[], date] = utc_today,
        clock: Callable[[], float] = time.time,
    ):
        self.sink = sink
        self.session_factory = session_factory
        self.unpacker = unpacker
        self.watcher = watcher
        self.config = config
        self.match_policy = match_policy or ExactDateMatch()
        self._today = today
        self._clock = clock

    def run(self) -> RunOutcome:
        try:
            self.sink.ensure_schema()
        except SinkError as e:
            logger.exception("Sink provisioning failed")
            return self._outcome(RunStatus.SETUP_FAILED, None, reason=str(e))

        ctx = RunContext(run_id=uuid.uuid4().hex, today=self._today(), date_format=self.config.date_format)
        logger.info("Run %s started for %s", ctx.run_id, ctx.today_str)

        try:
            self.config.download_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.exception("Could not create download directory %s", self.config.download_dir)
            return self._outcome(RunStatus.SETUP_FAILED, ctx, reason=str(e))

        try:
            with self.session_factory() as session:
                return self._run_in_session(ctx, session)
        except NavigationError as e:
            logger.exception("Navigation failed for %s", ctx.today_str)
            return self._outcome(RunStatus.NAVIGATION_FAILED, ctx, reason=str(e))

    def _run_in_session(self, ctx: RunContext, session: ListingSession) -> RunOutcome:
        session.open_listing()

        row = self.match_policy.select(session.rows(), ctx.today_str)
        if row is None:
            logger.info("No download link found for today: %s", ctx.today_str)
            return self._outcome(RunStatus.NO_LINK_FOR_TODAY, ctx)

        triggered_at = self._clock()
        link = session.trigger_download(row)
        logger.info("Download triggered for today: %s (%s)", ctx.today_str, link)

        try:
            artifact = self.watcher.wait_for_download(
                self.config.download_dir, newer_than=triggered_at - MTIME_SLACK_SECONDS
            )
        except DownloadTimeoutError as e:
            logger.warning("%s", e)
            return self._outcome(RunStatus.DOWNLOAD_TIMED_OUT, ctx, reason=str(e), link=link, artifact=e.artifact.path)

        if artifact is None or not artifact.path.name.endswith(self.config.archive_suffix):
            logger.warning("Downloaded file not found or is not a %s archive: %s", self.config.archive_suffix,
                           artifact.path if artifact else None)
            return self._outcome(
                RunStatus.NO_FILE_DOWNLOADED, ctx, link=link, artifact=artifact.path if artifact else None
            )

        logger.info("Latest file downloaded: %s", artifact.path)

        try:
            payload = self.unpacker.unpack(artifact.path, split=self.sink.wants_lines)
        except ArchiveExtractionError as e:
            logger.exception("Error extracting %s", artifact.path)
            return self._outcome(RunStatus.EXTRACTION_FAILED, ctx, reason=str(e), link=link, artifact=artifact.path)

        try:
            rows_written = self.sink.write(payload, ctx.today)
        except SinkError as e:
            logger.exception("Error saving %s", artifact.path)
            return self._outcome(RunStatus.SINK_ERROR, ctx, reason=str(e), link=link, artifact=artifact.path)

        logger.info("Run %s persisted %s rows for %s", ctx.run_id, rows_written, ctx.today_str)
        return self._outcome(RunStatus.PERSISTED, ctx, rows=rows_written, link=link, artifact=artifact.path)

    @staticmethod
    def _outcome(
        status: RunStatus,
        ctx: RunContext | None,
        *,
        rows: int = 0,
        reason: str | None = None,
        link: str | None = None,
        artifact: Path | None = None,
    ) -> RunOutcome:
        return RunOutcome(
            status=status,
            run_date=ctx.today if ctx else None,
            rows_written=rows,
            reason=reason,
            source_link=link,
            artifact=artifact,
            finished_at_utc=datetime.now(timezone.utc).replace(tzinfo=None),
        )
