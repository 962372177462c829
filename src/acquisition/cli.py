import argparse
import logging
from contextlib import closing
from typing import Sequence

from acquisition.archive import ArchiveUnpacker
from acquisition.config import AcquisitionConfig, ColumnarSinkSpec, RelationalSinkSpec, load_config
from acquisition.download_watcher import DownloadWatcher
from acquisition.pipeline import AcquisitionPipeline, PipelineConfig
from acquisition.scheduler import DailyCadence, Scheduler
from acquisition.sinks.base import IngestSink
from acquisition.sinks.factory import build_sink

logger = logging.getLogger(__name__)


def build_pipeline(config: AcquisitionConfig, sink: IngestSink) -> AcquisitionPipeline:
    from acquisition.browser import PlaywrightListingSession

    download = config.download

    return AcquisitionPipeline(
        sink=sink,
        session_factory=lambda: PlaywrightListingSession(
            config.source, download.path, download.download_timeout_seconds
        ),
        unpacker=ArchiveUnpacker(
            text_member_suffix=config.archive.text_member_suffix,
            encoding=config.archive.encoding,
        ),
        watcher=DownloadWatcher(
            poll_interval_seconds=download.poll_interval_seconds,
            max_polls=download.max_polls,
            stable_polls=download.stable_polls,
            min_age_seconds=download.min_age_seconds,
            timeout_seconds=download.download_timeout_seconds,
        ),
        config=PipelineConfig(
            download_dir=download.path,
            archive_suffix=download.archive_suffix,
            date_format=config.source.date_format,
        ),
    )


def _override_sink(config: AcquisitionConfig, kind: str | None) -> AcquisitionConfig:
    if kind is None or kind == config.sink.kind:
        return config
    sink = ColumnarSinkSpec(kind="columnar") if kind == "columnar" else RelationalSinkSpec(kind="relational")
    return config.model_copy(update={"sink": sink})


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Download today's archive from the source listing and persist it.")
    parser.add_argument("--config", default=None, help="Path to a YAML config (defaults to configs/default.yaml)")
    parser.add_argument("--once", action="store_true", help="Run the pipeline once and exit")
    parser.add_argument("--sink", choices=["columnar", "relational"], default=None, help="Override the configured sink")
    args = parser.parse_args(argv)

    config = _override_sink(load_config(args.config), args.sink)

    with closing(build_sink(config.sink)) as sink:
        pipeline = build_pipeline(config, sink)

        if args.once:
            outcome = pipeline.run()
            logger.info("Run finished: status=%s rows=%s", outcome.status.value, outcome.rows_written)
            return 0 if outcome.ok else 1

        scheduler = Scheduler(
            job=pipeline.run,
            cadence=DailyCadence(at=config.schedule.time_of_day),
            idle_sleep_seconds=config.schedule.idle_sleep_seconds,
        )
        logger.info("Scraper is scheduled to run daily at %s.", config.schedule.daily_at)
        try:
            scheduler.serve(run_on_start=config.schedule.run_on_start)
        except KeyboardInterrupt:
            logger.info("Scheduler stopped.")

    return 0
