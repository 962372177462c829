"""Tests for the command-line entry point."""

from pathlib import Path
from unittest.mock import MagicMock, patch

from acquisition.cli import main
from acquisition.domain import RunOutcome, RunStatus


def _config(tmp_path: Path) -> Path:
    path = tmp_path / "job.yaml"
    path.write_text(
        "download:\n"
        f"  directory: {tmp_path / 'downloads'}\n"
        "sink:\n"
        "  kind: relational\n"
        f"  url: sqlite:///{tmp_path / 'downloads.db'}\n"
    )
    return path


class TestMain:
    @patch("acquisition.cli.build_pipeline")
    def test_once_exit_code_follows_outcome(self, build_pipeline: MagicMock, tmp_path: Path) -> None:
        build_pipeline.return_value.run.return_value = RunOutcome(status=RunStatus.PERSISTED, rows_written=1)
        assert main(["--config", str(_config(tmp_path)), "--once"]) == 0

        build_pipeline.return_value.run.return_value = RunOutcome(status=RunStatus.EXTRACTION_FAILED, reason="bad zip")
        assert main(["--config", str(_config(tmp_path)), "--once"]) == 1

    @patch("acquisition.cli.build_pipeline")
    def test_sink_override_reaches_pipeline(self, build_pipeline: MagicMock, tmp_path: Path) -> None:
        build_pipeline.return_value.run.return_value = RunOutcome(status=RunStatus.NO_LINK_FOR_TODAY)

        main(["--config", str(_config(tmp_path)), "--once", "--sink", "columnar"])

        config, sink = build_pipeline.call_args.args
        assert config.sink.kind == "columnar"
        assert sink.wants_lines
