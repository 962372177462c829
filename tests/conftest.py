"""Pytest configuration and shared fakes for the acquisition tests."""

from __future__ import annotations

import sys
import zipfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Callable

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from acquisition.domain import ExtractedPayload, SourceListingRow  # noqa: E402


def make_zip(path: Path, members: list[tuple[str, str]]) -> Path:
    """Write a zip archive whose members appear in the given order."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in members:
            archive.writestr(name, content)
    return path


def make_corrupt_zip(path: Path, name: str = "data.txt", content: str = "a.com\nb.net\n" * 50) -> Path:
    """Write a deflated zip, then clobber the first byte of its compressed stream."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(name, content)

    with zipfile.ZipFile(path) as archive:
        header_offset = archive.getinfo(name).header_offset

    raw = bytearray(path.read_bytes())
    name_len = int.from_bytes(raw[header_offset + 26:header_offset + 28], "little")
    extra_len = int.from_bytes(raw[header_offset + 28:header_offset + 30], "little")
    raw[header_offset + 30 + name_len + extra_len] = 0xFF
    path.write_bytes(bytes(raw))
    return path


@dataclass
class FakeListingSession:
    """Stands in for the browser: serves fixed rows and runs `on_download` when a control is clicked."""

    listing: list[SourceListingRow]
    on_download: Callable[[SourceListingRow], None] | None = None
    opened: bool = False
    closed: bool = False
    triggered: list[SourceListingRow] = field(default_factory=list)
    fail_navigation: Exception | None = None

    def __enter__(self) -> "FakeListingSession":
        self.opened = True
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.closed = True

    def open_listing(self) -> None:
        if self.fail_navigation is not None:
            raise self.fail_navigation

    def rows(self) -> list[SourceListingRow]:
        return list(self.listing)

    def trigger_download(self, row: SourceListingRow) -> str | None:
        self.triggered.append(row)
        if self.on_download is not None:
            self.on_download(row)
        return row.href


@dataclass
class RecordingSink:
    wants_lines: bool = True
    schema_calls: int = 0
    writes: list[tuple[ExtractedPayload, date]] = field(default_factory=list)

    def ensure_schema(self) -> None:
        self.schema_calls += 1

    def write(self, payload: ExtractedPayload, run_date: date) -> int:
        self.writes.append((payload, run_date))
        return len(payload.lines) if payload.lines is not None else 1

    def close(self) -> None:
        pass


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    path = tmp_path / "downloads"
    path.mkdir()
    return path
