import logging
import os
import re
from datetime import time
from pathlib import Path
from typing import Annotated, Literal, Self, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, model_validator

from core import settings

logger = logging.getLogger(__name__)


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)


class SourceSpec(StrictBaseModel):
    url: str = settings.SOURCE_URL
    date_format: str = settings.SOURCE_DATE_FORMAT
    table_selector: str = settings.SOURCE_TABLE_SELECTOR
    row_selector: str = settings.SOURCE_ROW_SELECTOR
    date_cell_index: int = Field(default=settings.SOURCE_DATE_CELL_INDEX, ge=0)
    download_selector: str = settings.SOURCE_DOWNLOAD_SELECTOR
    headless: bool = True
    navigation_timeout_seconds: float = Field(default=120.0, gt=0)


class DownloadSpec(StrictBaseModel):
    directory: str = str(settings.DOWNLOAD_DIR)
    archive_suffix: str = settings.ARCHIVE_SUFFIX
    download_timeout_seconds: float = Field(default=60.0, gt=0)
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    max_polls: int = Field(default=30, ge=1)
    stable_polls: int = Field(default=2, ge=1)
    min_age_seconds: float = Field(default=1.0, ge=0)

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        if not self.archive_suffix.startswith("."):
            raise ValueError(f"archive_suffix must start with '.', got '{self.archive_suffix}'")
        if self.stable_polls > self.max_polls:
            raise ValueError("stable_polls cannot exceed max_polls")
        return self

    @property
    def path(self) -> Path:
        return Path(self.directory)


class ArchiveSpec(StrictBaseModel):
    text_member_suffix: str = settings.TEXT_MEMBER_SUFFIX
    encoding: str = settings.TEXT_ENCODING

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        if not self.text_member_suffix.startswith("."):
            raise ValueError(f"text_member_suffix must start with '.', got '{self.text_member_suffix}'")
        return self


_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


class _SinkSpecBase(StrictBaseModel):
    database: str = settings.DATABASE_NAME
    table: str = settings.TABLE_DOWNLOADS

    @model_validator(mode="after")
    def validate_names(self) -> Self:
        for name in (self.database, self.table):
            if not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid identifier '{name}'. Must start with a letter or underscore, "
                                 "followed by letters, digits, or underscores.")
        return self


class ColumnarSinkSpec(_SinkSpecBase):
    kind: Literal["columnar"]
    duckdb_path: str = settings.DUCKDB_PATH
    ducklake_attach_sql: str | None = None


class RelationalSinkSpec(_SinkSpecBase):
    kind: Literal["relational"]
    url: str = settings.RELATIONAL_URL


SinkSpec = Annotated[
    Union[ColumnarSinkSpec, RelationalSinkSpec],
    Field(discriminator="kind"),
]


class ScheduleSpec(StrictBaseModel):
    daily_at: str = settings.DAILY_RUN_AT
    idle_sleep_seconds: float = Field(default=30.0, gt=0)
    run_on_start: bool = False

    @model_validator(mode="after")
    def validate_spec(self) -> Self:
        _ = self.time_of_day
        return self

    @property
    def time_of_day(self) -> time:
        match = re.fullmatch(r"(\d{1,2}):(\d{2})", self.daily_at)
        if not match:
            raise ValueError(f"daily_at must look like HH:MM, got '{self.daily_at}'")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"daily_at out of range: '{self.daily_at}'")
        return time(hour=hour, minute=minute)


class AcquisitionConfig(StrictBaseModel):
    source: SourceSpec = Field(default_factory=SourceSpec)
    download: DownloadSpec = Field(default_factory=DownloadSpec)
    archive: ArchiveSpec = Field(default_factory=ArchiveSpec)
    sink: SinkSpec = Field(default_factory=lambda: ColumnarSinkSpec(kind="columnar"))
    schedule: ScheduleSpec = Field(default_factory=ScheduleSpec)


def load_config(file_path: str | os.PathLike[str] | None = None) -> AcquisitionConfig:
    path = Path(file_path) if file_path is not None else settings.DEFAULT_CONFIG_PATH

    if not path.exists():
        logger.warning(f"No acquisition config found at {path}. Using defaults.")
        return AcquisitionConfig()

    with open(path, "r") as file:
        config_yaml = yaml.safe_load(file) or {}

    try:
        return AcquisitionConfig.model_validate(config_yaml)
    except Exception as e:
        raise ValueError(f"Error loading acquisition config from {path}: {e}") from e
