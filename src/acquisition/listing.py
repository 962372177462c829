from types import TracebackType
from typing import Iterable, Protocol, Sequence

from acquisition.domain import SourceListingRow


class NavigationError(Exception):
    """The listing page could not be loaded or queried."""


class ListingSession(Protocol):
    """
    A browser session scoped to one run.

    Used as a context manager; leaving the block releases the browser on
    every exit path.
    """

    def __enter__(self) -> "ListingSession": ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        tb: TracebackType | None,
    ) -> None: ...

    def open_listing(self) -> None:
        """Navigate to the source page and block until its table is present."""
        ...

    def rows(self) -> Sequence[SourceListingRow]: ...

    def trigger_download(self, row: SourceListingRow) -> str | None:
        """Activate the row's download control; returns the control's target reference."""
        ...


class RowMatchPolicy(Protocol):
    def select(self, rows: Iterable[SourceListingRow], today_str: str) -> SourceListingRow | None:
        ...


class ExactDateMatch:
    """
    Exact match against the configured date format.

    The first row, top to bottom, whose trimmed date cell equals `today_str`
    wins. This is plain string equality: a row rendered in any other format
    never matches.
    """

    def select(self, rows: Iterable[SourceListingRow], today_str: str) -> SourceListingRow | None:
        for row in rows:
            if row.download_control is None:
                continue
            if row.display_date.strip() == today_str:
                return row
        return None
