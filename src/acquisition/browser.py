from __future__ import annotations

import logging
from pathlib import Path
from types import TracebackType
from typing import Sequence

from playwright.sync_api import Browser, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from acquisition.config import SourceSpec
from acquisition.domain import SourceListingRow
from acquisition.listing import NavigationError

logger = logging.getLogger(__name__)


class PlaywrightListingSession:
    """Chromium session driving the source listing page."""

    def __init__(self, source: SourceSpec, download_dir: Path, download_timeout_seconds: float):
        self.source = source
        self.download_dir = download_dir
        self.download_timeout_ms = download_timeout_seconds * 1000
        self.navigation_timeout_ms = source.navigation_timeout_seconds * 1000

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    def __enter__(self) -> "PlaywrightListingSession":
        if self._playwright is not None:
            raise RuntimeError("Browser session already open")

        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=self.source.headless)
            context = self._browser.new_context(accept_downloads=True)
            self._page = context.new_page()
        except Exception:
            self._close()
            raise

        logger.debug("Browser launched. headless=%s", self.source.headless)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self._close()

    def _close(self) -> None:
        try:
            if self._browser is not None:
                self._browser.close()
        finally:
            if self._playwright is not None:
                self._playwright.stop()
            self._browser = None
            self._page = None
            self._playwright = None

    def _require_page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser session is not open; use it as a context manager")
        return self._page

    # ----------------------------
    # ListingSession
    # ----------------------------
    def open_listing(self) -> None:
        page = self._require_page()
        try:
            page.goto(self.source.url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
            page.wait_for_selector(self.source.table_selector, timeout=self.navigation_timeout_ms)
        except PlaywrightError as e:
            raise NavigationError(f"Could not load listing {self.source.url}: {e}") from e

    def rows(self) -> Sequence[SourceListingRow]:
        page = self._require_page()
        listing: list[SourceListingRow] = []
        try:
            for row in page.locator(self.source.row_selector).all():
                cells = row.locator("td")
                if cells.count() <= self.source.date_cell_index:
                    continue

                display_date = cells.nth(self.source.date_cell_index).inner_text()
                buttons = row.locator(self.source.download_selector)
                control = buttons.first if buttons.count() else None
                href = control.get_attribute("href") if control is not None else None

                listing.append(SourceListingRow(display_date=display_date, download_control=control, href=href))
        except PlaywrightError as e:
            raise NavigationError(f"Could not read listing rows: {e}") from e

        return listing

    def trigger_download(self, row: SourceListingRow) -> str | None:
        page = self._require_page()
        self.download_dir.mkdir(parents=True, exist_ok=True)

        try:
            with page.expect_download(timeout=self.download_timeout_ms) as download_info:
                row.download_control.click()
            download = download_info.value
            download.save_as(self.download_dir / download.suggested_filename)
        except PlaywrightTimeoutError:
            # Nothing lands in the directory; the watcher reports it.
            logger.warning("Download control for %s did not start a download", row.display_date.strip())
        except PlaywrightError as e:
            raise NavigationError(f"Could not trigger download: {e}") from e

        return row.href
