"""
HTML fallback renderer.

Used only when LaTeX compilation fails: the same source is converted to HTML
(see hypertext.py) and printed to PDF by headless Chromium through Playwright.

render() either returns complete PDF bytes or raises RendererUnavailable.
"""

import time
from pathlib import Path
from typing import Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from vellum.config import PipelineConfig
from vellum.contexts.rendering.errors import InvalidRequestError, RendererUnavailable
from vellum.contexts.rendering.hypertext import to_hypertext
from vellum.contexts.rendering.logger import _log_debug, _log_info, _log_success
from vellum.utils.pdf_processing import is_pdf

# Chromium refuses to start as root inside containers without these
CHROMIUM_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]


class FallbackRenderer:
    """
    Renders LaTeX source through HTML and headless Chromium.

    Args:
        config: Pipeline settings (page format, margins, render timeout)
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(self, config: Optional[PipelineConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config or PipelineConfig()
        self.clock = clock

    def browser_executable(self) -> Optional[Path]:
        """Path of the Chromium build Playwright would launch, or None if it is not installed."""
        try:
            with sync_playwright() as playwright:
                executable = Path(playwright.chromium.executable_path)
        except PlaywrightError as e:
            _log_debug(f"Playwright driver unavailable: {e}")
            return None
        return executable if executable.exists() else None

    def render(self, source_text: str, timeout: Optional[float] = None) -> bytes:
        """
        Render LaTeX source to PDF bytes without a TeX installation.

        Args:
            source_text: LaTeX source (same text the compiler received)
            timeout: Bound for the browser work (default: config.render_timeout_s)

        Returns:
            PDF bytes

        Raises:
            InvalidRequestError: If source_text is empty
            RendererUnavailable: If the browser cannot start or export the page
        """
        if not source_text or not source_text.strip():
            raise InvalidRequestError("LaTeX source is empty")

        markup = to_hypertext(source_text)
        _log_debug(f"Converted {len(source_text)} chars of LaTeX to {len(markup)} chars of HTML")
        return self.rasterize(markup, timeout=timeout)

    def rasterize(self, markup: str, timeout: Optional[float] = None) -> bytes:
        """
        Print an HTML document to a paginated PDF with headless Chromium.

        Launching, loading, and exporting share one time budget. The browser
        is closed on every path, including timeouts.

        Args:
            markup: Complete HTML document
            timeout: Bound in seconds for the whole export (default: config.render_timeout_s)

        Returns:
            PDF bytes

        Raises:
            RendererUnavailable: On launch failure, timeout, or non-PDF output
        """
        timeout = self.config.render_timeout_s if timeout is None else timeout
        deadline = self.clock() + timeout

        def remaining_ms(step: str) -> int:
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise RendererUnavailable(f"Headless browser exceeded {timeout:.1f}s before {step}")
            return max(int(remaining * 1000), 1)

        _log_info(f"Rendering HTML fallback ({self.config.page_format}, timeout {timeout:.1f}s)")

        try:
            with sync_playwright() as playwright:
                try:
                    browser = playwright.chromium.launch(
                        headless=True, args=CHROMIUM_ARGS, timeout=remaining_ms("launch")
                    )
                except PlaywrightError as e:
                    raise RendererUnavailable(f"Headless browser failed to start: {e}") from e

                try:
                    page = browser.new_page()
                    page.set_content(markup, wait_until="networkidle", timeout=remaining_ms("page load"))
                    # page.pdf() takes no timeout of its own
                    page.set_default_timeout(remaining_ms("PDF export"))
                    pdf_bytes = page.pdf(
                        format=self.config.page_format,
                        margin=dict(self.config.margins),
                        print_background=True,
                    )
                finally:
                    browser.close()
        except PlaywrightError as e:
            raise RendererUnavailable(f"Headless browser rendering failed: {e}") from e

        if not pdf_bytes or not is_pdf(pdf_bytes):
            raise RendererUnavailable("Headless browser returned output that is not a PDF")

        _log_success(f"HTML fallback produced {len(pdf_bytes)} bytes")
        return pdf_bytes
