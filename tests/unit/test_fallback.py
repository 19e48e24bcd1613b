"""Unit tests for the Playwright fallback renderer (browser replaced by doubles)."""

from pathlib import Path

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from vellum.contexts.rendering import fallback
from vellum.contexts.rendering.errors import InvalidRequestError, RendererUnavailable
from vellum.contexts.rendering.fallback import FallbackRenderer

PDF_BYTES = b"%PDF-1.7\nrendered by chromium\n%%EOF"


class FakePage:
    def __init__(self, pdf_result, on_set_content=None):
        self.pdf_result = pdf_result
        self.on_set_content = on_set_content
        self.content = None
        self.pdf_options = None

    def set_default_timeout(self, timeout_ms):
        self.default_timeout = timeout_ms

    def set_content(self, markup, wait_until=None, timeout=None):
        self.content = markup
        self.wait_until = wait_until
        self.content_timeout = timeout
        if self.on_set_content:
            self.on_set_content()

    def pdf(self, **options):
        self.pdf_options = options
        if isinstance(self.pdf_result, Exception):
            raise self.pdf_result
        return self.pdf_result


class FakeBrowser:
    def __init__(self, page):
        self.page = page
        self.closed = False

    def new_page(self):
        return self.page

    def close(self):
        self.closed = True


class FakeChromium:
    def __init__(self, browser=None, launch_error=None, executable_path="/nonexistent/chrome", on_launch=None):
        self.browser = browser
        self.on_launch = on_launch
        self.launch_error = launch_error
        self.executable_path = executable_path
        self.launch_options = None

    def launch(self, **options):
        self.launch_options = options
        if self.on_launch:
            self.on_launch()
        if self.launch_error:
            raise self.launch_error
        return self.browser


class SteppingClock:
    """Clock that only moves when a fake browser step advances it."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakePlaywrightContext:
    def __init__(self, chromium):
        self.chromium = chromium

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


def install(monkeypatch, chromium):
    monkeypatch.setattr(fallback, "sync_playwright", lambda: FakePlaywrightContext(chromium))


@pytest.mark.unit
def test_render_prints_converted_html(monkeypatch, make_config):
    page = FakePage(PDF_BYTES)
    browser = FakeBrowser(page)
    chromium = FakeChromium(browser)
    install(monkeypatch, chromium)

    renderer = FallbackRenderer(make_config())
    pdf_bytes = renderer.render(r"\section*{Skills} \textbf{Python}")

    assert pdf_bytes == PDF_BYTES
    assert "<h2>Skills</h2>" in page.content
    assert page.wait_until == "networkidle"
    assert page.pdf_options["format"] == "A4"
    assert page.pdf_options["margin"] == {"top": "0.5in", "right": "0.5in", "bottom": "0.5in", "left": "0.5in"}
    assert page.pdf_options["print_background"] is True
    assert chromium.launch_options["headless"] is True
    assert browser.closed


@pytest.mark.unit
def test_page_format_and_timeout_from_config(monkeypatch, make_config):
    page = FakePage(PDF_BYTES)
    chromium = FakeChromium(FakeBrowser(page))
    install(monkeypatch, chromium)

    FallbackRenderer(make_config(page_format="Letter"), clock=lambda: 0.0).render("text", timeout=2.5)

    assert page.pdf_options["format"] == "Letter"
    assert page.default_timeout == 2500
    assert chromium.launch_options["timeout"] == 2500
    assert page.content_timeout == 2500


@pytest.mark.unit
def test_steps_share_one_time_budget(monkeypatch, make_config):
    clock = SteppingClock()
    page = FakePage(PDF_BYTES, on_set_content=lambda: clock.advance(1.5))
    chromium = FakeChromium(FakeBrowser(page), on_launch=lambda: clock.advance(1.0))
    install(monkeypatch, chromium)

    FallbackRenderer(make_config(), clock=clock).render("text", timeout=4.0)

    assert chromium.launch_options["timeout"] == 4000
    assert page.content_timeout == 3000
    assert page.default_timeout == 1500


@pytest.mark.unit
def test_budget_spent_before_export(monkeypatch, make_config):
    clock = SteppingClock()
    page = FakePage(PDF_BYTES, on_set_content=lambda: clock.advance(5.0))
    browser = FakeBrowser(page)
    install(monkeypatch, FakeChromium(browser))

    with pytest.raises(RendererUnavailable) as exc_info:
        FallbackRenderer(make_config(), clock=clock).render("text", timeout=4.0)

    assert "before PDF export" in exc_info.value.message
    assert page.pdf_options is None
    assert browser.closed


@pytest.mark.unit
def test_launch_failure_is_renderer_unavailable(monkeypatch, make_config):
    install(monkeypatch, FakeChromium(launch_error=PlaywrightError("Executable doesn't exist")))

    with pytest.raises(RendererUnavailable) as exc_info:
        FallbackRenderer(make_config()).render(r"\section{A}")

    assert exc_info.value.kind == "renderer_unavailable"
    assert "failed to start" in exc_info.value.message


@pytest.mark.unit
def test_export_timeout_closes_browser(monkeypatch, make_config):
    browser = FakeBrowser(FakePage(PlaywrightTimeoutError("Timeout 1000ms exceeded")))
    install(monkeypatch, FakeChromium(browser))

    with pytest.raises(RendererUnavailable):
        FallbackRenderer(make_config()).render(r"\section{A}", timeout=1.0)

    assert browser.closed


@pytest.mark.unit
def test_non_pdf_output_is_rejected(monkeypatch, make_config):
    install(monkeypatch, FakeChromium(FakeBrowser(FakePage(b"<html>not a pdf</html>"))))

    with pytest.raises(RendererUnavailable):
        FallbackRenderer(make_config()).render(r"\section{A}")


@pytest.mark.unit
@pytest.mark.parametrize("source", ["", "  \n"])
def test_empty_source_rejected(source, make_config):
    with pytest.raises(InvalidRequestError):
        FallbackRenderer(make_config()).render(source)


@pytest.mark.unit
def test_browser_executable(monkeypatch, tmp_path, make_config):
    chrome = tmp_path / "chrome"
    chrome.write_text("")
    install(monkeypatch, FakeChromium(executable_path=str(chrome)))
    assert FallbackRenderer(make_config()).browser_executable() == Path(chrome)

    install(monkeypatch, FakeChromium(executable_path=str(tmp_path / "missing")))
    assert FallbackRenderer(make_config()).browser_executable() is None
