"""Playwright accessor error handling, with the browser mocked out."""

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from domconform.accessors.browser import (
    PlaywrightDomAccessor,
    _navigable,
    open_browser_session,
)
from domconform.errors import (
    AccessorError,
    AccessorTimeoutError,
    AccessorUnavailableError,
)


@pytest.fixture
def page(mocker):
    return mocker.MagicMock(name="page")


def test_query_returns_nth_locators(page):
    locator = page.locator.return_value
    locator.count.return_value = 3
    dom = PlaywrightDomAccessor(page)

    handles = dom.query("li")

    page.locator.assert_called_once_with("li")
    assert handles == [locator.nth.return_value] * 3
    assert [c.args for c in locator.nth.call_args_list] == [(0,), (1,), (2,)]


def test_query_within_scope_uses_the_scope_locator(page, mocker):
    scope = mocker.MagicMock(name="scope")
    scope.locator.return_value.count.return_value = 0
    dom = PlaywrightDomAccessor(page)

    assert dom.query("a", scope) == []
    scope.locator.assert_called_once_with("a")
    page.locator.assert_not_called()


def test_text_is_normalized(page, mocker):
    element = mocker.MagicMock()
    element.text_content.return_value = "  Welcome\n to   Wema "
    assert PlaywrightDomAccessor(page).text(element) == "Welcome to Wema"


def test_timeout_is_translated(page):
    page.locator.return_value.count.side_effect = PlaywrightTimeoutError("Timeout 10000ms exceeded")
    with pytest.raises(AccessorTimeoutError, match="^timeout: count"):
        PlaywrightDomAccessor(page).count("li")


def test_closed_browser_is_unavailable(page, mocker):
    element = mocker.MagicMock()
    element.get_attribute.side_effect = PlaywrightError("Target page, context or browser has been closed")
    with pytest.raises(AccessorUnavailableError):
        PlaywrightDomAccessor(page).attribute(element, "lang")


def test_other_errors_are_accessor_errors(page):
    page.locator.return_value.count.side_effect = PlaywrightError("Unexpected token")
    with pytest.raises(AccessorError) as exc_info:
        PlaywrightDomAccessor(page).query("div[[")
    assert not isinstance(exc_info.value, (AccessorTimeoutError, AccessorUnavailableError))


def test_navigable_turns_paths_into_file_uris(tmp_path):
    page = tmp_path / "index.html"
    assert _navigable(str(page)) == page.resolve().as_uri()
    assert _navigable("https://example.test/") == "https://example.test/"


def test_unknown_browser_rejected():
    with pytest.raises(ValueError, match="Unknown browser"):
        with open_browser_session("https://example.test", browser="static"):
            pass


@pytest.mark.browser
def test_live_chromium_session(landing_page):
    with open_browser_session(str(landing_page), browser="chromium") as dom:
        assert dom.attribute(dom.query("html")[0], "lang") == "en"
        assert dom.is_in_viewport(dom.query("header")[0])
        assert dom.tag_name(dom.query("h1")[0]) == "H1"


def test_doctype_and_source(page):
    page.evaluate.return_value = "HTML"
    page.content.return_value = "<!DOCTYPE html><html></html>"
    dom = PlaywrightDomAccessor(page)

    assert dom.doctype() == "html"
    assert dom.source() == "<!DOCTYPE html><html></html>"


def test_missing_doctype(page):
    page.evaluate.return_value = None
    assert PlaywrightDomAccessor(page).doctype() is None


@pytest.fixture
def launched(mocker):
    """sync_playwright patched out; returns the mocked browser instance and page."""
    playwright = mocker.MagicMock(name="playwright")
    manager = mocker.patch("domconform.accessors.browser.sync_playwright")
    manager.return_value.__enter__.return_value = playwright
    instance = playwright.chromium.launch.return_value
    page = instance.new_context.return_value.new_page.return_value
    return instance, page


def test_page_creation_failure_is_unavailable(launched):
    instance, _ = launched
    instance.new_context.side_effect = PlaywrightError("Browser has been closed")

    with pytest.raises(AccessorUnavailableError, match="Could not open a chromium page"):
        with open_browser_session("https://example.test/"):
            pass
    instance.close.assert_called_once()


def test_http_error_status_is_unavailable(launched):
    instance, page = launched
    page.goto.return_value.ok = False
    page.goto.return_value.status = 404

    with pytest.raises(AccessorUnavailableError, match="HTTP 404"):
        with open_browser_session("https://example.test/missing"):
            pass
    instance.close.assert_called_once()


def test_successful_navigation_yields_accessor(launched):
    _, page = launched
    page.goto.return_value.ok = True

    with open_browser_session("https://example.test/", viewport=(375, 667)) as dom:
        assert dom.describe() == "chromium:375x667"
    page.goto.assert_called_once_with("https://example.test/", wait_until="load")
