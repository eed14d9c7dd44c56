"""DOM accessor backed by a live Playwright page.

Uses the sync API. Playwright objects are bound to the thread that created
them, so each runner job opens its own session inside its worker thread.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, Page, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from domconform.accessors.base import DomAccessor, ElementHandle, normalize_text
from domconform.config import is_local
from domconform.errors import (
    AccessorError,
    AccessorTimeoutError,
    AccessorUnavailableError,
)

BROWSERS = ("chromium", "firefox", "webkit")

# Substrings Playwright uses when the page, context or browser is gone
_CLOSED_MARKERS = (
    "has been closed",
    "Target closed",
    "Connection closed",
    "Browser closed",
)

_IN_VIEWPORT_JS = """el => {
    const r = el.getBoundingClientRect();
    const w = window.innerWidth || document.documentElement.clientWidth;
    const h = window.innerHeight || document.documentElement.clientHeight;
    return r.width > 0 && r.height > 0 && r.bottom > 0 && r.right > 0 && r.top < h && r.left < w;
}"""

_DOCTYPE_JS = "() => document.doctype ? document.doctype.name : null"


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightTimeoutError as e:
        raise AccessorTimeoutError(f"timeout: {action}: {e.message}") from e
    except PlaywrightError as e:
        if any(marker in e.message for marker in _CLOSED_MARKERS):
            raise AccessorUnavailableError(
                f"browser session lost during {action}: {e.message}"
            ) from e
        raise AccessorError(f"{action} failed: {e.message}") from e


class PlaywrightDomAccessor(DomAccessor):
    def __init__(self, page: Page, label: str = "browser"):
        self._page = page
        self.label = label

    def describe(self) -> str:
        return self.label

    def _locator(self, selector: str, scope: Locator | None) -> Locator:
        return (scope or self._page).locator(selector)

    def query(
        self, selector: str, scope: ElementHandle | None = None
    ) -> list[ElementHandle]:
        locator = self._locator(selector, scope)
        with _translate_errors(f"query '{selector}'"):
            n = locator.count()
        return [locator.nth(i) for i in range(n)]

    def count(self, selector: str, scope: ElementHandle | None = None) -> int:
        with _translate_errors(f"count '{selector}'"):
            return self._locator(selector, scope).count()

    def attribute(self, element: ElementHandle, name: str) -> str | None:
        with _translate_errors(f"read attribute '{name}'"):
            return element.get_attribute(name)

    def text(self, element: ElementHandle) -> str:
        with _translate_errors("read text"):
            return normalize_text(element.text_content())

    def is_visible(self, element: ElementHandle) -> bool:
        with _translate_errors("check visibility"):
            return element.is_visible()

    def is_in_viewport(self, element: ElementHandle) -> bool:
        with _translate_errors("check viewport"):
            return bool(element.evaluate(_IN_VIEWPORT_JS))

    def is_focused(self, element: ElementHandle) -> bool:
        with _translate_errors("check focus"):
            return bool(element.evaluate("el => el === document.activeElement"))

    def tag_name(self, element: ElementHandle) -> str:
        with _translate_errors("read tag name"):
            return str(element.evaluate("el => el.tagName")).upper()

    def doctype(self) -> str | None:
        with _translate_errors("read doctype"):
            name = self._page.evaluate(_DOCTYPE_JS)
        return None if name is None else str(name).lower()

    def source(self) -> str:
        with _translate_errors("read page source"):
            return self._page.content()


def _navigable(url: str) -> str:
    if is_local(url) and not url.startswith("file:"):
        return Path(url).resolve().as_uri()
    return url


@contextmanager
def open_browser_session(
    url: str,
    browser: str = "chromium",
    viewport: tuple[int, int] = (1280, 720),
    action_timeout_ms: int = 10_000,
    navigation_timeout_ms: int = 15_000,
    logger: logging.Logger | None = None,
) -> Iterator[PlaywrightDomAccessor]:
    """Launch a headless browser, open ``url`` and yield an accessor over it.

    Launch and navigation failures raise AccessorUnavailableError.
    """
    if browser not in BROWSERS:
        raise ValueError(
            f"Unknown browser: {browser!r}. Available: {', '.join(BROWSERS)}"
        )
    logger = logger or logging.getLogger(__name__)
    width, height = viewport

    with sync_playwright() as p:
        try:
            instance = getattr(p, browser).launch(headless=True)
        except PlaywrightError as e:
            raise AccessorUnavailableError(
                f"Could not launch {browser}: {e.message}"
            ) from e
        try:
            try:
                context = instance.new_context(
                    viewport={"width": width, "height": height}
                )
                page = context.new_page()
            except PlaywrightError as e:
                raise AccessorUnavailableError(
                    f"Could not open a {browser} page: {e.message}"
                ) from e
            page.set_default_timeout(action_timeout_ms)
            page.set_default_navigation_timeout(navigation_timeout_ms)

            target = _navigable(url)
            logger.debug(f"Navigating {browser} ({width}x{height}) to {target}")
            try:
                response = page.goto(target, wait_until="load")
            except PlaywrightError as e:
                raise AccessorUnavailableError(
                    f"Could not load {target}: {e.message}"
                ) from e
            # file:// and same-document navigations have no response
            if response is not None and not response.ok:
                raise AccessorUnavailableError(
                    f"Could not load {target}: HTTP {response.status}"
                )

            yield PlaywrightDomAccessor(page, label=f"{browser}:{width}x{height}")
        finally:
            instance.close()

