"""DOM accessor implementations and the factory that opens one per job."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from domconform.accessors.base import DomAccessor, ElementHandle, normalize_text
from domconform.accessors.static import StaticDomAccessor
from domconform.config import Settings, TargetConfig, is_local, local_path
from domconform.errors import AccessorUnavailableError


@contextmanager
def open_accessor(
    target: TargetConfig,
    url: str,
    settings: Settings,
    logger: logging.Logger | None = None,
) -> Iterator[DomAccessor]:
    """Open the accessor a target asks for and close it afterwards.

    ``static`` targets parse a local HTML file; every other browser name
    launches Playwright.
    """
    if target.browser == "static":
        if not is_local(url):
            raise AccessorUnavailableError(
                f"Static targets read local files only, got '{url}'"
            )
        path = local_path(url)
        if not path.is_file():
            raise AccessorUnavailableError(f"Page not found: {path}")
        with StaticDomAccessor.from_file(path) as dom:
            yield dom
        return

    from domconform.accessors.browser import open_browser_session

    with open_browser_session(
        url,
        browser=target.browser,
        viewport=target.viewport_size,
        action_timeout_ms=settings.action_timeout_ms,
        navigation_timeout_ms=settings.navigation_timeout_ms,
        logger=logger,
    ) as dom:
        yield dom


__all__ = [
    "DomAccessor",
    "ElementHandle",
    "StaticDomAccessor",
    "normalize_text",
    "open_accessor",
]
