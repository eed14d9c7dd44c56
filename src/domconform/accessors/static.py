"""DOM accessor over a static HTML snapshot (no browser, no layout)."""

from __future__ import annotations

import re
from pathlib import Path

from bs4 import BeautifulSoup, Tag
from bs4.element import Doctype
from soupsieve import SelectorSyntaxError

from domconform.accessors.base import DomAccessor, ElementHandle, normalize_text
from domconform.errors import AccessorError, AccessorUnavailableError

# Elements the browser never renders, whatever their CSS says
_NON_RENDERED = frozenset(
    {"head", "title", "meta", "link", "base", "script", "style", "template", "noscript"}
)
_HIDDEN_STYLE = re.compile(
    r"(?:^|;)\s*(?:display\s*:\s*none|visibility\s*:\s*hidden)", re.IGNORECASE
)


class StaticDomAccessor(DomAccessor):
    """Query a parsed HTML document with CSS selectors.

    Visibility is inferred from markup only: the ``hidden`` attribute, inline
    ``display:none``/``visibility:hidden`` and non-rendered elements on the
    ancestor chain. Without layout every visible element counts as inside the
    viewport, and only an ``autofocus`` element counts as focused.
    """

    def __init__(self, html: str, location: str = "<string>"):
        # Keep multi-valued attributes (class, rel) as the raw strings the
        # browser would return from getAttribute().
        self._soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
        self._html = html
        self.location = location

    @classmethod
    def from_file(cls, path: str | Path) -> StaticDomAccessor:
        path = Path(path)
        try:
            html = path.read_text(encoding="utf-8")
        except OSError as e:
            raise AccessorUnavailableError(f"Cannot read {path}: {e}") from e
        return cls(html, location=str(path))

    def describe(self) -> str:
        return f"static:{self.location}"

    def query(
        self, selector: str, scope: ElementHandle | None = None
    ) -> list[ElementHandle]:
        root = self._soup if scope is None else scope
        try:
            return list(root.select(selector))
        except SelectorSyntaxError as e:
            raise AccessorError(f"Invalid selector '{selector}': {e}") from e

    def attribute(self, element: ElementHandle, name: str) -> str | None:
        value = element.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def text(self, element: ElementHandle) -> str:
        return normalize_text(element.get_text())

    def is_visible(self, element: ElementHandle) -> bool:
        node = element
        while isinstance(node, Tag) and node is not self._soup:
            if node.name in _NON_RENDERED or node.has_attr("hidden"):
                return False
            if node.name == "input" and (node.get("type") or "").lower() == "hidden":
                return False
            style = node.get("style")
            if style and _HIDDEN_STYLE.search(style):
                return False
            node = node.parent
        return True

    def is_in_viewport(self, element: ElementHandle) -> bool:
        return self.is_visible(element)

    def is_focused(self, element: ElementHandle) -> bool:
        return element.has_attr("autofocus") and (
            self._soup.select_one("[autofocus]") is element
        )

    def tag_name(self, element: ElementHandle) -> str:
        return element.name.upper()

    def doctype(self) -> str | None:
        node = next((n for n in self._soup.contents if isinstance(n, Doctype)), None)
        if node is None:
            return None
        # the node holds what follows "DOCTYPE", e.g. "html" or "html PUBLIC ..."
        words = str(node).split()
        return words[0].lower() if words else ""

    def source(self) -> str:
        return self._html
