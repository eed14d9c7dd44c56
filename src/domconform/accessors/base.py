from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

# Opaque to the engine: a bs4 Tag for the static accessor, a Playwright
# Locator for the browser accessor.
ElementHandle = Any


def normalize_text(value: str | None) -> str:
    """Collapse runs of whitespace and trim, as textContent matching does."""
    if not value:
        return ""
    return " ".join(value.split())


class DomAccessor(ABC):
    """Read-only query capability over one live document.

    Every call may cross a process boundary and may raise
    ``AccessorTimeoutError`` or ``AccessorUnavailableError``.
    """

    @abstractmethod
    def query(
        self, selector: str, scope: ElementHandle | None = None
    ) -> list[ElementHandle]:
        """All matches in document order. Empty list on zero matches, never raises for that."""
        ...

    def count(self, selector: str, scope: ElementHandle | None = None) -> int:
        return len(self.query(selector, scope))

    @abstractmethod
    def attribute(self, element: ElementHandle, name: str) -> str | None:
        """Attribute value, or None when the attribute is absent."""
        ...

    @abstractmethod
    def text(self, element: ElementHandle) -> str:
        """Whitespace-normalised text content."""
        ...

    @abstractmethod
    def is_visible(self, element: ElementHandle) -> bool: ...

    @abstractmethod
    def is_in_viewport(self, element: ElementHandle) -> bool: ...

    @abstractmethod
    def is_focused(self, element: ElementHandle) -> bool: ...

    @abstractmethod
    def tag_name(self, element: ElementHandle) -> str:
        """Upper-case tag name, e.g. ``"H2"``."""
        ...

    @abstractmethod
    def doctype(self) -> str | None:
        """Lower-case doctype name (``"html"`` for ``<!DOCTYPE html>``), None without one."""
        ...

    @abstractmethod
    def source(self) -> str:
        """Serialized HTML of the whole document."""
        ...

    def describe(self) -> str:
        """Short label used in logs."""
        return type(self).__name__

    def close(self) -> None:
        """Release the underlying session. Default: nothing to release."""

    def __enter__(self) -> DomAccessor:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
