"""Exception hierarchy.

Rule failures are never exceptions; they are reported as findings. The
classes here cover the two other failure classes: broken rule definitions
(caught at load time) and accessor/infrastructure problems.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from domconform.report import RunReport


class DomConformError(Exception):
    """Base class for all domconform errors."""


class RuleDefinitionError(DomConformError, ValueError):
    """A rule set or config file is malformed.

    Raised before any evaluation starts; no partial evaluation happens.
    """


class AccessorError(DomConformError):
    """A DOM accessor call could not be completed."""


class AccessorTimeoutError(AccessorError):
    """A DOM accessor call exceeded its timeout budget."""


class AccessorUnavailableError(AccessorError):
    """The browser session is gone or the page could not be reached."""


class SessionLostError(DomConformError):
    """The accessor became unavailable mid-run.

    ``partial_report`` holds the findings produced before the session was lost,
    with the remaining rules marked as skipped.
    """

    def __init__(self, message: str, partial_report: RunReport | None = None):
        super().__init__(message)
        self.partial_report = partial_report
