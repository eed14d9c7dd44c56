"""Dispatch a rule to the evaluator for its kind."""

from __future__ import annotations

import logging
from typing import Callable

from domconform.accessors.base import DomAccessor
from domconform.config import Rule
from domconform.errors import (
    AccessorError,
    AccessorTimeoutError,
    AccessorUnavailableError,
)
from domconform.evaluators.accessibility import (
    check_accessible_name,
    check_aria_cross_reference,
    check_element_state,
)
from domconform.evaluators.base import ScopeNotFound, failed, skipped
from domconform.evaluators.content import (
    check_attribute_contains,
    check_attribute_equals,
    check_source_excludes,
    check_text_contains,
)
from domconform.evaluators.structure import (
    check_count,
    check_doctype,
    check_exists,
    check_heading_hierarchy,
    check_ordered_sequence,
)
from domconform.report import Finding

Evaluator = Callable[[Rule, DomAccessor], Finding]

_EVALUATORS: dict[str, Evaluator] = {
    "exists": check_exists,
    "attribute_equals": check_attribute_equals,
    "attribute_contains": check_attribute_contains,
    "text_contains": check_text_contains,
    "count": check_count,
    "ordered_sequence": check_ordered_sequence,
    "heading_hierarchy": check_heading_hierarchy,
    "aria_cross_reference": check_aria_cross_reference,
    "element_state": check_element_state,
    "accessible_name": check_accessible_name,
    "doctype": check_doctype,
    "source_excludes": check_source_excludes,
}


def supported_kinds() -> list[str]:
    return sorted(_EVALUATORS)


def evaluate_rule(
    rule: Rule,
    dom: DomAccessor,
    *,
    logger: logging.Logger | None = None,
) -> Finding:
    """Evaluate one rule and return exactly one finding.

    Accessor timeouts become failures and other recoverable accessor errors
    become skips, so one broken rule never aborts the run.
    AccessorUnavailableError is not recoverable and propagates.

    Raises ValueError for unknown rule kinds.
    """
    if logger is None:
        logger = logging.getLogger(__name__)

    evaluator = _EVALUATORS.get(rule.kind)
    if evaluator is None:
        raise ValueError(f"Unknown rule kind: '{rule.kind}'")

    logger.debug(f"Evaluating {rule.kind} rule '{rule.id}' on '{rule.selector}'")

    try:
        finding = evaluator(rule, dom)
    except ScopeNotFound as e:
        if getattr(rule, "optional", False):
            finding = skipped(rule, str(e))
        else:
            finding = failed(rule, str(e), actual=e.found)
    except AccessorUnavailableError:
        raise
    except AccessorTimeoutError as e:
        message = str(e)
        if not message.startswith("timeout"):
            message = f"timeout: {message}"
        logger.warning(f"Rule '{rule.id}' timed out: {e}")
        finding = failed(rule, message, describe=False)
    except AccessorError as e:
        logger.warning(f"Rule '{rule.id}' could not be evaluated: {e}")
        finding = skipped(rule, f"accessor error: {e}")

    logger.info(f"Rule '{rule.id}': {finding.status.value} - {finding.message}")
    return finding
