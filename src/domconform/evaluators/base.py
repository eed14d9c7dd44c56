"""Helpers shared by the rule evaluators: target resolution and finding builders."""

from __future__ import annotations

from typing import Any, Sequence

from domconform.accessors.base import DomAccessor, ElementHandle
from domconform.report import Finding, Status


class ScopeNotFound(Exception):
    """The parent element a rule is scoped to does not exist."""

    def __init__(self, scope: str, index: int, found: int):
        self.scope = scope
        self.index = index
        self.found = found
        if found == 0:
            detail = f"scope '{scope}' matched no elements"
        else:
            detail = f"scope '{scope}' has no element at index {index} ({found} found)"
        super().__init__(detail)


def pick(items: Sequence[ElementHandle], index: int) -> ElementHandle | None:
    """Python-style indexing (negative counts from the end) that returns None when out of range."""
    if -len(items) <= index < len(items):
        return items[index]
    return None


def scope_of(rule: Any, dom: DomAccessor) -> ElementHandle | None:
    """The scope element for a rule, or None when the rule is document-wide."""
    if rule.scope is None:
        return None
    scopes = dom.query(rule.scope)
    element = pick(scopes, rule.scope_index)
    if element is None:
        raise ScopeNotFound(rule.scope, rule.scope_index, len(scopes))
    return element


def matches(rule: Any, dom: DomAccessor) -> list[ElementHandle]:
    """Elements a rule applies to, in document order, honouring scope and index."""
    found = dom.query(rule.selector, scope_of(rule, dom))
    if rule.index is None:
        return found
    element = pick(found, rule.index)
    return [] if element is None else [element]


def match_count(rule: Any, dom: DomAccessor) -> int:
    if rule.index is None:
        return dom.count(rule.selector, scope_of(rule, dom))
    return len(matches(rule, dom))


def where(rule: Any) -> str:
    """Human-readable description of what a rule targets."""
    text = f"'{rule.selector}'"
    if rule.index is not None:
        text += f"[{rule.index}]"
    if rule.scope is not None:
        scope = f"'{rule.scope}'"
        if rule.scope_index:
            scope += f"[{rule.scope_index}]"
        text += f" within {scope}"
    return text


def passed(rule: Any, message: str, actual: Any = None, expected: Any = None) -> Finding:
    return Finding(
        rule_id=rule.id,
        status=Status.PASS,
        severity=rule.severity,
        message=message,
        actual=actual,
        expected=expected,
    )


def failed(
    rule: Any,
    message: str,
    actual: Any = None,
    expected: Any = None,
    *,
    describe: bool = True,
) -> Finding:
    """Failing finding. The rule description, if any, leads the message unless ``describe`` is off."""
    if describe and rule.description:
        message = f"{rule.description}: {message}"
    return Finding(
        rule_id=rule.id,
        status=Status.FAIL,
        severity=rule.severity,
        message=message,
        actual=actual,
        expected=expected,
    )


def skipped(rule: Any, reason: str) -> Finding:
    return Finding(
        rule_id=rule.id,
        status=Status.SKIPPED,
        severity=rule.severity,
        message=reason,
    )


def no_match(rule: Any) -> Finding:
    """Finding for a rule whose selector matched nothing.

    Optional rules tolerate a missing target; everything else fails.
    """
    message = f"{where(rule)} matched no elements"
    if getattr(rule, "optional", False):
        return skipped(rule, message)
    return failed(rule, message, actual=0)


def css_string(value: str) -> str:
    """Quote a value for use inside a CSS attribute selector."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'
