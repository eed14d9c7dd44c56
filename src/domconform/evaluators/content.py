"""Attribute and text content checks."""

from __future__ import annotations

from domconform.accessors.base import DomAccessor
from domconform.config import (
    AttributeContainsRule,
    AttributeEqualsRule,
    Bound,
    SourceExcludesRule,
    TextContainsRule,
)
from domconform.evaluators.base import failed, matches, no_match, passed, where
from domconform.report import Finding


def _label(rule, position: int) -> str:
    label = where(rule)
    if rule.match == "all":
        label += f" (match {position})"
    return label


def _length_problem(value: str, bound: Bound | None) -> str | None:
    if bound is None or bound.check(len(value)):
        return None
    return f"length {len(value)} is not {bound.describe()}"


def _attribute_equals_problem(rule: AttributeEqualsRule, value: str | None) -> str | None:
    if value is None:
        return f"has no '{rule.attribute}' attribute"
    if rule.expected is None:
        if not value.strip():
            return f"has an empty '{rule.attribute}' attribute"
    elif value != rule.expected:
        return f"'{rule.attribute}' is {value!r}, expected {rule.expected!r}"
    problem = _length_problem(value, rule.length)
    if problem:
        return f"'{rule.attribute}' {problem}"
    return None


def check_attribute_equals(rule: AttributeEqualsRule, dom: DomAccessor) -> Finding:
    targets = matches(rule, dom)
    if not targets:
        return no_match(rule)

    checked = targets if rule.match == "all" else targets[:1]
    for position, element in enumerate(checked):
        value = dom.attribute(element, rule.attribute)
        problem = _attribute_equals_problem(rule, value)
        if problem:
            return failed(
                rule,
                f"{_label(rule, position)} {problem}",
                actual=value,
                expected=rule.expected,
            )

    if rule.expected is None:
        detail = f"has a non-empty '{rule.attribute}'"
    else:
        detail = f"'{rule.attribute}' is {rule.expected!r}"
    scope = f"all {len(checked)} matches" if rule.match == "all" else where(rule)
    return passed(rule, f"{scope} {detail}", expected=rule.expected)


def check_attribute_contains(rule: AttributeContainsRule, dom: DomAccessor) -> Finding:
    targets = matches(rule, dom)
    if not targets:
        return no_match(rule)

    checked = targets if rule.match == "all" else targets[:1]
    for position, element in enumerate(checked):
        value = dom.attribute(element, rule.attribute)
        if value is None:
            return failed(
                rule,
                f"{_label(rule, position)} has no '{rule.attribute}' attribute",
                expected=rule.expected,
            )
        missing = [s for s in rule.expected if s not in value]
        if missing:
            return failed(
                rule,
                f"{_label(rule, position)} '{rule.attribute}' {value!r} "
                f"does not contain {', '.join(repr(s) for s in missing)}",
                actual=value,
                expected=rule.expected,
            )

    return passed(
        rule,
        f"{where(rule)} '{rule.attribute}' contains {', '.join(repr(s) for s in rule.expected)}",
        expected=rule.expected,
    )


def check_text_contains(rule: TextContainsRule, dom: DomAccessor) -> Finding:
    targets = matches(rule, dom)
    if not targets:
        return no_match(rule)

    checked = targets if rule.match == "all" else targets[:1]
    for position, element in enumerate(checked):
        text = dom.text(element)
        if rule.exact:
            if text != rule.expected[0]:
                return failed(
                    rule,
                    f"{_label(rule, position)} text is {text!r}, expected {rule.expected[0]!r}",
                    actual=text,
                    expected=rule.expected[0],
                )
        else:
            missing = [s for s in rule.expected if s not in text]
            if missing:
                return failed(
                    rule,
                    f"{_label(rule, position)} text does not contain "
                    f"{', '.join(repr(s) for s in missing)}",
                    actual=text,
                    expected=rule.expected,
                )
        problem = _length_problem(text, rule.length)
        if problem:
            return failed(
                rule,
                f"{_label(rule, position)} text {problem}",
                actual=text,
                expected=rule.length.describe() if rule.length else None,
            )

    if rule.expected:
        verb = "is" if rule.exact else "contains"
        detail = f"text {verb} {', '.join(repr(s) for s in rule.expected)}"
    else:
        detail = "text length is within bounds"
    return passed(rule, f"{where(rule)} {detail}", expected=rule.expected or None)


def check_source_excludes(rule: SourceExcludesRule, dom: DomAccessor) -> Finding:
    """Search the serialized document, markup and scripts included, for forbidden strings."""
    source = dom.source()
    if not rule.case_sensitive:
        source = source.lower()
    found = [
        s
        for s in rule.forbidden
        if (s if rule.case_sensitive else s.lower()) in source
    ]
    if found:
        listed = ", ".join(repr(s) for s in found)
        return failed(
            rule,
            f"page source contains forbidden text: {listed}",
            actual=found,
            expected=f"none of {list(rule.forbidden)}",
        )
    return passed(
        rule, f"page source contains none of {len(rule.forbidden)} forbidden string(s)"
    )
