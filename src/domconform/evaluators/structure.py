"""Presence, counting and ordering checks."""

from __future__ import annotations

from domconform.accessors.base import DomAccessor, ElementHandle
from domconform.config import (
    CountRule,
    DoctypeRule,
    ExistsRule,
    HeadingHierarchyRule,
    OrderedSequenceRule,
)
from domconform.evaluators.base import failed, match_count, matches, passed, where
from domconform.report import Finding


def check_exists(rule: ExistsRule, dom: DomAccessor) -> Finding:
    n = match_count(rule, dom)
    if n >= rule.min:
        return passed(rule, f"{where(rule)} matched {n} element(s)", actual=n)
    return failed(
        rule,
        f"{where(rule)} matched {n} element(s), expected at least {rule.min}",
        actual=n,
        expected=rule.min,
    )


def check_count(rule: CountRule, dom: DomAccessor) -> Finding:
    bound = rule.bound
    n = match_count(rule, dom)
    if bound.check(n):
        return passed(rule, f"{where(rule)} matched {n} element(s)", actual=n)
    return failed(
        rule,
        f"{where(rule)} matched {n} element(s), expected {bound.describe()}",
        actual=n,
        expected=bound.describe(),
    )


def _sequence_value(
    rule: OrderedSequenceRule, dom: DomAccessor, element: ElementHandle
) -> str | None:
    if rule.item is not None:
        inner = dom.query(rule.item, element)
        if not inner:
            return None
        element = inner[0]
    if rule.attribute is not None:
        return dom.attribute(element, rule.attribute)
    return dom.text(element)


def check_ordered_sequence(rule: OrderedSequenceRule, dom: DomAccessor) -> Finding:
    """Zip matches in document order against the expected substrings.

    Stops at the first mismatch. Running out of matches is a mismatch at the
    first missing position; extra matches beyond the expected list are ignored.
    """
    items = matches(rule, dom)
    what = f"'{rule.attribute}'" if rule.attribute else "text"

    for i, want in enumerate(rule.expected):
        if i >= len(items):
            return failed(
                rule,
                f"{where(rule)} sequence mismatch at index {i}: expected {want!r}, "
                f"but only {len(items)} element(s) matched",
                actual=None,
                expected=want,
            )
        got = _sequence_value(rule, dom, items[i])
        if got is None or want not in got:
            return failed(
                rule,
                f"{where(rule)} sequence mismatch at index {i}: "
                f"expected {what} containing {want!r}, actual {got!r}",
                actual=got,
                expected=want,
            )

    return passed(
        rule,
        f"{where(rule)} {what} follows the expected order ({len(rule.expected)} items)",
        expected=list(rule.expected),
    )


def heading_level(tag_name: str) -> int | None:
    tag = tag_name.upper()
    if len(tag) == 2 and tag[0] == "H" and tag[1] in "123456":
        return int(tag[1])
    return None


def first_level_skip(levels: list[int]) -> int | None:
    """Index of the first heading that goes more than one level deeper than its predecessor.

    Going back up by any number of levels is allowed.
    """
    for i in range(1, len(levels)):
        if levels[i] - levels[i - 1] > 1:
            return i
    return None


def check_heading_hierarchy(rule: HeadingHierarchyRule, dom: DomAccessor) -> Finding:
    levels = []
    for element in matches(rule, dom):
        level = heading_level(dom.tag_name(element))
        if level is not None:
            levels.append(level)

    if not levels:
        return failed(rule, f"{where(rule)} matched no headings", actual=[])

    skip = first_level_skip(levels)
    if skip is not None:
        prev, cur = levels[skip - 1], levels[skip]
        return failed(
            rule,
            f"heading level skipped at position {skip}: h{prev} is followed by h{cur}",
            actual=levels,
            expected="no increase of more than one level",
        )
    return passed(rule, f"{len(levels)} heading(s) in order", actual=levels)


def check_doctype(rule: DoctypeRule, dom: DomAccessor) -> Finding:
    name = dom.doctype()
    want = f"<!DOCTYPE {rule.expected}>"
    if name is None:
        return failed(rule, "document has no doctype", actual=None, expected=want)
    got = f"<!DOCTYPE {name}>"
    if name != rule.expected:
        return failed(rule, f"doctype is {got}, expected {want}", actual=got, expected=want)
    return passed(rule, f"doctype is {got}", actual=got)
