"""ARIA reference, accessible name and element state checks."""

from __future__ import annotations

from domconform.accessors.base import DomAccessor, ElementHandle
from domconform.config import (
    AccessibleNameRule,
    AriaCrossReferenceRule,
    ElementStateRule,
)
from domconform.evaluators.base import (
    css_string,
    failed,
    matches,
    no_match,
    passed,
    skipped,
    where,
)
from domconform.report import Finding


def check_aria_cross_reference(
    rule: AriaCrossReferenceRule, dom: DomAccessor
) -> Finding:
    """Every id listed in the reference attribute must exist in the document.

    The attribute may hold several space-separated ids. A duplicated id still
    resolves (the first element wins) and is not reported.
    """
    elements = matches(rule, dom)
    if not elements:
        return skipped(rule, f"no elements match {where(rule)}")

    resolved = 0
    for position, element in enumerate(elements):
        ref = dom.attribute(element, rule.attribute) or ""
        ids = ref.split()
        if not ids:
            return failed(
                rule,
                f"element {position} of {where(rule)} has an empty '{rule.attribute}'",
                actual=ref,
            )
        for ref_id in ids:
            if dom.count(f"[id={css_string(ref_id)}]") == 0:
                return failed(
                    rule,
                    f"'{rule.attribute}' references missing id {ref_id!r}",
                    actual=ref,
                    expected=ref_id,
                )
            resolved += 1

    return passed(rule, f"{resolved} '{rule.attribute}' reference(s) resolved", actual=resolved)


def _has_accessible_name(
    rule: AccessibleNameRule, dom: DomAccessor, element: ElementHandle
) -> bool:
    if rule.use_text and dom.text(element):
        return True
    for attr in rule.attributes:
        value = dom.attribute(element, attr)
        if value is not None and (rule.allow_empty or value.strip()):
            return True
    if rule.label_for:
        element_id = dom.attribute(element, "id")
        if element_id and dom.count(f"label[for={css_string(element_id)}]") > 0:
            return True
    return False


def check_accessible_name(rule: AccessibleNameRule, dom: DomAccessor) -> Finding:
    elements = matches(rule, dom)
    if not elements:
        return no_match(rule)

    for position, element in enumerate(elements):
        if not _has_accessible_name(rule, dom, element):
            sources = list(rule.attributes)
            if rule.use_text:
                sources.insert(0, "text")
            if rule.label_for:
                sources.append("label[for]")
            return failed(
                rule,
                f"element {position} of {where(rule)} "
                f"(<{dom.tag_name(element).lower()}>) has no accessible name "
                f"from {', '.join(sources)}",
                actual=position,
            )

    return passed(rule, f"all {len(elements)} element(s) have an accessible name")


_STATES = {
    "visible": lambda dom, el: dom.is_visible(el),
    "hidden": lambda dom, el: not dom.is_visible(el),
    "in_viewport": lambda dom, el: dom.is_in_viewport(el),
    "focused": lambda dom, el: dom.is_focused(el),
}


def check_element_state(rule: ElementStateRule, dom: DomAccessor) -> Finding:
    targets = matches(rule, dom)
    if not targets:
        if rule.state == "hidden":
            return passed(rule, f"{where(rule)} is not in the document")
        return no_match(rule)

    state_check = _STATES[rule.state]
    checked = targets if rule.match == "all" else targets[:1]
    for position, element in enumerate(checked):
        if not state_check(dom, element):
            label = where(rule)
            if rule.match == "all":
                label += f" (match {position})"
            return failed(
                rule,
                f"{label} is not {rule.state.replace('_', ' ')}",
                expected=rule.state,
            )
    return passed(rule, f"{where(rule)} is {rule.state.replace('_', ' ')}")
