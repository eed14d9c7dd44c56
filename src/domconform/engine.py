"""Evaluate a rule set against one DOM and build the run report."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from domconform.accessors.base import DomAccessor
from domconform.config import RuleSetConfig
from domconform.errors import AccessorUnavailableError, SessionLostError
from domconform.evaluators import evaluate_rule
from domconform.evaluators.base import skipped
from domconform.report import Finding, RunReport

FAIL_FAST_REASON = "upstream fail-fast"
RUN_TIMEOUT_REASON = "run timeout"
SESSION_LOST_REASON = "session lost"


@dataclass(frozen=True)
class EvaluationOptions:
    """Run policy.

    Attributes:
        fail_fast: Stop at the first error-severity failure and skip the rest.
        run_timeout: Whole-run budget in seconds. Rules not started before it
            runs out are skipped. Per-call budgets belong to the accessor.
        clock: Monotonic time source, injectable for tests.
    """

    fail_fast: bool = False
    run_timeout: float | None = None
    clock: Callable[[], float] = time.monotonic


def evaluate(
    ruleset: RuleSetConfig,
    dom: DomAccessor,
    options: EvaluationOptions | None = None,
    *,
    target: str = "",
    logger: logging.Logger | None = None,
) -> RunReport:
    """Evaluate every rule in declaration order and return the report.

    Rule failures never raise. If the accessor loses its session the run is
    aborted and SessionLostError is raised with the partial report attached.
    """
    options = options or EvaluationOptions()
    if logger is None:
        logger = logging.getLogger(__name__)

    started = options.clock()
    deadline = started + options.run_timeout if options.run_timeout is not None else None
    findings: list[Finding] = []
    stop_reason: str | None = None

    logger.info(
        f"Evaluating rule set '{ruleset.name}' ({len(ruleset.rules)} rules) "
        f"on {dom.describe()}"
    )

    for position, rule in enumerate(ruleset.rules):
        if stop_reason is None and deadline is not None and options.clock() >= deadline:
            stop_reason = RUN_TIMEOUT_REASON
            logger.warning(
                f"Run timeout after {options.run_timeout}s, skipping "
                f"{len(ruleset.rules) - position} remaining rule(s)"
            )
        if stop_reason is not None:
            findings.append(skipped(rule, stop_reason))
            continue

        try:
            finding = evaluate_rule(rule, dom, logger=logger)
        except AccessorUnavailableError as e:
            logger.error(f"Accessor lost while evaluating '{rule.id}': {e}")
            findings.extend(
                skipped(r, SESSION_LOST_REASON) for r in ruleset.rules[position:]
            )
            partial = RunReport(
                ruleset=ruleset.name,
                target=target,
                findings=tuple(findings),
                duration_seconds=options.clock() - started,
            )
            raise SessionLostError(str(e), partial_report=partial) from e

        findings.append(finding)
        if options.fail_fast and finding.is_blocking:
            stop_reason = FAIL_FAST_REASON
            logger.info(f"Fail-fast: stopping after '{rule.id}'")

    report = RunReport(
        ruleset=ruleset.name,
        target=target,
        findings=tuple(findings),
        duration_seconds=options.clock() - started,
    )
    logger.info(
        f"Rule set '{ruleset.name}' done: {report.summary.passed} passed, "
        f"{report.summary.failed} failed, {report.summary.skipped} skipped"
    )
    return report
