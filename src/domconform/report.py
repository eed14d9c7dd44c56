"""Findings, summaries and run reports."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class Status(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIPPED = "skipped"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Finding:
    """Outcome of evaluating one rule.

    Attributes:
        rule_id: Identifier of the rule that produced this finding.
        status: pass, fail or skipped.
        severity: Copied from the rule. Warning failures are reported but do
            not fail the run.
        message: Human-readable explanation. For skipped findings this is the
            skip reason.
        actual: Observed value(s), when there is something to show.
        expected: Expected value(s), when there is something to show.
    """

    rule_id: str
    status: Status
    severity: Severity = Severity.ERROR
    message: str = ""
    actual: Any = None
    expected: Any = None

    @property
    def is_blocking(self) -> bool:
        return self.status is Status.FAIL and self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "status": self.status.value,
            "severity": self.severity.value,
            "message": self.message,
            "actual": self.actual,
            "expected": self.expected,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Finding:
        return cls(
            rule_id=data["rule_id"],
            status=Status(data["status"]),
            severity=Severity(data.get("severity", "error")),
            message=data.get("message", ""),
            actual=data.get("actual"),
            expected=data.get("expected"),
        )


@dataclass(frozen=True)
class Summary:
    """Finding counts by severity and status."""

    counts: dict[str, dict[str, int]]
    total: int

    def count(self, status: Status, severity: Severity | None = None) -> int:
        if severity is not None:
            return self.counts[severity.value][status.value]
        return sum(by_status[status.value] for by_status in self.counts.values())

    @property
    def passed(self) -> int:
        return self.count(Status.PASS)

    @property
    def failed(self) -> int:
        return self.count(Status.FAIL)

    @property
    def skipped(self) -> int:
        return self.count(Status.SKIPPED)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "by_severity": {sev: dict(by) for sev, by in self.counts.items()},
        }


def summarize(findings: Iterable[Finding]) -> Summary:
    """Count findings by (severity, status)."""
    counts = {sev.value: {st.value: 0 for st in Status} for sev in Severity}
    total = 0
    for finding in findings:
        counts[finding.severity.value][finding.status.value] += 1
        total += 1
    return Summary(counts=counts, total=total)


@dataclass(frozen=True)
class RunReport:
    """All findings for one rule set evaluated against one DOM snapshot.

    ``summary`` and ``passed`` are computed once, at construction.
    """

    ruleset: str
    target: str
    findings: tuple[Finding, ...]
    duration_seconds: float = field(default=0.0, compare=False)
    summary: Summary = field(init=False)
    passed: bool = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "findings", tuple(self.findings))
        object.__setattr__(self, "summary", summarize(self.findings))
        object.__setattr__(
            self, "passed", not any(f.is_blocking for f in self.findings)
        )

    @property
    def label(self) -> str:
        return f"{self.ruleset} / {self.target}" if self.target else self.ruleset

    def failures(self) -> list[Finding]:
        return [f for f in self.findings if f.status is Status.FAIL]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ruleset": self.ruleset,
            "target": self.target,
            "passed": self.passed,
            "duration_seconds": round(self.duration_seconds, 4),
            "summary": self.summary.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, default=str)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunReport:
        return cls(
            ruleset=data["ruleset"],
            target=data.get("target", ""),
            findings=tuple(Finding.from_dict(f) for f in data.get("findings", [])),
            duration_seconds=float(data.get("duration_seconds") or 0.0),
        )

    def render_text(self, max_failures: int = 10) -> str:
        """Human-readable summary: counts plus the first failure messages."""
        s = self.summary
        status = "PASS" if self.passed else "FAIL"
        lines = [
            f"{status}  {self.label}: {s.passed} passed, {s.failed} failed, "
            f"{s.skipped} skipped ({s.total} rules)"
        ]
        failures = self.failures()
        for finding in failures[:max_failures]:
            tag = "" if finding.severity is Severity.ERROR else " (warning)"
            lines.append(f"  - {finding.rule_id}{tag}: {finding.message}")
        if len(failures) > max_failures:
            lines.append(f"  ... {len(failures) - max_failures} more failure(s)")
        return "\n".join(lines)
