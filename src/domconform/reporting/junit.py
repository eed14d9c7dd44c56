from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from junitparser import Failure, JUnitXml, Skipped, TestCase, TestSuite

from domconform.report import RunReport, Severity, Status


def _case_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def build_suite(report: RunReport) -> TestSuite:
    """One test suite per report, one test case per finding."""
    suite = TestSuite(report.label)
    suite.add_property("ruleset", report.ruleset)
    if report.target:
        suite.add_property("target", report.target)
    s = report.summary
    suite.add_property("rules_passed", str(s.passed))
    suite.add_property("errors", str(s.count(Status.FAIL, Severity.ERROR)))
    suite.add_property("warnings", str(s.count(Status.FAIL, Severity.WARNING)))
    suite.add_property("rules_skipped", str(s.skipped))
    suite.add_property("passed", str(report.passed).lower())

    for finding in report.findings:
        case = TestCase(finding.rule_id)
        case.classname = report.ruleset
        if finding.status is Status.SKIPPED:
            case.result = Skipped(finding.message)
        elif finding.status is Status.FAIL:
            if finding.severity is Severity.ERROR:
                failure = Failure(finding.message)
                failure.text = (
                    f"expected: {_case_text(finding.expected)}\n"
                    f"actual: {_case_text(finding.actual)}"
                )
                case.result = failure
            else:
                # warnings are reported but never fail the suite
                case.system_out = f"warning: {finding.message}"
        suite.add_testcase(case)

    # Set time after add_testcase (add_testcase resets it via update_statistics)
    suite.time = round(report.duration_seconds, 4)
    return suite


def write_junit(run_dir: Path, reports: Iterable[RunReport]) -> Path:
    """Write junit.xml for all reports, return path."""
    xml = JUnitXml()
    for report in reports:
        # Use append (not +=) to preserve properties and time
        xml.append(build_suite(report))

    junit_path = run_dir / "junit.xml"
    xml.write(str(junit_path), pretty=True)
    return junit_path


def write_json(
    run_dir: Path,
    reports: Iterable[RunReport],
    infra_errors: dict[str, str] | None = None,
) -> Path:
    """Write report.json holding every run report and job error, return path."""
    payload = {
        "reports": [r.to_dict() for r in reports],
        "infra_errors": dict(infra_errors or {}),
    }
    json_path = run_dir / "report.json"
    json_path.write_text(json.dumps(payload, indent=2, default=str) + "\n")
    return json_path


def load_reports(run_dir: Path) -> list[RunReport]:
    """Read the run reports back from a run directory's report.json."""
    json_path = run_dir / "report.json"
    data = json.loads(json_path.read_text())
    return [RunReport.from_dict(r) for r in data.get("reports", [])]


def load_infra_errors(run_dir: Path) -> dict[str, str]:
    """Read the per-job infrastructure errors recorded in report.json."""
    data = json.loads((run_dir / "report.json").read_text())
    return dict(data.get("infra_errors", {}))
