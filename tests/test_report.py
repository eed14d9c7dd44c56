"""Tests for findings, summaries and run reports."""

import json

from domconform.report import Finding, RunReport, Severity, Status, summarize


def _report(*findings, ruleset="landing", target="static"):
    return RunReport(ruleset=ruleset, target=target, findings=findings, duration_seconds=1.5)


PASS = Finding("a", Status.PASS, message="ok")
FAIL = Finding("b", Status.FAIL, message="lang is 'fr', expected 'en'", actual="fr", expected="en")
WARN = Finding("c", Status.FAIL, Severity.WARNING, message="title is long")
SKIP = Finding("d", Status.SKIPPED, message="upstream fail-fast")


def test_summarize_by_severity_and_status():
    summary = summarize([PASS, FAIL, WARN, SKIP])

    assert summary.total == 4
    assert summary.passed == 1
    assert summary.failed == 2
    assert summary.skipped == 1
    assert summary.count(Status.FAIL, Severity.WARNING) == 1
    assert summary.count(Status.FAIL, Severity.ERROR) == 1


def test_report_passed_ignores_warnings_and_skips():
    assert _report(PASS, WARN, SKIP).passed
    assert not _report(PASS, FAIL).passed
    assert _report().passed


def test_report_findings_stored_as_tuple():
    report = RunReport(ruleset="r", target="t", findings=[PASS])
    assert report.findings == (PASS,)


def test_report_equality_ignores_duration():
    a = RunReport(ruleset="r", target="t", findings=(PASS,), duration_seconds=0.1)
    b = RunReport(ruleset="r", target="t", findings=(PASS,), duration_seconds=9.9)
    assert a == b


def test_to_dict_and_back():
    report = _report(PASS, FAIL, WARN, SKIP)
    data = json.loads(report.to_json())

    assert data["passed"] is False
    assert data["summary"]["failed"] == 2
    assert data["summary"]["by_severity"]["warning"]["fail"] == 1
    assert data["findings"][1] == {
        "rule_id": "b",
        "status": "fail",
        "severity": "error",
        "message": "lang is 'fr', expected 'en'",
        "actual": "fr",
        "expected": "en",
    }
    assert RunReport.from_dict(data) == report


def test_render_text():
    text = _report(PASS, FAIL, WARN, SKIP).render_text()
    lines = text.splitlines()

    assert lines[0] == "FAIL  landing / static: 1 passed, 2 failed, 1 skipped (4 rules)"
    assert lines[1] == "  - b: lang is 'fr', expected 'en'"
    assert lines[2] == "  - c (warning): title is long"
    assert len(lines) == 3


def test_render_text_truncates_failures():
    failures = [Finding(f"f{i}", Status.FAIL, message="bad") for i in range(4)]
    text = _report(*failures).render_text(max_failures=1)

    assert "  - f0: bad" in text
    assert "  - f1: bad" not in text
    assert text.endswith("  ... 3 more failure(s)")


def test_render_text_pass_without_target():
    text = RunReport(ruleset="solo", target="", findings=(PASS,)).render_text()
    assert text == "PASS  solo: 1 passed, 0 failed, 0 skipped (1 rules)"
