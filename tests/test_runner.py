import textwrap
import threading

import pytest
import yaml
from junitparser import JUnitXml

from domconform.config import load_config
from domconform.errors import AccessorUnavailableError, SessionLostError
from domconform.report import RunReport
from domconform.engine import evaluate
from domconform.runner import Runner

EN_PAGE = '<html lang="en"><body><h1>Hi</h1><ul><li>a</li><li>b</li></ul></body></html>'
FR_PAGE = '<html lang="fr"><body><h1>Salut</h1></body></html>'


@pytest.fixture
def conformance_config(tmp_path):
    """Two static targets (one English page, one French) and two rule sets."""
    (tmp_path / "en.html").write_text(EN_PAGE)
    (tmp_path / "fr.html").write_text(FR_PAGE)

    config_file = tmp_path / "conformance.yaml"
    config_file.write_text(textwrap.dedent("""\
        targets:
          english: {browser: static, url: en.html}
          french: {browser: static, url: fr.html}
        rulesets:
          - name: lang
            rules:
              - {id: html-lang, kind: attribute_equals, selector: html, attribute: lang, expected: en}
          - name: structure
            rules:
              - {id: one-h1, kind: count, selector: h1, exact: 1}
              - {id: headings, kind: heading_hierarchy}
    """))
    return load_config(config_file)


def test_runner_creates_run_directory(tmp_path, conformance_config):
    outcome = Runner(config=conformance_config, output_dir=tmp_path / "runs").execute()

    run_dir = outcome.run_dir
    assert run_dir.parent == tmp_path / "runs"
    assert (run_dir / "junit.xml").exists()
    assert (run_dir / "report.json").exists()
    assert (run_dir / "meta.yaml").exists()
    assert (run_dir / "debug.log").exists()
    assert (run_dir / "lang" / "english" / "debug.log").exists()
    assert (run_dir / "structure" / "french" / "debug.log").exists()


def test_runner_reports_in_config_order(tmp_path, conformance_config):
    outcome = Runner(
        config=conformance_config, output_dir=tmp_path / "runs", workers=4
    ).execute()

    assert [(r.ruleset, r.target) for r in outcome.reports] == [
        ("lang", "english"),
        ("lang", "french"),
        ("structure", "english"),
        ("structure", "french"),
    ]
    by_job = {(r.ruleset, r.target): r for r in outcome.reports}
    assert by_job[("lang", "english")].passed
    assert not by_job[("lang", "french")].passed
    assert by_job[("lang", "french")].findings[0].actual == "fr"
    assert by_job[("structure", "french")].passed
    assert not outcome.passed
    assert outcome.infra_errors == {}


def test_runner_writes_junit(tmp_path, conformance_config):
    outcome = Runner(config=conformance_config, output_dir=tmp_path / "runs").execute()

    xml = JUnitXml.fromfile(str(outcome.run_dir / "junit.xml"))
    suites = {s.name: s for s in xml}
    assert set(suites) == {
        "lang / english",
        "lang / french",
        "structure / english",
        "structure / french",
    }
    assert suites["lang / french"].failures == 1
    assert suites["lang / english"].failures == 0


def test_runner_writes_meta(tmp_path, conformance_config):
    outcome = Runner(
        config=conformance_config, output_dir=tmp_path / "runs", fail_fast=True
    ).execute()

    meta = yaml.safe_load((outcome.run_dir / "meta.yaml").read_text())
    assert meta["run_id"] == outcome.run_dir.name
    assert meta["rulesets"] == ["lang", "structure"]
    assert meta["targets"]["english"] == {"browser": "static", "viewport": "1280x720"}
    assert meta["fail_fast"] is True
    assert meta["passed"] is False
    assert "domconform_version" in meta
    assert "interrupted" not in meta


def test_runner_filters(tmp_path, conformance_config):
    outcome = Runner(
        config=conformance_config,
        output_dir=tmp_path / "runs",
        ruleset_filter="lang",
        target_filter="english",
    ).execute()

    assert [(r.ruleset, r.target) for r in outcome.reports] == [("lang", "english")]
    assert outcome.passed


def test_runner_unknown_filter(tmp_path, conformance_config):
    runner = Runner(
        config=conformance_config, output_dir=tmp_path / "runs", ruleset_filter="nope"
    )
    with pytest.raises(ValueError, match="No rule set named 'nope'"):
        runner.execute()


def test_runner_settings_defaults(tmp_path, conformance_config):
    settings = conformance_config.settings.model_copy(
        update={"fail_fast": True, "run_timeout_ms": 2500, "workers": 3}
    )
    config = conformance_config.model_copy(update={"settings": settings})

    runner = Runner(config=config, output_dir=tmp_path)
    assert runner.fail_fast is True
    assert runner.run_timeout == 2.5
    assert runner.workers == 3

    overridden = Runner(
        config=config, output_dir=tmp_path, fail_fast=False, run_timeout=1.0, workers=1
    )
    assert overridden.fail_fast is False
    assert overridden.run_timeout == 1.0
    assert overridden.workers == 1


def test_missing_page_is_an_infra_error(tmp_path, conformance_config):
    (tmp_path / "fr.html").unlink()

    outcome = Runner(
        config=conformance_config, output_dir=tmp_path / "runs", ruleset_filter="lang"
    ).execute()

    assert list(outcome.infra_errors) == ["lang / french"]
    assert "Page not found" in outcome.infra_errors["lang / french"]
    assert [r.target for r in outcome.reports] == ["english"]
    assert not outcome.passed


def test_static_target_needs_local_file(tmp_path, conformance_config):
    targets = {"remote": conformance_config.targets["english"].model_copy(
        update={"url": "https://example.test/"}
    )}
    config = conformance_config.model_copy(update={"targets": targets})

    outcome = Runner(config=config, output_dir=tmp_path / "runs", ruleset_filter="lang").execute()

    assert "local files only" in outcome.infra_errors["lang / remote"]


def test_session_lost_keeps_partial_report(tmp_path, conformance_config, mocker):
    partial = RunReport(ruleset="lang", target="english", findings=())

    def lost(ruleset, dom, options, *, target, logger):
        if target == "english":
            raise SessionLostError("browser closed", partial_report=partial)
        raise AccessorUnavailableError("never reached")

    mocker.patch("domconform.runner.evaluate", side_effect=lost)
    outcome = Runner(
        config=conformance_config, output_dir=tmp_path / "runs", ruleset_filter="lang"
    ).execute()

    assert outcome.infra_errors["lang / english"] == "session lost: browser closed"
    assert outcome.infra_errors["lang / french"] == "never reached"
    assert outcome.reports == [partial]


def test_runner_prints_progress(tmp_path, conformance_config, capsys):
    Runner(
        config=conformance_config, output_dir=tmp_path / "runs", ruleset_filter="lang"
    ).execute()

    out = capsys.readouterr().out
    assert "Running 2 job(s) with 1 worker(s)..." in out
    assert "PASS  lang / english" in out
    assert "FAIL  lang / french" in out


def test_parallel_jobs_with_look_alike_names(tmp_path, mocker):
    """'a_b' x 'c' and 'a' x 'b_c' run side by side with separate loggers."""
    (tmp_path / "en.html").write_text(EN_PAGE)
    config_file = tmp_path / "conformance.yaml"
    config_file.write_text(textwrap.dedent("""\
        targets:
          c: {browser: static, url: en.html}
          b_c: {browser: static, url: en.html}
        rulesets:
          - name: a_b
            rules:
              - {id: h1, kind: exists, selector: h1}
          - name: a
            rules:
              - {id: h1, kind: exists, selector: h1}
    """))
    config = load_config(config_file)

    # hold both look-alike jobs inside evaluate at the same time
    together = threading.Barrier(2, timeout=10)

    def side_by_side(ruleset, dom, options, *, target, logger):
        if (ruleset.name, target) in {("a_b", "c"), ("a", "b_c")}:
            together.wait()
        return evaluate(ruleset, dom, options, target=target, logger=logger)

    mocker.patch("domconform.runner.evaluate", side_effect=side_by_side)
    outcome = Runner(config=config, output_dir=tmp_path / "runs", workers=4).execute()

    assert outcome.infra_errors == {}
    assert len(outcome.reports) == 4
    assert outcome.passed
    assert (outcome.run_dir / "a_b" / "c" / "debug.log").exists()
    assert (outcome.run_dir / "a" / "b_c" / "debug.log").exists()


def test_unexpected_job_error_is_an_infra_error(tmp_path, conformance_config, mocker):
    def crash(ruleset, dom, options, *, target, logger):
        if target == "french":
            raise RuntimeError("boom")
        return evaluate(ruleset, dom, options, target=target, logger=logger)

    mocker.patch("domconform.runner.evaluate", side_effect=crash)
    outcome = Runner(
        config=conformance_config, output_dir=tmp_path / "runs", ruleset_filter="lang"
    ).execute()

    assert outcome.infra_errors == {"lang / french": "RuntimeError: boom"}
    assert [r.target for r in outcome.reports] == ["english"]
    assert (outcome.run_dir / "report.json").exists()
    assert (outcome.run_dir / "meta.yaml").exists()
