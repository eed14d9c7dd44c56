from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import yaml

from domconform.accessors import open_accessor
from domconform.config import ConformanceConfig, RuleSetConfig, TargetConfig
from domconform.engine import EvaluationOptions, evaluate
from domconform.errors import AccessorUnavailableError, SessionLostError
from domconform.report import RunReport
from domconform.verbose import close_logger, setup_logger


@dataclass
class RunOutcome:
    """Everything a run produced.

    ``infra_errors`` maps a job label (``"<ruleset> / <target>"``) to the
    reason the job could not finish. Those jobs are infrastructure failures,
    not conformance failures.
    """

    run_dir: Path
    reports: list[RunReport] = field(default_factory=list)
    infra_errors: dict[str, str] = field(default_factory=dict)
    interrupted: bool = False

    @property
    def passed(self) -> bool:
        return (
            not self.infra_errors
            and not self.interrupted
            and all(r.passed for r in self.reports)
        )


class Runner:
    """Evaluates every rule set against every target."""

    def __init__(
        self,
        config: ConformanceConfig,
        output_dir: Path,
        ruleset_filter: str | None = None,
        target_filter: str | None = None,
        verbose: bool = False,
        workers: int | None = None,
        fail_fast: bool | None = None,
        run_timeout: float | None = None,
    ):
        settings = config.settings
        self.config = config
        self.output_dir = output_dir
        self.ruleset_filter = ruleset_filter
        self.target_filter = target_filter
        self.verbose = verbose
        self.workers = workers or settings.workers
        self.fail_fast = settings.fail_fast if fail_fast is None else fail_fast
        if run_timeout is None and settings.run_timeout_ms is not None:
            run_timeout = settings.run_timeout_ms / 1000
        self.run_timeout = run_timeout
        self.interrupted = False

    def _select(self) -> tuple[list[RuleSetConfig], dict[str, TargetConfig]]:
        rulesets = self.config.rulesets
        if self.ruleset_filter:
            rulesets = [rs for rs in rulesets if rs.name == self.ruleset_filter]
            if not rulesets:
                raise ValueError(f"No rule set named '{self.ruleset_filter}'")

        targets = self.config.targets
        if self.target_filter:
            targets = {k: v for k, v in targets.items() if k == self.target_filter}
            if not targets:
                raise ValueError(f"No target named '{self.target_filter}'")
        return rulesets, targets

    def execute(self) -> RunOutcome:
        """Run all jobs and write the results. Returns the outcome."""
        rulesets, targets = self._select()

        run_id = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H%M%S")
        run_dir = self.output_dir / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        # Main logger for high-level messages only
        logger = setup_logger(
            run_dir / "debug.log", verbose=self.verbose, logger_name="domconform_main"
        )
        outcome = RunOutcome(run_dir=run_dir)
        try:
            self._run_jobs(rulesets, targets, run_dir, outcome, logger)
            outcome.interrupted = self.interrupted
            # report order follows the config, not completion order
            jobs = [(rs.name, t) for rs in rulesets for t in targets]
            order = {job: i for i, job in enumerate(jobs)}
            outcome.reports.sort(key=lambda r: order.get((r.ruleset, r.target), 0))
            self._write_results(run_dir, outcome, rulesets, targets)
        finally:
            close_logger(logger)
        return outcome

    def _run_jobs(
        self,
        rulesets: list[RuleSetConfig],
        targets: dict[str, TargetConfig],
        run_dir: Path,
        outcome: RunOutcome,
        logger: logging.Logger,
    ) -> None:
        total = len(rulesets) * len(targets)
        print(f"Running {total} job(s) with {self.workers} worker(s)...")
        logger.debug(f"Starting conformance run: {total} job(s)")

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            future_to_job = {}
            jobs = [(rs, name, t) for rs in rulesets for name, t in targets.items()]
            for job_index, (ruleset, target_name, target) in enumerate(jobs):
                future = executor.submit(
                    self._run_job,
                    ruleset=ruleset,
                    target_name=target_name,
                    target=target,
                    run_dir=run_dir,
                    job_index=job_index,
                )
                future_to_job[future] = f"{ruleset.name} / {target_name}"

            completed = 0
            try:
                for future in as_completed(future_to_job):
                    label = future_to_job[future]
                    completed += 1
                    prefix = f"  [{completed}/{total}]"
                    try:
                        report = future.result()
                    except SessionLostError as e:
                        outcome.infra_errors[label] = f"session lost: {e}"
                        if e.partial_report is not None:
                            outcome.reports.append(e.partial_report)
                        print(f"{prefix} ERROR  {label}: session lost: {e}")
                        logger.error(f"Job '{label}' lost its session: {e}")
                        continue
                    except AccessorUnavailableError as e:
                        outcome.infra_errors[label] = str(e)
                        print(f"{prefix} ERROR  {label}: {e}")
                        logger.error(f"Job '{label}' could not open the page: {e}")
                        continue
                    except Exception as e:
                        outcome.infra_errors[label] = f"{type(e).__name__}: {e}"
                        print(f"{prefix} ERROR  {label}: {e}")
                        logger.exception(f"Job '{label}' crashed: {e}")
                        continue

                    outcome.reports.append(report)
                    s = report.summary
                    status = "PASS" if report.passed else "FAIL"
                    print(
                        f"{prefix} {status}  {label} ({s.passed}/{s.total} rules passed, "
                        f"{s.skipped} skipped, {report.duration_seconds:.1f}s)"
                    )
            except KeyboardInterrupt:
                self.interrupted = True
                logger.warning(
                    "Run interrupted by user (Ctrl+C). Cancelling pending jobs and saving partial results..."
                )
                # this only cancels jobs not yet started
                cancelled = sum(1 for f in future_to_job if f.cancel())
                logger.info(
                    f"Cancelled {cancelled} pending job(s). Running jobs will complete naturally."
                )
                collected = {(r.ruleset, r.target) for r in outcome.reports}
                for future, label in future_to_job.items():
                    if not future.done() or future.cancelled():
                        continue
                    try:
                        report = future.result(timeout=0)
                    except Exception as e:
                        logger.debug(f"Failed to collect result for {label}: {e}")
                        continue
                    if (report.ruleset, report.target) not in collected:
                        outcome.reports.append(report)

    def _run_job(
        self,
        ruleset: RuleSetConfig,
        target_name: str,
        target: TargetConfig,
        run_dir: Path,
        job_index: int = 0,
    ) -> RunReport:
        """Evaluate one rule set against one target."""
        url = self.config.url_for(target, ruleset)

        # the job index keeps names unique even when "_" joins two names ambiguously
        job_logger = setup_logger(
            debug_file=run_dir / ruleset.name / target_name / "debug.log",
            verbose=self.verbose,
            logger_name=f"domconform_job{job_index}_{ruleset.name}_{target_name}",
        )
        try:
            job_logger.debug(
                f"Job '{ruleset.name} / {target_name}': {target.browser} "
                f"{target.viewport} at {url}"
            )
            options = EvaluationOptions(
                fail_fast=self.fail_fast, run_timeout=self.run_timeout
            )
            with open_accessor(target, url, self.config.settings, logger=job_logger) as dom:
                return evaluate(
                    ruleset, dom, options, target=target_name, logger=job_logger
                )
        finally:
            close_logger(job_logger)

    def _write_results(
        self,
        run_dir: Path,
        outcome: RunOutcome,
        rulesets: list[RuleSetConfig],
        targets: dict[str, TargetConfig],
    ) -> None:
        """Write junit.xml, report.json and meta.yaml to the run directory."""
        from domconform.reporting.junit import write_json, write_junit

        write_junit(run_dir, outcome.reports)
        write_json(run_dir, outcome.reports, outcome.infra_errors)

        try:
            import importlib.metadata

            version = importlib.metadata.version("domconform")
        except Exception:
            version = "unknown"

        meta: dict[str, Any] = {
            "run_id": run_dir.name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "rulesets": [rs.name for rs in rulesets],
            "targets": {
                name: {"browser": t.browser, "viewport": t.viewport}
                for name, t in targets.items()
            },
            "base_url": self.config.settings.base_url,
            "fail_fast": self.fail_fast,
            "run_timeout_seconds": self.run_timeout,
            "domconform_version": version,
            "passed": outcome.passed,
        }
        if outcome.infra_errors:
            meta["infra_errors"] = dict(outcome.infra_errors)
        if self.interrupted:
            meta["interrupted"] = True

        (run_dir / "meta.yaml").write_text(yaml.dump(meta, default_flow_style=False))
