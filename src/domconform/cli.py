from __future__ import annotations

import shutil
from pathlib import Path

import typer

app = typer.Typer(name="domconform", help="Check web pages against declarative DOM rules")
schema_app = typer.Typer(name="schema", help="Generate schema tooling")
app.add_typer(schema_app, name="schema")

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_DEFINITION_ERROR = 2
EXIT_INFRA_ERROR = 3

EXAMPLE_CONFIG = "landing-page.yaml"
EXAMPLE_FIXTURE = "fixtures/landing-page.html"


def _load(config: str):
    from domconform.config import load_config
    from domconform.errors import RuleDefinitionError

    config_path = Path(config)
    if not config_path.exists():
        typer.echo(f"Error: config file not found: {config}", err=True)
        raise typer.Exit(EXIT_DEFINITION_ERROR)
    try:
        return load_config(config_path)
    except RuleDefinitionError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_DEFINITION_ERROR)


def _adhoc_targets(
    conformance_config, target: str | None, browser: str | None, viewport: str | None
):
    """Replace the configured targets with a single one built from CLI flags."""
    from pydantic import ValidationError

    from domconform.config import TargetConfig, is_local

    fields: dict[str, str] = {}
    if browser is not None:
        fields["browser"] = browser
    if viewport is not None:
        fields["viewport"] = viewport
    if target is not None:
        fields["url"] = str(Path(target).resolve()) if is_local(target) else target
    try:
        adhoc = TargetConfig(**fields)
    except ValidationError as e:
        typer.echo(f"Error: invalid target options:\n{e}", err=True)
        raise typer.Exit(EXIT_DEFINITION_ERROR)
    return conformance_config.model_copy(update={"targets": {adhoc.browser: adhoc}})


@app.command()
def run(
    config: str = typer.Argument(help="Path to conformance YAML config"),
    target: str | None = typer.Option(
        None, "--target", help="URL or file to check instead of the configured targets"
    ),
    browser: str | None = typer.Option(
        None, "--browser", help="chromium, firefox, webkit or static"
    ),
    viewport: str | None = typer.Option(None, "--viewport", help="Viewport as WxH"),
    fail_fast: bool = typer.Option(
        False, "--fail-fast", help="Stop each job at its first error-severity failure"
    ),
    timeout: int | None = typer.Option(
        None, "--timeout", min=1, help="Whole-run timeout per job in milliseconds"
    ),
    ruleset: str | None = typer.Option(None, help="Run only this rule set"),
    output_dir: str = typer.Option("runs", help="Output directory for run results"),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output to terminal"
    ),
    parallel: int | None = typer.Option(
        None, "--parallel", "-p", min=1, max=64, help="Number of jobs to run at once"
    ),
    max_failures: int = typer.Option(
        10, "--max-failures", min=0, help="Failure messages to show per report"
    ),
):
    """Evaluate rule sets against the configured targets."""
    from domconform.runner import Runner

    conformance_config = _load(config)
    if target is not None or browser is not None or viewport is not None:
        conformance_config = _adhoc_targets(conformance_config, target, browser, viewport)

    runner = Runner(
        config=conformance_config,
        output_dir=Path(output_dir),
        ruleset_filter=ruleset,
        verbose=verbose,
        workers=parallel,
        fail_fast=True if fail_fast else None,
        run_timeout=timeout / 1000 if timeout is not None else None,
    )

    try:
        outcome = runner.execute()
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(EXIT_DEFINITION_ERROR)

    typer.echo("")
    for report in outcome.reports:
        typer.echo(report.render_text(max_failures=max_failures))
    for label, error in outcome.infra_errors.items():
        typer.echo(f"ERROR {label}: {error}", err=True)

    if outcome.interrupted:
        typer.echo(f"Partial run saved: {outcome.run_dir}")
    else:
        typer.echo(f"Run complete: {outcome.run_dir}")
    if not verbose:
        typer.echo(f"Debug log: {outcome.run_dir / 'debug.log'}")

    if outcome.infra_errors:
        raise typer.Exit(EXIT_INFRA_ERROR)
    if not outcome.passed:
        raise typer.Exit(EXIT_FAILED)


@app.command()
def validate(config: str = typer.Argument(help="Path to conformance YAML config")):
    """Check that a config loads, without running anything."""
    conformance_config = _load(config)
    total = sum(len(rs.rules) for rs in conformance_config.rulesets)
    typer.echo(
        f"Config OK: {len(conformance_config.rulesets)} rule set(s), {total} rule(s), "
        f"{len(conformance_config.targets)} target(s)"
    )
    for rs in conformance_config.rulesets:
        typer.echo(f"  {rs.name} ({rs.path}): {len(rs.rules)} rule(s)")


@app.command()
def report(
    run_dir: str = typer.Argument(help="Path to run output directory"),
    max_failures: int = typer.Option(
        10, "--max-failures", min=0, help="Failure messages to show per report"
    ),
):
    """Print the summary of a previous run."""
    from domconform.reporting.junit import load_infra_errors, load_reports

    run_path = Path(run_dir)
    if not (run_path / "report.json").exists():
        typer.echo(f"Error: not a valid run directory: {run_dir}", err=True)
        raise typer.Exit(EXIT_FAILED)

    for run_report in load_reports(run_path):
        typer.echo(run_report.render_text(max_failures=max_failures))
    for label, error in load_infra_errors(run_path).items():
        typer.echo(f"ERROR {label}: {error}")


def _examples_source() -> Path | None:
    # Installed package: examples are bundled next to cli.py
    pkg = Path(__file__).parent / "examples"
    if pkg.exists():
        return pkg
    # Development: examples live at repo root (three levels up from src/domconform/cli.py)
    repo = Path(__file__).parent.parent.parent / "examples"
    if repo.exists():
        return repo
    return None


@app.command()
def init(
    dir: str = typer.Option(
        "domconform", "--dir", help="Directory to initialize the project in"
    ),
):
    """Initialize a project with the landing-page example config."""
    project_dir = Path(dir)
    project_dir.mkdir(parents=True, exist_ok=True)

    config_path = project_dir / "conformance.yaml"
    if config_path.exists():
        typer.echo(f"conformance.yaml already exists in {dir}, skipping.")
        return

    src = _examples_source()
    if src is None:
        typer.echo("Error: bundled examples not found.", err=True)
        raise typer.Exit(EXIT_FAILED)

    shutil.copyfile(src / EXAMPLE_CONFIG, config_path)
    fixture = project_dir / EXAMPLE_FIXTURE
    fixture.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(src / EXAMPLE_FIXTURE, fixture)

    typer.echo(f"Initialized conformance project in {dir}:")
    typer.echo("  conformance.yaml             - example rule set")
    typer.echo("  fixtures/landing-page.html   - page the example checks")


@schema_app.command("generate")
def schema_generate(
    dir: str = typer.Option(
        "domconform", "--dir", help="Project directory for default schema/doc outputs"
    ),
    out: str | None = typer.Option(
        None,
        help="Output path for JSON Schema (defaults to <dir>/schemas/domconform.schema.json)",
    ),
    doc: str | None = typer.Option(
        None, help="Output path for schema docs (defaults to <dir>/docs/schema.md)"
    ),
):
    """Generate JSON Schema and docs for the conformance YAML format."""
    from domconform.schema import write_json_schema, write_schema_doc

    project_dir = Path(dir)
    out_path = (
        Path(out)
        if out is not None
        else project_dir / "schemas" / "domconform.schema.json"
    )
    doc_path = Path(doc) if doc is not None else project_dir / "docs" / "schema.md"
    write_json_schema(out_path)
    write_schema_doc(doc_path)
    typer.echo(f"Wrote schema: {out_path}")
    typer.echo(f"Wrote docs: {doc_path}")
