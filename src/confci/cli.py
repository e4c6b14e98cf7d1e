# cli.py
from __future__ import annotations

import sys

import click

from confci.errors import PipelineError
from confci.pipeline import Collaborators, Pipeline
from confci.settings import PipelineSettings
from confci.ui.console import Console, set_console, get_console


def _load_settings(build_root: str | None, run_id: str | None) -> PipelineSettings:
    console = get_console()
    try:
        return PipelineSettings.from_env(build_root=build_root, run_id=run_id)
    except PipelineError as e:
        console.print_error(
            "Invalid settings",
            str(e),
            suggestion="Check the CONFCI_* environment variables.",
        )
        sys.exit(1)


def _build_pipeline(settings: PipelineSettings) -> Pipeline:
    console = get_console()
    try:
        return Pipeline(settings, Collaborators.from_settings(settings), console=console)
    except PipelineError as e:
        console.print_error(
            e.kind,
            str(e),
            suggestion="Check the CONFCI_* environment variables.",
        )
        sys.exit(1)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """confci: build, publish and converge-test configuration artifacts."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option("--build-root", default=None, help="Repository root holding configurations/ and modules/")
@click.option("--run-id", default=None, help="Identifier for this run's remote resources (random by default)")
@click.option(
    "--task",
    "tasks",
    multiple=True,
    help="Run only this task and what it depends on (repeatable; default: the full pipeline)",
)
@click.pass_context
def run(ctx, build_root, run_id, tasks):
    """Run the validation pipeline."""
    console = get_console()
    settings = _load_settings(build_root, run_id)
    pipeline = _build_pipeline(settings)

    try:
        code = pipeline.execute(tasks or None)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    sys.exit(code)


@cli.command(name="tasks")
@click.pass_context
def list_tasks(ctx):
    """List the pipeline's tasks in execution order."""
    pipeline = _build_pipeline(_load_settings(None, None))
    for t in pipeline.graph.tasks:
        needs = f" (needs: {', '.join(t.needs)})" if t.needs else ""
        click.echo(f"{t.name:<24} {t.synopsis}{needs}")


if __name__ == "__main__":
    cli()
