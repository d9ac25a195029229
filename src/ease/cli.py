# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for Ease.

Dumb trigger: finds easeconfig.py, lets it register tasks and jobs, then
hands the requested job names to the engine. No job logic lives here.
"""

import asyncio
import json
from dataclasses import asdict
from typing import List, Optional

import typer

from ease import __version__
from ease.config import EaseSettings, find_config_file, load_settings
from ease.engine import Ease
from ease.errors import ConfigError, JobNotFound
from ease.logs import setup_logging
from ease.schedule import validate_options


app = typer.Typer(
    name="ease",
    help="Run code-defined jobs now or on a daily, weekly or monthly schedule",
    no_args_is_help=True,
)

CONFIG_HELP = "Path to easeconfig.py, or a directory to search upwards from"
SETTINGS_HELP = "Path to a settings YAML file (default: $EASE_HOME/config.yaml)"


def load_engine(config: Optional[str], settings: EaseSettings) -> Ease:
    """Locate the easeconfig file and build a configured engine."""
    return Ease.from_config(find_config_file(config), settings=settings)


async def _run(ease: Ease, jobs: List[str], all_jobs: bool) -> None:
    try:
        await ease.run_jobs(jobs, run_all=all_jobs)
        # Stay alive while anything is scheduled
        await ease.serve()
    finally:
        ease.shutdown()


@app.command()
def run(
    jobs: Optional[List[str]] = typer.Argument(None, help="Names of the jobs to run"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Detailed console logs"),
    all_jobs: bool = typer.Option(False, "--all", "-a", help="Run all jobs defined in the config file"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help=SETTINGS_HELP),
):
    """Run jobs now and keep serving the scheduled ones."""
    if not all_jobs and not jobs:
        typer.echo("No jobs to run! To run all jobs, provide the --all flag", err=True)
        raise typer.Exit(1)

    try:
        settings = load_settings(settings_path)
        setup_logging(settings.log_file, verbose=verbose or settings.verbose)
        ease = load_engine(config, settings)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    try:
        asyncio.run(_run(ease, jobs or [], all_jobs))
    except KeyboardInterrupt:
        typer.echo("Interrupted, stopping scheduler.", err=True)
        raise typer.Exit(130)


@app.command("jobs")
def list_jobs(
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    settings_path: Optional[str] = typer.Option(None, "--settings", help=SETTINGS_HELP),
):
    """List jobs defined in the config file."""
    try:
        ease = load_engine(config, load_settings(settings_path))
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    names = ease.registry.job_names()
    if not names:
        typer.echo("No jobs defined.")
        return

    for name in names:
        job = ease.registry.get_job(name)
        typer.echo(name)
        typer.echo(f"  Tasks: {', '.join(job.tasks) or '(none)'}")
        result = validate_options(job.options, name)
        if result.schedule is not None:
            typer.echo(f"  Schedule: {result.schedule.describe()}")
        typer.echo(f"  Runs immediately: {'yes' if job.run_immediately else 'no'}")


@app.command()
def info(
    job: str = typer.Argument(..., help="Job name"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help=CONFIG_HELP),
    settings_path: Optional[str] = typer.Option(None, "--settings", help=SETTINGS_HELP),
):
    """Show a job's tasks and options as JSON."""
    try:
        ease = load_engine(config, load_settings(settings_path))
        job_info = ease.info(job)
    except (ConfigError, JobNotFound) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(asdict(job_info), indent=2))


@app.command()
def version():
    """Show version information."""
    typer.echo(f"ease version {__version__}")


# Static commands (config)
from ease.commands import config as config_commands

app.add_typer(config_commands.app, name="config")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
