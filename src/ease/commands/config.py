# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for Ease.

Loads easeconfig.py without running anything and reports which jobs would
be evicted or warned about on `ease run`.
"""

from typing import Optional

import typer

from ease.config import find_config_file, load_settings
from ease.engine import Ease
from ease.errors import ConfigError

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to easeconfig.py"),
    settings_path: Optional[str] = typer.Option(None, "--settings", help="Path to a settings YAML file"),
):
    """
    Validate settings and every job in the config file.

    Checks task references and job options (including schedules) the same
    way `ease run` does before running.
    """
    typer.echo("Validating configuration...")
    typer.echo()

    try:
        settings = load_settings(settings_path)
        path = find_config_file(config_path)
        ease = Ease.from_config(path, settings=settings)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Config file: {path}")
    typer.echo(f"Log file: {settings.log_file}")
    if settings.timezone:
        typer.echo(f"Timezone: {settings.timezone}")
    typer.echo()

    names = ease.registry.job_names()
    failed = 0
    for name in names:
        result = ease.registry.validate_job(name)
        if result.ok:
            label = result.schedule.describe() if result.schedule else "no schedule"
            typer.echo(f"  ok    {name} ({label})")
        else:
            failed += 1
            typer.echo(f"  FAIL  {name}")
            for error in result.errors:
                typer.echo(f"          {error}")
        for warning in result.warnings:
            typer.echo(f"  warn  {warning}")

    typer.echo()
    if failed:
        typer.echo(f"{failed} of {len(names)} job(s) failed validation", err=True)
        raise typer.Exit(1)
    typer.echo(f"Configuration validation complete! ({len(names)} job(s))")
