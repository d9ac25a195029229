"""Shell command tasks.

Implementation rules enforced here:
- Never print; report through the log function handed to the factory
- Never read global config or environment
- Side effects: subprocesses only

Usage from easeconfig.py:

    from ease_tasks import shell

    def configure(ease):
        ease.install("backup", shell.command, "tar czf {dirname}/backup.tgz data",
                     variables={"target": "nas"})

Every command sees {job} (the running job's name) and {dirname} (the
directory of the easeconfig file) on top of the given variables. Commands
run in a worker thread so the event loop keeps ticking.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

# I/O declaration for static analysis and auditing
__io__ = {
    "reads": [],
    "writes": [],
    "external": ["subprocess"],
}

import asyncio
import logging
import re
import subprocess
from typing import Any, Callable, Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

LogFn = Callable[[str], None]

ESCAPE_OPEN = "\x00ESCAPED_OPEN\x00"
ESCAPE_CLOSE = "\x00ESCAPED_CLOSE\x00"

# Longest command echoed in full before truncation
PREVIEW_LENGTH = 100


class CommandFailed(Exception):
    """A shell command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed with exit code {returncode}: {_preview(command)}"
        if stderr.strip():
            message += f"\n{stderr.strip()}"
        super().__init__(message)


def _preview(command: str) -> str:
    if len(command) > PREVIEW_LENGTH:
        return f"{command[:PREVIEW_LENGTH]}..."
    return command


def substitute_variables(command: str, variables: Mapping[str, Any]) -> str:
    """
    Substitute {name} placeholders in a command string.

    Double braces escape: {{text}} becomes {text}. Unknown placeholders are
    left in place and logged as a warning.

    Example:
        >>> substitute_variables("echo {name}", {"name": "Alice"})
        'echo Alice'
        >>> substitute_variables("echo {{literal}}", {})
        'echo {literal}'
    """
    result = command.replace("{{", ESCAPE_OPEN).replace("}}", ESCAPE_CLOSE)

    for key, value in variables.items():
        placeholder = f"{{{key}}}"
        if placeholder in result:
            result = result.replace(placeholder, str(value))
            logger.debug("Substituted {%s} -> %s", key, value)

    remaining = re.findall(r"\{(\w+)\}", result)
    if remaining:
        logger.warning("Unsubstituted variables: %s", remaining)

    return result.replace(ESCAPE_OPEN, "{").replace(ESCAPE_CLOSE, "}")


def run(command: str, cwd: Optional[str] = None) -> subprocess.CompletedProcess:
    """
    Run one command through the shell and capture its output.

    Raises:
        CommandFailed: On a non-zero exit status
    """
    result = subprocess.run(
        command,
        shell=True,
        cwd=cwd,
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        raise CommandFailed(command, result.returncode, result.stderr)
    if result.stderr:
        logger.warning("STDERR:\n%s", result.stderr)
    return result


def command(
    log: LogFn,
    dirname: str,
    *commands: str,
    variables: Optional[Dict[str, Any]] = None,
    dry_run: bool = False,
    cwd: Optional[str] = None,
):
    """
    Build a task runner that executes shell commands in sequence.

    Args:
        log: Message sink (Ease.log)
        dirname: Directory of the easeconfig file; also the default cwd
        *commands: Command templates, run in order
        variables: Extra {name} values for the templates
        dry_run: Log the final commands without running them
        cwd: Working directory (default: dirname)

    Returns:
        Coroutine function taking the job name. The first failing command
        stops the sequence and fails the task.
    """
    if not commands:
        raise ValueError("At least one command is required")
    templates: List[str] = list(commands)
    workdir = cwd or dirname

    async def runner(job_name: str) -> List[str]:
        values = {**(variables or {}), "job": job_name, "dirname": dirname}
        outputs = []
        for i, template in enumerate(templates, 1):
            final = substitute_variables(template, values)
            if dry_run:
                log(f"[DRY RUN] Would execute: {final}")
                continue
            log(f"Step {i}/{len(templates)}: {_preview(final)}")
            result = await asyncio.to_thread(run, final, workdir)
            if result.stdout.strip():
                log(result.stdout.rstrip())
            outputs.append(result.stdout)
        return outputs

    return runner
