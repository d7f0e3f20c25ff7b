"""CLI output helpers and exit-code mapping.

Errors and progress go to stderr; results go to stdout so ``--output json``
can be piped.
"""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any

import click


class ExitCode(IntEnum):
    """Exit codes for CLI commands.

    Engine errors carry their own ``exit_code``; these cover everything else.
    """

    SUCCESS = 0
    GENERAL_ERROR = 1
    USAGE_ERROR = 2


def error(message: str, **context: str | int | bool | None) -> None:
    """Print an error message to stderr.

    Example:
        error("Stage not found", stage="prod")
        # Output: Error: Stage not found (stage=prod)
    """
    click.echo(_with_context(f"Error: {message}", context), err=True)


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print a warning message to stderr."""
    click.echo(_with_context(f"Warning: {message}", context), err=True)


def success(message: str) -> None:
    """Print a result to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print progress information to stderr."""
    click.echo(message, err=True)


def _with_context(message: str, context: dict[str, Any]) -> str:
    context_str = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    return f"{message} ({context_str})" if context_str else message


def exit_code_for(exc: BaseException) -> int:
    """Exit code for an exception: its own ``exit_code`` if it has one."""
    code = getattr(exc, "exit_code", None)
    if isinstance(code, int):
        return code
    return int(ExitCode.GENERAL_ERROR)


def report_failure(exc: BaseException, output: str, action: str) -> int:
    """Print ``exc`` in the requested format and return the exit code to use."""
    exit_code = exit_code_for(exc)
    if output == "json":
        payload: dict[str, Any] = {"error": str(exc), "exit_code": exit_code}
        code = getattr(exc, "code", None)
        if code is not None:
            payload["code"] = getattr(code, "value", str(code))
        click.echo(json.dumps(payload))
    else:
        error(f"{action} failed: {exc}")
    return exit_code


__all__ = [
    "ExitCode",
    "error",
    "exit_code_for",
    "info",
    "report_failure",
    "success",
    "warn",
]
