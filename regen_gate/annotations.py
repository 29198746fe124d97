"""Workflow-command annotations for CI logs."""

from __future__ import annotations

import contextlib
import os
from typing import Any, Dict, Iterator

import typer

LEVELS = ("error", "warning", "notice")


def escape_data(message: str) -> str:
    return message.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def escape_property(value: str) -> str:
    return escape_data(value).replace(":", "%3A").replace(",", "%2C")


def format_command(level: str, message: str, **properties: Any) -> str:
    """Return ``::level props::message`` with the platform's escaping."""

    props = ",".join(
        f"{key}={escape_property(str(value))}"
        for key, value in properties.items()
        if value is not None
    )
    head = f"::{level} {props}" if props else f"::{level}"
    return f"{head}::{escape_data(message)}"


def use_workflow_commands(cfg: Dict[str, Any] | None = None) -> bool:
    mode = (cfg or {}).get("annotations", "auto")
    if mode == "github":
        return True
    if mode == "plain":
        return False
    return os.getenv("GITHUB_ACTIONS") == "true"


class Reporter:
    """Write diagnostics either as workflow commands or as plain lines."""

    def __init__(self, workflow_commands: bool = False) -> None:
        self.workflow_commands = workflow_commands

    @classmethod
    def from_config(cls, cfg: Dict[str, Any] | None = None) -> "Reporter":
        return cls(use_workflow_commands(cfg))

    def annotate(self, level: str, message: str, **properties: Any) -> None:
        if level not in LEVELS:
            raise ValueError(f"Unknown annotation level: {level}")
        if self.workflow_commands:
            typer.echo(format_command(level, message, **properties))
        else:
            typer.echo(f"{level}: {message}", err=level != "notice")

    def error(self, message: str, **properties: Any) -> None:
        self.annotate("error", message, **properties)

    def warning(self, message: str, **properties: Any) -> None:
        self.annotate("warning", message, **properties)

    def notice(self, message: str, **properties: Any) -> None:
        self.annotate("notice", message, **properties)

    @contextlib.contextmanager
    def group(self, title: str) -> Iterator[None]:
        """Fold the output produced inside the block under ``title``."""

        if self.workflow_commands:
            typer.echo(f"::group::{escape_data(title)}")
        else:
            typer.echo(f"==> {title}")
        try:
            yield
        finally:
            if self.workflow_commands:
                typer.echo("::endgroup::")


__all__ = [
    "escape_data",
    "escape_property",
    "format_command",
    "use_workflow_commands",
    "Reporter",
]
