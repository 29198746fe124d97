"""Pipeline steps.

Each step is a small object with a ``name`` and a ``run(context)`` method
that raises :class:`~regen_gate.errors.StepFailedError` on failure. The
default sequence mirrors the dashboard pull request workflow; custom
pipelines can mix in their own :class:`CommandStep` instances.
"""

from __future__ import annotations

import logging
import re
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

from ..annotations import Reporter
from ..errors import GitError, StaleArtifactsError, StepFailedError, ToolchainError
from ..freshness import FreshnessReport, check_freshness
from ..git import GitRepo

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"(\d+(?:\.\d+)*)")


@dataclass
class StepContext:
    """State shared by the steps of one run."""

    cfg: Dict[str, Any]
    workdir: Path
    repo: GitRepo
    reporter: Reporter

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], root: str | Path = ".") -> "StepContext":
        workdir = Path(root) / cfg["working_directory"]
        return cls(
            cfg=cfg,
            workdir=workdir,
            repo=GitRepo(workdir),
            reporter=Reporter.from_config(cfg),
        )


class BaseStep:
    """Base class for all steps."""

    name: str = "base"

    def run(self, context: StepContext) -> Any:  # pragma: no cover - interface
        raise NotImplementedError


class CommandStep(BaseStep):
    """Run an external command in the working directory.

    Output goes straight to the console; the command's own diagnostics are
    the report.
    """

    def __init__(self, name: str, command: str) -> None:
        self.name = name
        self.command = command

    def argv(self) -> List[str]:
        args = shlex.split(self.command)
        if not args:
            raise StepFailedError(self.name, "empty command")
        resolved = shutil.which(args[0])
        if resolved:
            args[0] = resolved
        return args

    def run(self, context: StepContext) -> int:
        args = self.argv()
        logger.debug("%s: %s", self.name, self.command)
        try:
            result = subprocess.run(args, cwd=context.workdir, check=False)
        except FileNotFoundError as exc:
            raise StepFailedError(self.name, f"command not found: {args[0]}") from exc
        if result.returncode != 0:
            raise StepFailedError(
                self.name, f"'{self.command}' exited with {result.returncode}"
            )
        return result.returncode

    def __repr__(self) -> str:
        return f"CommandStep({self.name!r}, {self.command!r})"


class CheckoutStep(BaseStep):
    """Confirm the work tree is a git checkout and record ``HEAD``."""

    name = "checkout"

    def run(self, context: StepContext) -> str:
        if not context.workdir.is_dir():
            raise StepFailedError(self.name, f"working directory {context.workdir} does not exist")
        if not context.repo.is_work_tree():
            raise StepFailedError(self.name, f"{context.workdir} is not inside a git work tree")
        head = context.repo.head()
        logger.info("checked out %s", head)
        return head


class FetchUpstreamStep(BaseStep):
    """Register the upstream remote and fetch the base branch."""

    name = "fetch-upstream"

    def run(self, context: StepContext) -> None:
        upstream = context.cfg["upstream"]
        try:
            context.repo.add_remote(upstream["remote"], upstream["url"])
            context.repo.fetch(upstream["remote"], context.cfg["base_ref"])
        except GitError as exc:
            raise StepFailedError(self.name, str(exc)) from exc


def parse_version(output: str) -> str | None:
    match = _VERSION_RE.search(output)
    return match.group(1) if match else None


def version_matches(actual: str, wanted: str) -> bool:
    """Return ``True`` if ``actual`` satisfies the ``wanted`` prefix.

    ``wanted`` is a dotted prefix such as ``18`` or ``3.x``; ``x`` and ``*``
    match any component.
    """

    have = actual.split(".")
    for index, part in enumerate(str(wanted).split(".")):
        if part in ("x", "X", "*"):
            continue
        if index >= len(have) or have[index] != part:
            return False
    return True


class ToolchainStep(BaseStep):
    """Verify that the required tools are installed at the right versions.

    A tool mapped to ``None`` is not checked; ``"*"`` only requires it to be
    on ``PATH``.
    """

    name = "toolchain"

    def __init__(self, tools: Dict[str, str | None] | None = None) -> None:
        self.tools = dict(tools or {})

    def run(self, context: StepContext) -> Dict[str, str]:
        found: Dict[str, str] = {}
        for tool, wanted in self.tools.items():
            if not wanted:
                continue
            path = shutil.which(tool)
            if path is None:
                raise ToolchainError(self.name, f"{tool} is not installed")
            if str(wanted) == "*":
                found[tool] = "unknown"
                continue
            result = subprocess.run(
                [path, "--version"], capture_output=True, text=True, check=False
            )
            version = parse_version(result.stdout or result.stderr)
            if version is None:
                raise ToolchainError(self.name, f"could not determine {tool} version")
            if not version_matches(version, str(wanted)):
                raise ToolchainError(
                    self.name, f"{tool} {version} does not satisfy {wanted}"
                )
            found[tool] = version
            logger.info("%s %s at %s", tool, found[tool], path)
        return found


class FreshnessStep(BaseStep):
    """Fail when regeneration changed any committed file."""

    name = "freshness"

    def run(self, context: StepContext) -> FreshnessReport:
        try:
            report = check_freshness(context.repo, context.cfg, context.reporter)
        except GitError as exc:
            raise StepFailedError(self.name, str(exc)) from exc
        if not report.ok:
            raise StaleArtifactsError(report, step=self.name)
        return report


def default_steps(cfg: Dict[str, Any]) -> List[BaseStep]:
    """Return the step sequence of the dashboard workflow."""

    commands = cfg["commands"]
    steps: List[BaseStep] = [
        CheckoutStep(),
        FetchUpstreamStep(),
        ToolchainStep(cfg.get("toolchain")),
    ]
    if commands.get("install"):
        steps.append(CommandStep("install", commands["install"]))
    if commands.get("generate"):
        steps.append(CommandStep("generate", commands["generate"]))
    steps.append(FreshnessStep())
    for key, name in (("lint", "lint"), ("build", "build"), ("build_static", "build-static")):
        if commands.get(key):
            steps.append(CommandStep(name, commands[key]))
    return steps


__all__ = [
    "StepContext",
    "BaseStep",
    "CommandStep",
    "CheckoutStep",
    "FetchUpstreamStep",
    "ToolchainStep",
    "FreshnessStep",
    "parse_version",
    "version_matches",
    "default_steps",
]
