"""Exception types raised by regen-gate."""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:  # pragma: no cover - used for type hints only
    from .freshness import FreshnessReport


class RegenGateError(RuntimeError):
    """Base class for all regen-gate errors."""


class GitError(RegenGateError):
    """Raised when a git invocation exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = f": {self.stderr}" if self.stderr else ""
        super().__init__(
            f"'{' '.join(self.command)}' exited with {returncode}{detail}"
        )


class StepFailedError(RegenGateError):
    """Raised when a pipeline step fails."""

    def __init__(self, step: str, reason: str) -> None:
        self.step = step
        self.reason = reason
        super().__init__(f"{step}: {reason}")


class StaleArtifactsError(StepFailedError):
    """Raised when generated artifacts do not match their sources."""

    def __init__(self, report: "FreshnessReport", step: str = "freshness") -> None:
        self.report = report
        super().__init__(step, report.summary)


class ToolchainError(StepFailedError):
    """Raised when a required tool is missing or has the wrong version."""


class ConcurrencyError(RegenGateError):
    """Raised when a run cannot acquire its concurrency group."""


class PipelineCancelled(RegenGateError):
    """Raised when a newer run superseded the current one."""

    def __init__(self, group: str, run_id: str) -> None:
        self.group = group
        self.run_id = run_id
        super().__init__(f"run {run_id} superseded in group '{group}'")


__all__ = [
    "RegenGateError",
    "GitError",
    "StepFailedError",
    "StaleArtifactsError",
    "ToolchainError",
    "ConcurrencyError",
    "PipelineCancelled",
]
