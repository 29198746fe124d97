"""regen-gate package root.

Checks that generated protocol-buffer client code is in sync with its
sources and runs the surrounding pull request pipeline.
"""

from .config import load_config
from .errors import (
    RegenGateError,
    GitError,
    StepFailedError,
    StaleArtifactsError,
    ToolchainError,
    ConcurrencyError,
    PipelineCancelled,
)
from .freshness import FreshnessReport, Verdict, check_freshness
from .git import GitRepo
from .pipeline import Pipeline, PipelineResult
from .trigger import should_run
from . import metrics  # noqa: F401


__all__ = [
    "load_config",
    "check_freshness",
    "should_run",
    "FreshnessReport",
    "Verdict",
    "GitRepo",
    "Pipeline",
    "PipelineResult",
    "metrics",
    "RegenGateError",
    "GitError",
    "StepFailedError",
    "StaleArtifactsError",
    "ToolchainError",
    "ConcurrencyError",
    "PipelineCancelled",
]
