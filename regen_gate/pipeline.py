"""Sequential pipeline runner."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence
from uuid import uuid4

from . import metrics
from .concurrency import LeaseStore
from .config import concurrency_group
from .errors import PipelineCancelled, StepFailedError
from .stage_store import StageStore
from .steps import BaseStep, StepContext, default_steps

logger = logging.getLogger(__name__)

SUCCESS = "success"
FAILED = "failed"
SKIPPED = "skipped"
CANCELLED = "cancelled"


@dataclass
class StepResult:
    name: str
    status: str
    reason: str | None = None
    duration: float = 0.0
    value: Any = None
    error: StepFailedError | None = field(default=None, repr=False)


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""

    run_id: str
    status: str
    steps: List[StepResult] = field(default_factory=list)
    error: StepFailedError | None = None

    @property
    def ok(self) -> bool:
        return self.status == SUCCESS

    @property
    def exit_code(self) -> int:
        if self.status == SUCCESS:
            return 0
        if self.status == CANCELLED:
            return 2
        return 1

    def step(self, name: str) -> StepResult | None:
        for result in self.steps:
            if result.name == name:
                return result
        return None


class Pipeline:
    """Run ``steps`` in order, stopping at the first failure.

    Every step outcome is written to the :class:`StageStore`. Before each
    step the run confirms it still owns its concurrency group; a superseded
    run stops with status ``cancelled``.
    """

    def __init__(
        self,
        steps: Sequence[BaseStep],
        cfg: Dict[str, Any],
        *,
        root: str | Path = ".",
        stages: StageStore | None = None,
        leases: LeaseStore | None = None,
        run_id: str | None = None,
    ) -> None:
        self.steps = list(steps)
        self.cfg = cfg
        self.context = StepContext.from_config(cfg, root)
        self.stages = stages or StageStore(
            cfg.get("stages_path"), max_events=cfg.get("max_events")
        )
        self.leases = leases or LeaseStore(
            cfg.get("leases_path"), ttl=cfg["concurrency"].get("lease_ttl")
        )
        self.run_id = run_id or str(uuid4())
        self.group = concurrency_group(cfg)

    @classmethod
    def default(cls, cfg: Dict[str, Any], **kwargs: Any) -> "Pipeline":
        return cls(default_steps(cfg), cfg, **kwargs)

    def _record(self, result: StepResult) -> None:
        self.stages.add_event(
            self.cfg["workflow"],
            result.name,
            status=result.status,
            run_id=self.run_id,
            reason=result.reason,
            duration=result.duration if result.status in (SUCCESS, FAILED) else None,
        )

    def _skip_rest(self, outcome: PipelineResult, start: int, status: str, reason: str) -> None:
        for step in self.steps[start:]:
            result = StepResult(step.name, status, reason=reason)
            outcome.steps.append(result)
            self._record(result)

    def _ensure_current(self) -> None:
        if not self.leases.is_current(self.group, self.run_id):
            raise PipelineCancelled(self.group, self.run_id)

    def _run_step(self, step: BaseStep) -> StepResult:
        runner = metrics.track_step(name=step.name)(step.run)
        start = time.monotonic()
        with self.context.reporter.group(step.name):
            try:
                value = runner(self.context)
            except StepFailedError as exc:
                return StepResult(
                    step.name, FAILED, reason=exc.reason,
                    duration=time.monotonic() - start, error=exc,
                )
        return StepResult(step.name, SUCCESS, duration=time.monotonic() - start, value=value)

    def run(self) -> PipelineResult:
        """Execute every step and return the :class:`PipelineResult`."""

        superseded = self.leases.acquire(
            self.group,
            self.run_id,
            cancel_in_progress=self.cfg["concurrency"]["cancel_in_progress"],
        )
        if superseded:
            logger.info("superseded run %s", superseded)

        outcome = PipelineResult(run_id=self.run_id, status=SUCCESS)
        try:
            for index, step in enumerate(self.steps):
                try:
                    self._ensure_current()
                except PipelineCancelled as exc:
                    logger.warning("%s", exc)
                    outcome.status = CANCELLED
                    self._skip_rest(outcome, index, CANCELLED, str(exc))
                    break

                try:
                    result = self._run_step(step)
                except Exception as exc:
                    logger.exception("step %s raised unexpectedly", step.name)
                    result = StepResult(step.name, FAILED, reason=str(exc))
                    outcome.steps.append(result)
                    self._record(result)
                    outcome.status = FAILED
                    self._skip_rest(outcome, index + 1, SKIPPED, f"{step.name} failed")
                    raise

                outcome.steps.append(result)
                self._record(result)
                if result.status == FAILED:
                    logger.error("step %s failed: %s", step.name, result.reason)
                    outcome.status = FAILED
                    outcome.error = result.error
                    self._skip_rest(outcome, index + 1, SKIPPED, f"{step.name} failed")
                    break
        finally:
            self.leases.release(self.group, self.run_id)
        return outcome


__all__ = [
    "SUCCESS",
    "FAILED",
    "SKIPPED",
    "CANCELLED",
    "StepResult",
    "PipelineResult",
    "Pipeline",
]
