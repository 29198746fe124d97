"""Staleness check for generated artifacts.

After the generator has run, every change it made to the work tree is
staged and compared against ``HEAD``. Any difference means the committed
artifacts were stale. The report then tells the author whether their branch
is behind upstream or whether they simply forgot to regenerate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from . import metrics
from .annotations import Reporter
from .errors import GitError
from .git import GitRepo

logger = logging.getLogger(__name__)

STALE_MESSAGE = "Generated proto files are not up to date."


class Verdict(str, Enum):
    UP_TO_DATE = "up-to-date"
    BRANCH_OUT_OF_DATE = "branch-out-of-date"
    REGENERATION_NOT_RUN = "regeneration-not-run"


@dataclass
class FreshnessReport:
    """Outcome of a single staleness check."""

    verdict: Verdict
    stale_files: list[str] = field(default_factory=list)
    fork_point: str | None = None
    upstream_changes: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.verdict is Verdict.UP_TO_DATE

    @property
    def summary(self) -> str:
        if self.ok:
            return "generated files are up to date"
        return " ".join(self.messages) if self.messages else STALE_MESSAGE


def _workdir_label(cfg: Dict[str, Any]) -> str:
    return str(cfg["working_directory"]).rstrip("/") + "/"


def out_of_date_message(cfg: Dict[str, Any]) -> str:
    return (
        "Your branch is out-of-date. Please update your branch first and then "
        f"run '{cfg['commands']['generate']}' at {_workdir_label(cfg)} and "
        "commit the changes."
    )


def regenerate_message(cfg: Dict[str, Any]) -> str:
    return (
        f"Please run '{cfg['commands']['generate']}' at {_workdir_label(cfg)} "
        "and commit the changes."
    )


def head_revision(cfg: Dict[str, Any]) -> str:
    head_ref = cfg.get("head_ref")
    head_remote = cfg.get("head_remote")
    if head_ref and head_remote:
        return f"{head_remote}/{head_ref}"
    return head_ref or "HEAD"


def upstream_revision(cfg: Dict[str, Any]) -> str:
    return f"{cfg['upstream']['remote']}/{cfg['base_ref']}"


def _diagnose(repo: GitRepo, cfg: Dict[str, Any], report: FreshnessReport) -> None:
    upstream = upstream_revision(cfg)
    paths = list(cfg.get("source_paths") or [])
    try:
        fork_point = repo.merge_base(head_revision(cfg), upstream)
        if fork_point is None:
            logger.warning(
                "no common ancestor between %s and %s; comparing from HEAD",
                head_revision(cfg),
                upstream,
            )
        report.fork_point = fork_point
        rev_range = f"{fork_point or 'HEAD'}..{upstream}"
        behind = repo.has_changes(rev_range, paths)
        if behind:
            report.upstream_changes = repo.changed_files(rev_range, paths)
    except GitError as exc:
        logger.warning("could not compare against %s: %s", upstream, exc)
        behind = False

    if behind:
        report.verdict = Verdict.BRANCH_OUT_OF_DATE
        report.messages.append(out_of_date_message(cfg))
    else:
        report.verdict = Verdict.REGENERATION_NOT_RUN
        report.messages.append(regenerate_message(cfg))


def check_freshness(
    repo: GitRepo,
    cfg: Dict[str, Any],
    reporter: Reporter | None = None,
) -> FreshnessReport:
    """Compare the regenerated work tree in ``repo`` with ``HEAD``.

    The index is always left unstaged afterwards. Diagnostics are written to
    ``reporter`` when one is given.
    """

    repo.stage_all()
    if not repo.has_staged_changes():
        report = FreshnessReport(verdict=Verdict.UP_TO_DATE)
        metrics.FRESHNESS_CHECKS.labels(report.verdict.value).inc()
        return report

    try:
        stale = repo.staged_files()
    finally:
        repo.reset()

    report = FreshnessReport(
        verdict=Verdict.REGENERATION_NOT_RUN,
        stale_files=stale,
        messages=[STALE_MESSAGE],
    )
    _diagnose(repo, cfg, report)
    metrics.FRESHNESS_CHECKS.labels(report.verdict.value).inc()

    if reporter is not None:
        for message in report.messages:
            reporter.error(message)
        for path in report.stale_files:
            reporter.notice(f"stale generated file: {path}")
        if report.upstream_changes:
            changed = ", ".join(report.upstream_changes)
            reporter.notice(f"changed upstream since the fork point: {changed}")
    return report


__all__ = [
    "STALE_MESSAGE",
    "Verdict",
    "FreshnessReport",
    "check_freshness",
    "head_revision",
    "upstream_revision",
    "out_of_date_message",
    "regenerate_message",
]
