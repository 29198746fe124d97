"""Models for the pull request event that triggers a run."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class RepoRef(BaseModel):
    """Repository owning a branch."""

    model_config = ConfigDict(extra="ignore")

    full_name: str | None = None
    clone_url: str | None = None


class BranchRef(BaseModel):
    """One side of a pull request."""

    model_config = ConfigDict(extra="ignore")

    ref: str
    sha: str | None = None
    repo: RepoRef | None = None


class PullRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int | None = None
    base: BranchRef
    head: BranchRef


class PullRequestEvent(BaseModel):
    """Subset of the platform ``pull_request`` payload used by regen-gate.

    ``changed_files`` is not part of the platform payload; callers may fill
    it in from ``git diff --name-only`` or from an API listing.
    """

    model_config = ConfigDict(extra="ignore")

    action: str | None = None
    pull_request: PullRequest
    changed_files: list[str] | None = Field(default=None)

    @property
    def base_ref(self) -> str:
        return self.pull_request.base.ref

    @property
    def head_ref(self) -> str:
        return self.pull_request.head.ref

    @property
    def head_repository(self) -> str | None:
        repo = self.pull_request.head.repo
        return repo.full_name if repo else None


def load_event(path: str | Path | None = None) -> PullRequestEvent | None:
    """Load the event payload from ``path`` or ``GITHUB_EVENT_PATH``.

    Returns ``None`` when no payload is available or when the payload does
    not describe a pull request.
    """

    if path is None:
        path = os.getenv("GITHUB_EVENT_PATH")
    if not path or not os.path.exists(path):
        return None
    with open(path, "r") as fh:
        payload: Dict[str, Any] = json.load(fh)
    if "pull_request" not in payload:
        return None
    return PullRequestEvent.model_validate(payload)


__all__ = ["RepoRef", "BranchRef", "PullRequest", "PullRequestEvent", "load_event"]
