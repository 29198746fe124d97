"""Thin wrapper around the ``git`` command line."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from .errors import GitError

logger = logging.getLogger(__name__)


class GitRepo:
    """Run git commands from ``cwd``.

    Every method maps onto one or two git invocations. Paths passed to
    diff commands are interpreted relative to ``cwd``, as git does.
    """

    def __init__(self, cwd: str | Path = ".", *, executable: str = "git") -> None:
        self.cwd = Path(cwd)
        self.executable = executable

    def _run(self, *args: str, ok_codes: Sequence[int] = (0,)) -> subprocess.CompletedProcess:
        cmd = [self.executable, *args]
        logger.debug("running %s in %s", " ".join(cmd), self.cwd)
        try:
            result = subprocess.run(
                cmd,
                cwd=self.cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitError(cmd, 127, str(exc)) from exc
        if result.returncode not in ok_codes:
            raise GitError(cmd, result.returncode, result.stderr)
        return result

    # ------------------------------------------------------------------
    # Repository state
    def is_work_tree(self) -> bool:
        try:
            result = self._run("rev-parse", "--is-inside-work-tree")
        except GitError:
            return False
        return result.stdout.strip() == "true"

    def head(self) -> str:
        return self._run("rev-parse", "HEAD").stdout.strip()

    def toplevel(self) -> Path:
        return Path(self._run("rev-parse", "--show-toplevel").stdout.strip())

    def remotes(self) -> list[str]:
        return self._run("remote").stdout.split()

    def add_remote(self, name: str, url: str) -> None:
        """Register ``name`` pointing at ``url``, updating it if present."""

        if name in self.remotes():
            self._run("remote", "set-url", name, url)
        else:
            self._run("remote", "add", name, url)

    def fetch(self, remote: str, ref: str) -> None:
        self._run("fetch", remote, ref)

    # ------------------------------------------------------------------
    # Index
    def stage_all(self) -> None:
        self._run("add", "-A")

    def has_staged_changes(self) -> bool:
        result = self._run("diff", "--quiet", "--staged", ok_codes=(0, 1))
        return result.returncode == 1

    def staged_files(self) -> list[str]:
        result = self._run("diff", "--staged", "--name-only")
        return [line for line in result.stdout.splitlines() if line]

    def reset(self) -> None:
        self._run("reset", "-q")

    # ------------------------------------------------------------------
    # History
    def merge_base(self, first: str, second: str) -> str | None:
        """Return the common ancestor of two revisions, or ``None``."""

        result = self._run("merge-base", first, second, ok_codes=(0, 1))
        if result.returncode == 1:
            return None
        return result.stdout.strip() or None

    def has_changes(self, rev_range: str, paths: Sequence[str] = ()) -> bool:
        args = ["diff", "--quiet", rev_range]
        if paths:
            args += ["--", *paths]
        result = self._run(*args, ok_codes=(0, 1))
        return result.returncode == 1

    def changed_files(self, rev_range: str, paths: Sequence[str] = ()) -> list[str]:
        args = ["diff", "--name-only", rev_range]
        if paths:
            args += ["--", *paths]
        result = self._run(*args)
        return [line for line in result.stdout.splitlines() if line]


__all__ = ["GitRepo"]
