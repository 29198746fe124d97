"""Concurrency groups: at most one live run per group.

A run acquires the lease for its group when it starts. With
``cancel_in_progress`` the newest run always wins and the previous holder
notices on its next :meth:`LeaseStore.is_current` check.

Each lease records the pid and host of the run that took it. A lease whose
process is gone from this host, or that is older than ``ttl`` seconds, no
longer blocks the group.
"""

from __future__ import annotations

import logging
import os
import socket
from datetime import datetime, timedelta, timezone
from pathlib import Path
from threading import RLock
from typing import Any, Dict

import psutil

from ._locking import locked
from .errors import ConcurrencyError
from .stage_store import _default_path, _parse, _render

logger = logging.getLogger(__name__)


class LeaseStore:
    """YAML-backed map of concurrency group to the run that owns it."""

    def __init__(self, path: str | Path | None = None, *, ttl: float | None = None) -> None:
        if path is None:
            path = _default_path("REGENGATE_LEASES_PATH", "leases_path", "leases.yml")
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        self.ttl = ttl
        self._lock = RLock()

    def _read(self) -> Dict[str, Dict[str, Any]]:
        with open(self.path, "r") as fh:
            with locked(fh, exclusive=False):
                return _parse(fh.read())

    def _is_stale(self, entry: Dict[str, Any]) -> bool:
        """Return ``True`` when the run behind ``entry`` cannot still be alive."""

        if self.ttl is not None and entry.get("since"):
            since = entry["since"]
            if not isinstance(since, datetime):
                try:
                    since = datetime.fromisoformat(str(since))
                except ValueError:
                    logger.warning("ignoring unparseable lease timestamp %r", since)
                    since = None
            if since is not None:
                if since.tzinfo is None:
                    since = since.replace(tzinfo=timezone.utc)
                if datetime.now(timezone.utc) - since > timedelta(seconds=self.ttl):
                    return True
        pid = entry.get("pid")
        if isinstance(pid, int) and entry.get("hostname") == socket.gethostname():
            return not psutil.pid_exists(pid)
        return False

    def holder(self, group: str) -> str | None:
        entry = self._read().get(group)
        return entry.get("run_id") if isinstance(entry, dict) else None

    def acquire(self, group: str, run_id: str, *, cancel_in_progress: bool = True) -> str | None:
        """Take ``group`` for ``run_id`` and return the superseded run id.

        Raises :class:`ConcurrencyError` when another live run holds the
        group and ``cancel_in_progress`` is false. A stale lease is taken
        over silently and ``None`` is returned.
        """

        with self._lock:
            with open(self.path, "r+") as fh:
                with locked(fh, exclusive=True):
                    data = _parse(fh.read())
                    entry = data.get(group)
                    previous = entry.get("run_id") if isinstance(entry, dict) else None
                    if previous is not None and previous != run_id and self._is_stale(entry):
                        logger.warning(
                            "reclaiming stale lease of run %s in group %s", previous, group
                        )
                        previous = None
                    if previous is not None and previous != run_id and not cancel_in_progress:
                        raise ConcurrencyError(
                            f"group '{group}' is held by run {previous}"
                        )
                    data[group] = {
                        "run_id": run_id,
                        "since": datetime.now(timezone.utc).isoformat(),
                        "pid": os.getpid(),
                        "hostname": socket.gethostname(),
                    }
                    fh.seek(0)
                    fh.write(_render(data))
                    fh.truncate()
                    fh.flush()
        if previous is not None and previous != run_id:
            logger.warning("run %s supersedes run %s in group %s", run_id, previous, group)
            return previous
        return None

    def is_current(self, group: str, run_id: str) -> bool:
        return self.holder(group) == run_id

    def release(self, group: str, run_id: str) -> bool:
        """Drop the lease if ``run_id`` still owns ``group``."""

        with self._lock:
            with open(self.path, "r+") as fh:
                with locked(fh, exclusive=True):
                    data = _parse(fh.read())
                    entry = data.get(group)
                    if not isinstance(entry, dict) or entry.get("run_id") != run_id:
                        return False
                    del data[group]
                    fh.seek(0)
                    fh.write(_render(data))
                    fh.truncate()
                    fh.flush()
        return True


__all__ = ["LeaseStore"]
