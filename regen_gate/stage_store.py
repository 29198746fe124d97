from __future__ import annotations

from pathlib import Path
import os
from typing import Any, Dict, List, Type, cast
from threading import RLock
from datetime import datetime, timezone

import yaml

try:  # pragma: no cover - depends on optional libyaml acceleration
    _YAML_DUMPER: Type[yaml.SafeDumper] = cast(  # type: ignore[misc]
        Type[yaml.SafeDumper], yaml.CSafeDumper
    )
except AttributeError:  # pragma: no cover - fallback when C bindings missing
    _YAML_DUMPER = yaml.SafeDumper

from ._locking import locked


def _default_path(env_var: str, cfg_key: str, filename: str) -> Path:
    path = os.getenv(env_var)
    if path is None:
        from .config import load_config

        path = load_config().get(cfg_key)
    if path is None:
        return Path.home() / ".regengate" / filename
    return Path(path)


def _parse(text: str) -> Dict[str, Any]:
    data = yaml.safe_load(text) or {}
    return data if isinstance(data, dict) else {}


def _render(data: Dict[str, Any]) -> str:
    return yaml.dump(
        data,
        Dumper=_YAML_DUMPER,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


class StageStore:
    """Persistent log of pipeline step events, keyed by workflow name.

    Every write re-reads the file under an exclusive lock so that concurrent
    runs of the same workflow append rather than overwrite each other.
    With ``max_events`` set, only the newest ``max_events`` entries of each
    workflow are kept.
    """

    def __init__(
        self, path: str | Path | None = None, *, max_events: int | None = None
    ) -> None:
        if max_events is not None and max_events < 1:
            raise ValueError("max_events must be positive")
        if path is None:
            path = _default_path("REGENGATE_STAGES_PATH", "stages_path", "stages.yml")
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        self.max_events = max_events
        self._lock = RLock()

    def _load(self) -> Dict[str, List[Dict[str, Any]]]:
        with open(self.path, "r") as fh:
            with locked(fh, exclusive=False):
                data = _parse(fh.read())
        return {
            key: [e for e in events if isinstance(e, dict)]
            for key, events in data.items()
            if isinstance(events, list)
        }

    def add_event(
        self,
        workflow: str,
        stage: str,
        *,
        status: str,
        run_id: str | None = None,
        reason: str | None = None,
        duration: float | None = None,
    ) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "stage": stage,
            "status": status,
            "time": datetime.now(timezone.utc).isoformat(),
        }
        if run_id is not None:
            entry["run_id"] = run_id
        if reason is not None:
            entry["reason"] = reason
        if duration is not None:
            entry["duration"] = round(duration, 3)
        with self._lock:
            with open(self.path, "r+") as fh:
                with locked(fh, exclusive=True):
                    data = _parse(fh.read())
                    events = data.get(workflow)
                    if not isinstance(events, list):
                        events = data[workflow] = []
                    events.append(entry)
                    if self.max_events is not None:
                        del events[: -self.max_events]
                    fh.seek(0)
                    fh.write(_render(data))
                    fh.truncate()
                    fh.flush()
        return entry

    def get_events(
        self,
        workflow: str,
        run_id: str | None = None,
    ) -> List[Dict[str, Any]]:
        events = self._load().get(workflow, [])
        return [e for e in events if run_id is None or e.get("run_id") == run_id]

    def workflows(self) -> List[str]:
        return list(self._load())


__all__ = ["StageStore"]
