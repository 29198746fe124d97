import json

import pytest
from pydantic import ValidationError

from regen_gate.events import load_event


def test_load_event_from_env(monkeypatch, tmp_path):
    path = tmp_path / "event.json"
    path.write_text(
        json.dumps(
            {
                "action": "opened",
                "number": 5,
                "pull_request": {
                    "number": 5,
                    "base": {"ref": "main", "sha": "abc"},
                    "head": {
                        "ref": "fix-dashboard",
                        "repo": {"full_name": "alice/risingwave", "private": False},
                    },
                    "title": "Fix dashboard",
                },
            }
        )
    )
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(path))

    event = load_event()

    assert event is not None
    assert event.base_ref == "main"
    assert event.head_ref == "fix-dashboard"
    assert event.head_repository == "alice/risingwave"
    assert event.changed_files is None


def test_non_pull_request_payload(tmp_path):
    path = tmp_path / "push.json"
    path.write_text(json.dumps({"ref": "refs/heads/main"}))
    assert load_event(path) is None


def test_missing_payload():
    assert load_event() is None


def test_invalid_payload(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"pull_request": {"base": {}}}))
    with pytest.raises(ValidationError):
        load_event(path)
