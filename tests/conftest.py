import shutil
import sys
from pathlib import Path

import pytest

# Ensure package root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from tests.utils.git_project import GitProject  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    for var in (
        "REGENGATE_CONFIG",
        "REGENGATE_WORKDIR",
        "REGENGATE_UPSTREAM_URL",
        "REGENGATE_ANNOTATIONS",
        "REGENGATE_CANCEL_IN_PROGRESS",
        "GITHUB_ACTIONS",
        "GITHUB_BASE_REF",
        "GITHUB_HEAD_REF",
        "GITHUB_REF",
        "GITHUB_EVENT_PATH",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("REGENGATE_STAGES_PATH", str(tmp_path / "state" / "stages.yml"))
    monkeypatch.setenv("REGENGATE_LEASES_PATH", str(tmp_path / "state" / "leases.yml"))
    yield


@pytest.fixture
def project(monkeypatch, tmp_path):
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Dev")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "dev@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Dev")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "dev@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    base = tmp_path / "repos"
    base.mkdir()
    return GitProject(base)
