import subprocess
import shutil

import pytest

from regen_gate.config import load_config
from regen_gate.errors import StepFailedError, ToolchainError
from regen_gate.steps import (
    CheckoutStep,
    CommandStep,
    FetchUpstreamStep,
    StepContext,
    ToolchainStep,
    default_steps,
    parse_version,
    version_matches,
)


class DummyCompleted:
    def __init__(self, out: str, returncode: int = 0) -> None:
        self.stdout = out
        self.stderr = ""
        self.returncode = returncode


def _context(tmp_path):
    cfg = load_config()
    cfg["working_directory"] = str(tmp_path)
    return StepContext.from_config(cfg)


@pytest.mark.parametrize(
    "actual, wanted, expected",
    [
        ("18.19.0", "18", True),
        ("20.1.0", "18", False),
        ("3.21.12", "3.x", True),
        ("4.25.1", "3.x", False),
        ("3", "3.21", False),
        ("1.2.3", "*", True),
    ],
)
def test_version_matches(actual, wanted, expected):
    assert version_matches(actual, wanted) is expected


def test_parse_version():
    assert parse_version("v18.19.0\n") == "18.19.0"
    assert parse_version("libprotoc 3.21.12") == "3.21.12"
    assert parse_version("no digits here") is None


def test_toolchain_accepts_matching_versions(monkeypatch, tmp_path):
    outputs = {"node": "v18.20.2", "protoc": "libprotoc 3.19.6"}
    monkeypatch.setattr(shutil, "which", lambda tool: f"/usr/bin/{tool}")

    def fake_run(args, capture_output=False, text=False, check=False):
        return DummyCompleted(outputs[args[0].rsplit("/", 1)[-1]])

    monkeypatch.setattr(subprocess, "run", fake_run)

    found = ToolchainStep({"node": "18", "protoc": "3.x"}).run(_context(tmp_path))

    assert found == {"node": "18.20.2", "protoc": "3.19.6"}


def test_toolchain_rejects_wrong_version(monkeypatch, tmp_path):
    monkeypatch.setattr(shutil, "which", lambda tool: f"/usr/bin/{tool}")
    monkeypatch.setattr(
        subprocess, "run", lambda args, **kwargs: DummyCompleted("libprotoc 25.1")
    )

    with pytest.raises(ToolchainError) as info:
        ToolchainStep({"protoc": "3.x"}).run(_context(tmp_path))
    assert "does not satisfy 3.x" in info.value.reason


def test_toolchain_missing_tool(monkeypatch, tmp_path):
    monkeypatch.setattr(shutil, "which", lambda tool: None)
    with pytest.raises(ToolchainError):
        ToolchainStep({"node": "18"}).run(_context(tmp_path))


def test_toolchain_skips_disabled_tools(monkeypatch, tmp_path):
    monkeypatch.setattr(shutil, "which", lambda tool: None)
    assert ToolchainStep({"node": None}).run(_context(tmp_path)) == {}


def test_command_step_invocation(monkeypatch, tmp_path):
    captured = {}
    monkeypatch.setattr(shutil, "which", lambda tool: None)

    def fake_run(args, cwd=None, check=False):
        captured["args"] = args
        captured["cwd"] = cwd
        return DummyCompleted("", returncode=0)

    monkeypatch.setattr(subprocess, "run", fake_run)

    context = _context(tmp_path)
    CommandStep("generate", "npm run gen-proto").run(context)

    assert captured["args"] == ["npm", "run", "gen-proto"]
    assert captured["cwd"] == context.workdir


def test_command_step_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(shutil, "which", lambda tool: None)
    monkeypatch.setattr(subprocess, "run", lambda args, **kwargs: DummyCompleted("", 2))

    with pytest.raises(StepFailedError) as info:
        CommandStep("lint", "npm run lint").run(_context(tmp_path))
    assert info.value.reason == "'npm run lint' exited with 2"


def test_empty_command_rejected(tmp_path):
    with pytest.raises(StepFailedError):
        CommandStep("noop", "   ").run(_context(tmp_path))


def test_fetch_upstream(monkeypatch, tmp_path):
    calls = []
    context = _context(tmp_path)
    monkeypatch.setattr(context.repo, "add_remote", lambda name, url: calls.append(("remote", name, url)))
    monkeypatch.setattr(context.repo, "fetch", lambda remote, ref: calls.append(("fetch", remote, ref)))

    FetchUpstreamStep().run(context)

    assert calls == [
        ("remote", "upstream", "https://github.com/risingwavelabs/risingwave.git"),
        ("fetch", "upstream", "main"),
    ]


def test_checkout_requires_work_tree(tmp_path):
    with pytest.raises(StepFailedError):
        CheckoutStep().run(_context(tmp_path))


def test_default_steps_follow_workflow_order():
    names = [step.name for step in default_steps(load_config())]
    assert names == [
        "checkout",
        "fetch-upstream",
        "toolchain",
        "install",
        "generate",
        "freshness",
        "lint",
        "build",
        "build-static",
    ]
