import pytest

from regen_gate.errors import GitError
from regen_gate.git import GitRepo

from tests.utils.git_project import git


def test_add_remote_is_idempotent(project):
    repo = GitRepo(project.fork)

    repo.add_remote("mirror", "https://example.com/a.git")
    repo.add_remote("mirror", "https://example.com/b.git")

    assert repo.remotes().count("mirror") == 1
    assert git(project.fork, "remote", "get-url", "mirror") == "https://example.com/b.git"


def test_stage_and_reset(project):
    repo = GitRepo(project.fork / "dashboard")
    project.write(project.fork, "dashboard/new.txt", "x\n")

    repo.stage_all()
    assert repo.has_staged_changes()
    assert repo.staged_files() == ["dashboard/new.txt"]

    repo.reset()
    assert not repo.has_staged_changes()


def test_merge_base_and_changes(project):
    initial = git(project.fork, "rev-parse", "HEAD")
    project.write(project.fork, "proto/a.proto", "message A {}\n")
    project.write(project.fork, "docs.md", "x\n")
    project.commit(project.fork, "change")

    repo = GitRepo(project.fork / "dashboard")

    assert repo.merge_base("HEAD", "upstream/main") == initial
    assert repo.has_changes(f"{initial}..HEAD", ["../proto"])
    assert repo.changed_files(f"{initial}..HEAD", ["../proto"]) == ["proto/a.proto"]
    assert sorted(repo.changed_files(f"{initial}..HEAD")) == ["docs.md", "proto/a.proto"]


def test_unrelated_histories_have_no_merge_base(project):
    git(project.fork, "checkout", "-q", "--orphan", "island")
    git(project.fork, "rm", "-rq", "--cached", ".")
    project.write(project.fork, "island.txt", "alone\n")
    git(project.fork, "add", "island.txt")
    git(project.fork, "commit", "-q", "-m", "island")

    assert GitRepo(project.fork).merge_base("island", "main") is None


def test_errors_carry_git_output(project):
    repo = GitRepo(project.fork)
    with pytest.raises(GitError) as info:
        repo.fetch("nowhere", "main")
    assert info.value.returncode != 0
    assert info.value.command[:2] == ["git", "fetch"]
    assert info.value.stderr


def test_outside_work_tree(tmp_path):
    assert not GitRepo(tmp_path).is_work_tree()
