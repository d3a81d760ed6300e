import subprocess

import pytest

from ofborg.clone import GitClonable, GitError


class LocalClone(GitClonable):
    def __init__(self, source, dest, extra=()):
        self.source = source
        self.dest = dest
        self.extra = list(extra)

    def clone_from(self):
        return str(self.source)

    def clone_to(self):
        return self.dest

    def extra_clone_args(self):
        return self.extra

    def lock_path(self):
        return self.dest.parent / (self.dest.name + ".lock")


def _git(*args, cwd):
    subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        check=True,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


@pytest.fixture(autouse=True)
def git_env(monkeypatch, tmp_path):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(key, "Test User")
    for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(key, "test@example.com")


@pytest.fixture
def source(tmp_path):
    repo = tmp_path / "source"
    repo.mkdir()
    _git("init", cwd=repo)
    _git("symbolic-ref", "HEAD", "refs/heads/master", cwd=repo)
    (repo / "file.txt").write_text("one\n")
    _git("add", "file.txt", cwd=repo)
    _git("commit", "-m", "first", cwd=repo)
    return repo


def test_clone_repo_creates_checkout(source, tmp_path):
    clone = LocalClone(source, tmp_path / "dest")
    GitClonable.clone_repo(clone)
    assert (tmp_path / "dest" / "file.txt").read_text() == "one\n"
    assert clone.lock_path().exists()


def test_clone_repo_is_idempotent(source, tmp_path):
    clone = LocalClone(source, tmp_path / "dest")
    GitClonable.clone_repo(clone)
    (clone.clone_to() / "marker").write_text("kept")
    GitClonable.clone_repo(clone)
    assert (clone.clone_to() / "marker").read_text() == "kept"
    assert (clone.clone_to() / "file.txt").read_text() == "one\n"
    assert clone.lock_path().exists()


def test_clone_repo_uses_extra_args(source, tmp_path):
    clone = LocalClone(source, tmp_path / "bare", extra=["--bare"])
    GitClonable.clone_repo(clone)
    assert (clone.clone_to() / "HEAD").is_file()
    assert not (clone.clone_to() / ".git").exists()
    assert not (clone.clone_to() / "file.txt").exists()


def test_clone_repo_failure_raises(tmp_path):
    clone = LocalClone(tmp_path / "does-not-exist", tmp_path / "dest")
    with pytest.raises(GitError):
        GitClonable.clone_repo(clone)
    assert not (tmp_path / "dest").exists()


def test_fetch_and_checkout_new_commit(source, tmp_path):
    clone = LocalClone(source, tmp_path / "dest")
    GitClonable.clone_repo(clone)
    (source / "file.txt").write_text("two\n")
    _git("commit", "-am", "second", cwd=source)
    GitClonable.fetch_repo(clone)
    assert (clone.clone_to() / "file.txt").read_text() == "one\n"
    GitClonable.checkout(clone, "origin/master")
    assert (clone.clone_to() / "file.txt").read_text() == "two\n"


def test_checkout_unknown_ref_raises(source, tmp_path):
    clone = LocalClone(source, tmp_path / "dest")
    GitClonable.clone_repo(clone)
    with pytest.raises(GitError):
        GitClonable.checkout(clone, "no-such-ref")


def test_clean_restores_tracked_files(source, tmp_path):
    clone = LocalClone(source, tmp_path / "dest")
    GitClonable.clone_repo(clone)
    (clone.clone_to() / "file.txt").write_text("dirty\n")
    GitClonable.clean(clone)
    assert (clone.clone_to() / "file.txt").read_text() == "one\n"


def test_fetch_without_clone_fails(source, tmp_path):
    clone = LocalClone(source, tmp_path / "dest")
    with pytest.raises(OSError):
        GitClonable.fetch_repo(clone)