"""Cached git clones of projects, with per-use working copies."""

from __future__ import annotations

import hashlib
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from ofborg.clone import GitClonable, GitError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedCloner:
    """Root directory under which project caches live."""

    root: Path

    def project(self, name: str, clone_url: str) -> "CachedProject":
        # <root>/repo/<md5 of name>/clone is the shared bare cache;
        # <root>/repo/<md5 of name>/<category>/<id> are working copies.
        digest = hashlib.md5(name.encode("utf-8")).hexdigest()
        return CachedProject(root=self.root / "repo" / digest, clone_url=clone_url)


def cached_cloner(path: "os.PathLike[str] | str") -> CachedCloner:
    return CachedCloner(Path(path))


@dataclass(frozen=True)
class CachedProject(GitClonable):
    """A project's bare clone cache."""

    root: Path
    clone_url: str

    def clone_for(self, use_category: str, id: str) -> "CachedProjectCo":
        """Refresh the cache and describe a working copy for one category and id."""
        self._prefetch_cache()
        return CachedProjectCo(
            root=self.root / use_category,
            id=id,
            clone_url=self.clone_from(),
            local_reference=self.clone_to(),
        )

    def _prefetch_cache(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        self.clone_repo()
        self.fetch_repo()
        return self.clone_to()

    def clone_from(self) -> str:
        return self.clone_url

    def clone_to(self) -> Path:
        return self.root / "clone"

    def lock_path(self) -> Path:
        return self.root / "clone.lock"

    def extra_clone_args(self) -> list[str]:
        return ["--bare"]


@dataclass(frozen=True)
class CachedProjectCo(GitClonable):
    """A working copy that shares objects with its project's cache."""

    root: Path
    id: str
    clone_url: str
    local_reference: Path

    def clone_from(self) -> str:
        return self.clone_url

    def clone_to(self) -> Path:
        return self.root / self.id

    def lock_path(self) -> Path:
        return self.root / f"{self.id}.lock"

    def extra_clone_args(self) -> list[str]:
        return ["--shared", "--reference-if-able", os.fspath(self.local_reference)]

    def checkout_origin_ref(self, git_ref: str) -> str:
        return self.checkout_ref(f"origin/{git_ref}")

    def checkout_ref(self, git_ref: str) -> str:
        """Bring the working copy up to date, clean it and check out git_ref."""
        self.root.mkdir(parents=True, exist_ok=True)
        self.clone_repo()
        self.fetch_repo()
        self.clean()
        self.checkout(git_ref)
        return str(self.clone_to())

    def fetch_pr(self, pr_id: int) -> None:
        with self.lock():
            log.info("Fetching PR #%s", pr_id)
            result = subprocess.run(
                ["git", "fetch", "origin", f"+refs/pull/{pr_id}/head:pr"],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )
        if result.returncode != 0:
            raise GitError("Failed to fetch PR")

    def commit_exists(self, commit: str) -> bool:
        with self.lock():
            log.info("Checking if commit %r exists", commit)
            result = subprocess.run(
                ["git", "--no-pager", "show", commit],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )
        return result.returncode == 0

    def merge_commit(self, commit: str) -> None:
        with self.lock():
            log.info("Merging commit %r", commit)
            result = subprocess.run(
                [
                    "git",
                    "merge",
                    "--no-gpg-sign",
                    "-m",
                    "Automatic merge for GrahamCOfBorg",
                    commit,
                ],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )
        if result.returncode != 0:
            raise GitError("Failed to merge")

    def commit_messages_from_head(self, commit: str) -> list[str]:
        """Subjects of the commits reachable from commit but not from HEAD."""
        return self._output_lines(["git", "log", "--format=format:%s", f"HEAD..{commit}"])

    def files_changed_from_head(self, commit: str) -> list[str]:
        """Files changed between the merge base of HEAD and commit, and commit."""
        return self._output_lines(["git", "diff", "--name-only", f"HEAD...{commit}"])

    def _output_lines(self, args: list[str]) -> list[str]:
        with self.lock():
            result = subprocess.run(
                args,
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                capture_output=True,
            )
        if result.returncode != 0:
            raise GitError(result.stderr.decode("utf-8", errors="replace").lower())
        return result.stdout.decode("utf-8", errors="replace").splitlines()