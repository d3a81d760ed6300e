"""Git clone management guarded by exclusive file locks."""

from __future__ import annotations

import logging
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path

from ofborg.locks import Lock, acquire_lock

log = logging.getLogger(__name__)


class GitError(OSError):
    """A git command ran but did not succeed."""


class GitClonable(ABC):
    """A git working copy or bare repository cloned from a remote."""

    @abstractmethod
    def clone_from(self) -> str:
        """URL or path the repository is cloned from."""

    @abstractmethod
    def clone_to(self) -> Path:
        """Directory the repository is cloned into."""

    @abstractmethod
    def extra_clone_args(self) -> list[str]:
        """Extra arguments passed to ``git clone``."""

    @abstractmethod
    def lock_path(self) -> Path:
        """Path of the lock file guarding the clone."""

    def lock(self) -> Lock:
        path = self.lock_path()
        log.debug("Locking %s", path)
        try:
            lock = acquire_lock(path)
        except OSError as e:
            log.warning("Failed to lock %s: %s", path, e)
            raise
        log.debug("Got lock on %s", path)
        return lock

    def clone_repo(self) -> None:
        with self.lock():
            if self.clone_to().is_dir():
                log.debug("Found dir at %s, initial clone is done", self.clone_to())
                return

            log.info("Initial cloning of %s to %s", self.clone_from(), self.clone_to())
            result = subprocess.run(
                ["git", "clone", *self.extra_clone_args(), self.clone_from(), str(self.clone_to())],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )

        if result.returncode != 0:
            raise GitError(
                f"Failed to clone from {self.clone_from()!r} to {str(self.clone_to())!r}"
            )

    def fetch_repo(self) -> None:
        with self.lock():
            log.info("Fetching from origin in %s", self.clone_to())
            result = subprocess.run(
                ["git", "fetch", "origin"],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )
        if result.returncode != 0:
            raise GitError("Failed to fetch")

    def clean(self) -> None:
        with self.lock():
            log.debug("git am --abort")
            subprocess.run(
                ["git", "am", "--abort"],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            log.debug("git merge --abort")
            subprocess.run(
                ["git", "merge", "--abort"],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            log.debug("git reset --hard")
            subprocess.run(
                ["git", "reset", "--hard"],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )

    def checkout(self, git_ref: str) -> None:
        with self.lock():
            log.debug("git checkout %s", git_ref)
            result = subprocess.run(
                ["git", "checkout", git_ref],
                cwd=self.clone_to(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
            )
        if result.returncode != 0:
            raise GitError("Failed to checkout")