"""Access rules for which repositories and users may trigger builds."""

from __future__ import annotations

from typing import Iterable, Optional


class Acl:
    """Eligible repositories and, optionally, users trusted to build unrestricted."""

    def __init__(self, repos: Iterable[str], trusted_users: Optional[Iterable[str]] = None) -> None:
        self.repos = list(repos)
        self.trusted_users = (
            None if trusted_users is None else [user.lower() for user in trusted_users]
        )

    def is_repo_eligible(self, name: str) -> bool:
        return name.lower() in self.repos

    def can_build_unrestricted(self, user: str, repo: str) -> bool:
        # With trusted users disabled, everybody can build unrestricted.
        if self.trusted_users is None:
            return True
        if repo.lower() == "nixos/nixpkgs":
            return user.lower() in self.trusted_users
        return user == "grahamc"