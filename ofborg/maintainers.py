"""Maintainers affected by a change, and the packages they maintain."""

from __future__ import annotations

import json
from typing import Iterable, Mapping


class CalculationError(ValueError):
    """The impacted-maintainers data could not be decoded."""


class ImpactedMaintainers:
    """Packages touched by a change, grouped by maintainer."""

    def __init__(self, packages_by_maintainer: Mapping[str, Iterable[str]] = ()) -> None:
        self._by_maintainer: dict[str, list[str]] = {
            maintainer: list(packages)
            for maintainer, packages in dict(packages_by_maintainer).items()
        }

    @classmethod
    def from_json(cls, text: "str | bytes") -> "ImpactedMaintainers":
        """Decode a JSON object mapping maintainer names to lists of package names."""
        if isinstance(text, bytes):
            try:
                text = text.decode("utf-8")
            except UnicodeDecodeError as e:
                raise CalculationError(f"output is not UTF-8: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CalculationError(f"invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise CalculationError("expected an object of maintainers")
        for maintainer, packages in data.items():
            if not isinstance(packages, list) or not all(isinstance(p, str) for p in packages):
                raise CalculationError(
                    f"maintainer {maintainer!r}: expected a list of package names"
                )
        return cls(data)

    def maintainers(self) -> list[str]:
        return list(self._by_maintainer)

    def maintainers_by_package(self) -> dict[str, set[str]]:
        by_package: dict[str, set[str]] = {}
        for maintainer, packages in self._by_maintainer.items():
            for package in packages:
                by_package.setdefault(package, set()).add(maintainer)
        return by_package

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ImpactedMaintainers):
            return NotImplemented
        return self._by_maintainer == other._by_maintainer

    def __repr__(self) -> str:
        return f"ImpactedMaintainers({self._by_maintainer!r})"

    def __str__(self) -> str:
        return "\n".join(
            f"{maintainer}: {', '.join(packages)}"
            for maintainer, packages in self._by_maintainer.items()
        )