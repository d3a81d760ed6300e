"""Parse bot instructions out of pull request comments."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Union

_PREFIXES = ("@grahamcofborg", "@ofborg")
_TERMINATOR = "@grahamcofborg"
_WHITESPACE = " \t\r\n"


class Subset(enum.Enum):
    """Which package set a build targets."""

    NIXPKGS = "Nixpkgs"
    NIXOS = "NixOS"


@dataclass(frozen=True)
class Build:
    """Build the given attributes from a package set."""

    subset: Subset
    attrs: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Eval:
    """Re-run the evaluation."""


Instruction = Union[Build, Eval]


class _NoMatch(Exception):
    pass


def _is_graphic(c: str) -> bool:
    return "\x21" <= c <= "\x7e"


class _LineParser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def skip_space(self) -> None:
        while not self.at_end() and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    def _matches_no_case(self, tag: str) -> bool:
        chunk = self.text[self.pos : self.pos + len(tag)]
        return len(chunk) == len(tag) and chunk.isascii() and chunk.lower() == tag

    def take_tag(self, tag: str, *, ignore_case: bool = False) -> bool:
        if ignore_case:
            matched = self._matches_no_case(tag)
        else:
            matched = self.text.startswith(tag, self.pos)
        if matched:
            self.pos += len(tag)
        return matched

    def normal_token(self) -> Optional[str]:
        start = self.pos
        end = start
        while end < len(self.text) and _is_graphic(self.text[end]):
            end += 1
        token = self.text[start:end]
        if not token or token.lower() == _TERMINATOR:
            return None
        self.pos = end
        return token

    def tokens(self) -> list[str]:
        found = []
        while True:
            save = self.pos
            self.skip_space()
            token = self.normal_token()
            if token is None:
                self.pos = save
                break
            found.append(token)
        if not found:
            raise _NoMatch
        return found

    def command(self, keyword: str) -> list[str]:
        start = self.pos
        try:
            if not self.take_tag(keyword):
                raise _NoMatch
            return self.tokens()
        except _NoMatch:
            self.pos = start
            raise

    def unknown(self) -> None:
        # Skip ahead past the next bot mention; the unknown command is dropped.
        while True:
            if self.take_tag(_TERMINATOR, ignore_case=True):
                return None
            if self.at_end():
                raise _NoMatch
            self.pos += 1

    def instruction(self) -> Optional[Instruction]:
        self.skip_space()
        if not any(self.take_tag(prefix, ignore_case=True) for prefix in _PREFIXES):
            raise _NoMatch
        self.skip_space()
        result: Optional[Instruction]
        try:
            result = Build(Subset.NIXPKGS, self.command("build"))
        except _NoMatch:
            try:
                result = Build(
                    Subset.NIXOS, [f"tests.{name}" for name in self.command("test")]
                )
            except _NoMatch:
                if self.take_tag("eval"):
                    result = Eval()
                else:
                    result = self.unknown()
        self.skip_space()
        return result


def parse_line(text: str) -> Optional[list[Instruction]]:
    """Parse one line; None unless the whole line is made of bot instructions.

    Unknown commands are skipped, so a line of only unknown commands gives [].
    """
    parser = _LineParser(text)
    found: list[Optional[Instruction]] = []
    while True:
        save = parser.pos
        try:
            found.append(parser.instruction())
        except _NoMatch:
            parser.pos = save
            break
    if not found or not parser.at_end():
        return None
    return [item for item in found if item is not None]


def parse(text: str) -> Optional[list[Instruction]]:
    """Collect the instructions of every line; None if there are none."""
    instructions: list[Instruction] = []
    for line in text.split("\n"):
        if line.endswith("\r"):
            line = line[:-1]
        instructions.extend(parse_line(line) or [])
    return instructions or None