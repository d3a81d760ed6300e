"""Messages exchanged between services: build jobs, build logs, results and evaluation jobs."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Optional, TypeVar

from ofborg.commentparser import Subset

T = TypeVar("T")

_U64_MAX = 2**64 - 1

ExchangeQueue = tuple[Optional[str], Optional[str]]


class MessageError(ValueError):
    """A message is missing a field or holds a value of the wrong type."""


def _dumps(data: Any) -> str:
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def _loads(data: "str | bytes") -> Any:
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise MessageError(f"invalid JSON: {e}") from e
    except UnicodeDecodeError as e:
        raise MessageError(f"message is not UTF-8: {e}") from e


def _check_dict(key: str, value: Any) -> dict:
    if not isinstance(value, dict):
        raise MessageError(f"field `{key}`: expected an object, got {value!r}")
    return value


def _check_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise MessageError(f"field `{key}`: expected a string, got {value!r}")
    return value


def _check_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise MessageError(f"field `{key}`: expected a boolean, got {value!r}")
    return value


def _check_u64(key: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= _U64_MAX:
        raise MessageError(f"field `{key}`: expected an unsigned integer, got {value!r}")
    return value


def _check_str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise MessageError(f"field `{key}`: expected a list of strings, got {value!r}")
    return [_check_str(key, item) for item in value]


def _check_subset(key: str, value: Any) -> Subset:
    text = _check_str(key, value)
    try:
        return Subset(text)
    except ValueError as e:
        raise MessageError(f"field `{key}`: unknown subset {text!r}") from e


def _check_exchange_queue(key: str, value: Any) -> ExchangeQueue:
    if not isinstance(value, list) or len(value) != 2:
        raise MessageError(f"field `{key}`: expected a pair, got {value!r}")
    exchange, routing_key = value
    return (
        None if exchange is None else _check_str(key, exchange),
        None if routing_key is None else _check_str(key, routing_key),
    )


def _required(data: dict, key: str, check: Callable[[str, Any], T]) -> T:
    if key not in data:
        raise MessageError(f"missing field `{key}`")
    return check(key, data[key])


def _optional(data: dict, key: str, check: Callable[[str, Any], T]) -> Optional[T]:
    value = data.get(key)
    if value is None:
        return None
    return check(key, value)


def _copy(items: Optional[list[str]]) -> Optional[list[str]]:
    return None if items is None else list(items)


@dataclass
class Repo:
    owner: str
    name: str
    full_name: str
    clone_url: str

    @classmethod
    def from_dict(cls, data: Any) -> "Repo":
        data = _check_dict("repo", data)
        return cls(
            owner=_required(data, "owner", _check_str),
            name=_required(data, "name", _check_str),
            full_name=_required(data, "full_name", _check_str),
            clone_url=_required(data, "clone_url", _check_str),
        )

    def to_dict(self) -> dict:
        return {
            "owner": self.owner,
            "name": self.name,
            "full_name": self.full_name,
            "clone_url": self.clone_url,
        }


@dataclass
class Pr:
    number: int
    head_sha: str
    target_branch: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "Pr":
        data = _check_dict("pr", data)
        return cls(
            target_branch=_optional(data, "target_branch", _check_str),
            number=_required(data, "number", _check_u64),
            head_sha=_required(data, "head_sha", _check_str),
        )

    def to_dict(self) -> dict:
        return {
            "target_branch": self.target_branch,
            "number": self.number,
            "head_sha": self.head_sha,
        }


def _parse_repo(key: str, value: Any) -> Repo:
    return Repo.from_dict(value)


def _parse_pr(key: str, value: Any) -> Pr:
    return Pr.from_dict(value)


@dataclass
class BuildJob:
    """A request to build attributes of a pull request."""

    repo: Repo
    pr: Pr
    attrs: list[str]
    request_id: str
    subset: Optional[Subset] = None
    logs: Optional[ExchangeQueue] = None
    statusreport: Optional[ExchangeQueue] = None

    @classmethod
    def create(
        cls,
        repo: Repo,
        pr: Pr,
        subset: Subset,
        attrs: list[str],
        logs: Optional[ExchangeQueue],
        statusreport: Optional[ExchangeQueue],
        request_id: str,
    ) -> "BuildJob":
        """A job with logs sent to "logs" and results to "build-results" unless given."""
        logbackrk = f"{repo.full_name}.{pr.number}".lower()
        return cls(
            repo=repo,
            pr=pr,
            subset=subset,
            attrs=list(attrs),
            logs=logs if logs is not None else ("logs", logbackrk),
            statusreport=statusreport if statusreport is not None else ("build-results", None),
            request_id=request_id,
        )

    @classmethod
    def from_dict(cls, data: Any) -> "BuildJob":
        data = _check_dict("<root>", data)
        return cls(
            repo=_required(data, "repo", _parse_repo),
            pr=_required(data, "pr", _parse_pr),
            subset=_optional(data, "subset", _check_subset),
            attrs=_required(data, "attrs", _check_str_list),
            request_id=_required(data, "request_id", _check_str),
            logs=_optional(data, "logs", _check_exchange_queue),
            statusreport=_optional(data, "statusreport", _check_exchange_queue),
        )

    def to_dict(self) -> dict:
        return {
            "repo": self.repo.to_dict(),
            "pr": self.pr.to_dict(),
            "subset": None if self.subset is None else self.subset.value,
            "attrs": list(self.attrs),
            "request_id": self.request_id,
            "logs": None if self.logs is None else list(self.logs),
            "statusreport": None if self.statusreport is None else list(self.statusreport),
        }

    def to_json(self) -> str:
        return _dumps(self.to_dict())


def buildjob_from(data: "str | bytes") -> BuildJob:
    """Decode a JSON build job."""
    return BuildJob.from_dict(_loads(data))


@dataclass
class QueuedBuildJobs:
    job: BuildJob
    architectures: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"job": self.job.to_dict(), "architectures": list(self.architectures)}


@dataclass
class BuildLogMsg:
    system: str
    identity: str
    attempt_id: str
    line_number: int
    output: str

    @classmethod
    def from_dict(cls, data: Any) -> "BuildLogMsg":
        data = _check_dict("<root>", data)
        return cls(
            system=_required(data, "system", _check_str),
            identity=_required(data, "identity", _check_str),
            attempt_id=_required(data, "attempt_id", _check_str),
            line_number=_required(data, "line_number", _check_u64),
            output=_required(data, "output", _check_str),
        )

    def to_dict(self) -> dict:
        return {
            "system": self.system,
            "identity": self.identity,
            "attempt_id": self.attempt_id,
            "line_number": self.line_number,
            "output": self.output,
        }


@dataclass
class BuildLogStart:
    system: str
    identity: str
    attempt_id: str
    attempted_attrs: Optional[list[str]] = None
    skipped_attrs: Optional[list[str]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "BuildLogStart":
        data = _check_dict("<root>", data)
        return cls(
            system=_required(data, "system", _check_str),
            identity=_required(data, "identity", _check_str),
            attempt_id=_required(data, "attempt_id", _check_str),
            attempted_attrs=_optional(data, "attempted_attrs", _check_str_list),
            skipped_attrs=_optional(data, "skipped_attrs", _check_str_list),
        )

    def to_dict(self) -> dict:
        return {
            "system": self.system,
            "identity": self.identity,
            "attempt_id": self.attempt_id,
            "attempted_attrs": _copy(self.attempted_attrs),
            "skipped_attrs": _copy(self.skipped_attrs),
        }


class Conclusion(enum.Enum):
    """Check-run conclusions a build status maps to."""

    SKIPPED = "skipped"
    SUCCESS = "success"
    NEUTRAL = "neutral"
    FAILURE = "failure"


class BuildStatusKind(enum.Enum):
    SKIPPED = "Skipped"
    SUCCESS = "Success"
    FAILURE = "Failure"
    TIMED_OUT = "TimedOut"
    HASH_MISMATCH = "HashMismatch"
    UNEXPECTED_ERROR = "UnexpectedError"


_DESCRIPTIONS = {
    BuildStatusKind.SKIPPED: "No attempt",
    BuildStatusKind.SUCCESS: "Success",
    BuildStatusKind.FAILURE: "Failure",
    BuildStatusKind.HASH_MISMATCH: "A fixed output derivation's hash was incorrect",
    BuildStatusKind.TIMED_OUT: "Timed out, unknown build status",
}

_CONCLUSIONS = {
    BuildStatusKind.SKIPPED: Conclusion.SKIPPED,
    BuildStatusKind.SUCCESS: Conclusion.SUCCESS,
    BuildStatusKind.FAILURE: Conclusion.NEUTRAL,
    BuildStatusKind.HASH_MISMATCH: Conclusion.FAILURE,
    BuildStatusKind.TIMED_OUT: Conclusion.NEUTRAL,
    BuildStatusKind.UNEXPECTED_ERROR: Conclusion.NEUTRAL,
}


@dataclass(frozen=True)
class BuildStatus:
    """Outcome of a build; an unexpected error carries its message."""

    kind: BuildStatusKind
    err: Optional[str] = None

    SKIPPED: ClassVar["BuildStatus"]
    SUCCESS: ClassVar["BuildStatus"]
    FAILURE: ClassVar["BuildStatus"]
    TIMED_OUT: ClassVar["BuildStatus"]
    HASH_MISMATCH: ClassVar["BuildStatus"]

    def __post_init__(self) -> None:
        if (self.kind is BuildStatusKind.UNEXPECTED_ERROR) != (self.err is not None):
            raise ValueError("only an unexpected error carries an error message")

    @classmethod
    def unexpected_error(cls, err: str) -> "BuildStatus":
        return cls(BuildStatusKind.UNEXPECTED_ERROR, err)

    def describe(self) -> str:
        if self.kind is BuildStatusKind.UNEXPECTED_ERROR:
            return f"Unexpected error: {self.err}"
        return _DESCRIPTIONS[self.kind]

    def conclusion(self) -> Conclusion:
        return _CONCLUSIONS[self.kind]

    def to_json_value(self) -> Any:
        if self.kind is BuildStatusKind.UNEXPECTED_ERROR:
            return {self.kind.value: {"err": self.err}}
        return self.kind.value

    @classmethod
    def from_json_value(cls, value: Any) -> "BuildStatus":
        if isinstance(value, str):
            try:
                kind = BuildStatusKind(value)
            except ValueError as e:
                raise MessageError(f"unknown build status {value!r}") from e
            if kind is BuildStatusKind.UNEXPECTED_ERROR:
                raise MessageError("UnexpectedError requires an error message")
            return cls(kind)
        if isinstance(value, dict) and len(value) == 1:
            ((name, payload),) = value.items()
            if name != BuildStatusKind.UNEXPECTED_ERROR.value:
                raise MessageError(f"unknown build status {name!r}")
            payload = _check_dict(name, payload)
            return cls.unexpected_error(_required(payload, "err", _check_str))
        raise MessageError(f"not a build status: {value!r}")


BuildStatus.SKIPPED = BuildStatus(BuildStatusKind.SKIPPED)
BuildStatus.SUCCESS = BuildStatus(BuildStatusKind.SUCCESS)
BuildStatus.FAILURE = BuildStatus(BuildStatusKind.FAILURE)
BuildStatus.TIMED_OUT = BuildStatus(BuildStatusKind.TIMED_OUT)
BuildStatus.HASH_MISMATCH = BuildStatus(BuildStatusKind.HASH_MISMATCH)


def _check_status(key: str, value: Any) -> BuildStatus:
    return BuildStatus.from_json_value(value)


@dataclass
class LegacyBuildResult:
    repo: Repo
    pr: Pr
    system: str
    output: list[str]
    attempt_id: str
    request_id: str
    status: BuildStatus
    skipped_attrs: Optional[list[str]] = None
    attempted_attrs: Optional[list[str]] = None


_V1_TAG = "V1"


@dataclass
class BuildResult:
    """A build result in either the tagged V1 format or the legacy format.

    V1 results always carry ``build_status``; legacy ones may instead carry
    only ``success``, or neither.
    """

    repo: Repo
    pr: Pr
    system: str
    output: list[str]
    attempt_id: str
    request_id: str
    build_status: Optional[BuildStatus] = None
    success: Optional[bool] = None
    skipped_attrs: Optional[list[str]] = None
    attempted_attrs: Optional[list[str]] = None
    v1: bool = False

    def __post_init__(self) -> None:
        if self.v1 and self.build_status is None:
            raise ValueError("a V1 build result requires a status")

    @classmethod
    def _common(cls, data: dict) -> dict:
        return {
            "repo": _required(data, "repo", _parse_repo),
            "pr": _required(data, "pr", _parse_pr),
            "system": _required(data, "system", _check_str),
            "output": _required(data, "output", _check_str_list),
            "attempt_id": _required(data, "attempt_id", _check_str),
            "request_id": _required(data, "request_id", _check_str),
            "skipped_attrs": _optional(data, "skipped_attrs", _check_str_list),
            "attempted_attrs": _optional(data, "attempted_attrs", _check_str_list),
        }

    @classmethod
    def _parse_v1(cls, data: dict) -> "BuildResult":
        tag = _required(data, "tag", _check_str)
        if tag != _V1_TAG:
            raise MessageError(f"unknown tag {tag!r}")
        return cls(
            **cls._common(data),
            build_status=_required(data, "status", _check_status),
            v1=True,
        )

    @classmethod
    def _parse_legacy(cls, data: dict) -> "BuildResult":
        return cls(
            **cls._common(data),
            build_status=_optional(data, "status", _check_status),
            success=_optional(data, "success", _check_bool),
        )

    @classmethod
    def from_dict(cls, data: Any) -> "BuildResult":
        data = _check_dict("<root>", data)
        try:
            return cls._parse_v1(data)
        except MessageError:
            pass
        try:
            return cls._parse_legacy(data)
        except MessageError as e:
            raise MessageError(f"data did not match any build result format: {e}") from e

    @classmethod
    def from_json(cls, text: "str | bytes") -> "BuildResult":
        return cls.from_dict(_loads(text))

    def to_dict(self) -> dict:
        out: dict = {}
        if self.v1:
            out["tag"] = _V1_TAG
        out.update(
            repo=self.repo.to_dict(),
            pr=self.pr.to_dict(),
            system=self.system,
            output=list(self.output),
            attempt_id=self.attempt_id,
            request_id=self.request_id,
        )
        if not self.v1:
            out["success"] = self.success
        out["status"] = None if self.build_status is None else self.build_status.to_json_value()
        out["skipped_attrs"] = _copy(self.skipped_attrs)
        out["attempted_attrs"] = _copy(self.attempted_attrs)
        return out

    def to_json(self) -> str:
        return _dumps(self.to_dict())

    def legacy(self) -> LegacyBuildResult:
        return LegacyBuildResult(
            repo=Repo(**self.repo.to_dict()),
            pr=Pr(**self.pr.to_dict()),
            system=self.system,
            output=list(self.output),
            attempt_id=self.attempt_id,
            request_id=self.request_id,
            status=self.status(),
            skipped_attrs=_copy(self.skipped_attrs),
            attempted_attrs=_copy(self.attempted_attrs),
        )

    def status(self) -> BuildStatus:
        if self.build_status is not None:
            return self.build_status
        # Older messages only reported success.
        if self.success is None:
            return BuildStatus.SKIPPED
        return BuildStatus.SUCCESS if self.success else BuildStatus.FAILURE


@dataclass
class EvaluationJob:
    repo: Repo
    pr: Pr

    @classmethod
    def from_dict(cls, data: Any) -> "EvaluationJob":
        data = _check_dict("<root>", data)
        return cls(
            repo=_required(data, "repo", _parse_repo),
            pr=_required(data, "pr", _parse_pr),
        )

    def to_dict(self) -> dict:
        return {"repo": self.repo.to_dict(), "pr": self.pr.to_dict()}

    def is_nixpkgs(self) -> bool:
        return self.repo.name == "nixpkgs"


def evaluationjob_from(data: "str | bytes") -> EvaluationJob:
    """Decode a JSON evaluation job."""
    return EvaluationJob.from_dict(_loads(data))