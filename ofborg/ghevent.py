"""GitHub webhook payloads: issue comments and pull request events."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

T = TypeVar("T")

_U64_MAX = 2**64 - 1


class EventError(ValueError):
    """A webhook payload is missing a field or holds a value of the wrong type."""


def _check_dict(key: str, value: Any) -> dict:
    if not isinstance(value, dict):
        raise EventError(f"field `{key}`: expected an object, got {value!r}")
    return value


def _check_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise EventError(f"field `{key}`: expected a string, got {value!r}")
    return value


def _check_u64(key: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= _U64_MAX:
        raise EventError(f"field `{key}`: expected an unsigned integer, got {value!r}")
    return value


def _required(data: dict, key: str, check: Callable[[str, Any], T]) -> T:
    if key not in data:
        raise EventError(f"missing field `{key}`")
    return check(key, data[key])


def _optional(data: dict, key: str, check: Callable[[str, Any], T]) -> Optional[T]:
    value = data.get(key)
    if value is None:
        return None
    return check(key, value)


@dataclass(frozen=True)
class User:
    login: str


@dataclass(frozen=True)
class Comment:
    body: str
    user: User


@dataclass(frozen=True)
class Repository:
    owner: User
    name: str
    full_name: str
    clone_url: str


@dataclass(frozen=True)
class Issue:
    number: int


def _parse_user(key: str, value: Any) -> User:
    data = _check_dict(key, value)
    return User(login=_required(data, "login", _check_str))


def _parse_comment(key: str, value: Any) -> Comment:
    data = _check_dict(key, value)
    return Comment(
        body=_required(data, "body", _check_str),
        user=_required(data, "user", _parse_user),
    )


def _parse_repository(key: str, value: Any) -> Repository:
    data = _check_dict(key, value)
    return Repository(
        owner=_required(data, "owner", _parse_user),
        name=_required(data, "name", _check_str),
        full_name=_required(data, "full_name", _check_str),
        clone_url=_required(data, "clone_url", _check_str),
    )


def _parse_issue(key: str, value: Any) -> Issue:
    data = _check_dict(key, value)
    return Issue(number=_required(data, "number", _check_u64))


class IssueCommentAction(enum.Enum):
    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"


def _parse_issue_comment_action(key: str, value: Any) -> IssueCommentAction:
    try:
        return IssueCommentAction(_check_str(key, value))
    except ValueError as e:
        if isinstance(e, EventError):
            raise
        raise EventError(f"field `{key}`: unknown action {value!r}") from e


@dataclass(frozen=True)
class IssueComment:
    action: IssueCommentAction
    comment: Comment
    repository: Repository
    issue: Issue

    @classmethod
    def from_dict(cls, data: Any) -> "IssueComment":
        """Build from a decoded issue_comment payload, raising EventError on bad input."""
        data = _check_dict("<root>", data)
        return cls(
            action=_required(data, "action", _parse_issue_comment_action),
            comment=_required(data, "comment", _parse_comment),
            repository=_required(data, "repository", _parse_repository),
            issue=_required(data, "issue", _parse_issue),
        )


class PullRequestState(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class PullRequestAction(enum.Enum):
    """Actions of interest; any other action is UNKNOWN."""

    EDITED = "edited"
    OPENED = "opened"
    REOPENED = "reopened"
    SYNCHRONIZE = "synchronize"
    UNKNOWN = "unknown"


def _parse_pr_state(key: str, value: Any) -> PullRequestState:
    text = _check_str(key, value)
    try:
        return PullRequestState(text)
    except ValueError as e:
        raise EventError(f"field `{key}`: unknown state {text!r}") from e


def _parse_pr_action(key: str, value: Any) -> PullRequestAction:
    text = _check_str(key, value)
    try:
        return PullRequestAction(text)
    except ValueError:
        return PullRequestAction.UNKNOWN


@dataclass(frozen=True)
class ChangeWas:
    from_: str


@dataclass(frozen=True)
class BaseChange:
    git_ref: ChangeWas
    sha: ChangeWas


@dataclass(frozen=True)
class PullRequestChanges:
    base: Optional[BaseChange] = None


@dataclass(frozen=True)
class PullRequestRef:
    git_ref: str
    sha: str


@dataclass(frozen=True)
class PullRequest:
    state: PullRequestState
    base: PullRequestRef
    head: PullRequestRef


def _parse_change_was(key: str, value: Any) -> ChangeWas:
    data = _check_dict(key, value)
    return ChangeWas(from_=_required(data, "from", _check_str))


def _parse_base_change(key: str, value: Any) -> BaseChange:
    data = _check_dict(key, value)
    return BaseChange(
        git_ref=_required(data, "ref", _parse_change_was),
        sha=_required(data, "sha", _parse_change_was),
    )


def _parse_changes(key: str, value: Any) -> PullRequestChanges:
    data = _check_dict(key, value)
    return PullRequestChanges(base=_optional(data, "base", _parse_base_change))


def _parse_pr_ref(key: str, value: Any) -> PullRequestRef:
    data = _check_dict(key, value)
    return PullRequestRef(
        git_ref=_required(data, "ref", _check_str),
        sha=_required(data, "sha", _check_str),
    )


def _parse_pull_request(key: str, value: Any) -> PullRequest:
    data = _check_dict(key, value)
    return PullRequest(
        state=_required(data, "state", _parse_pr_state),
        base=_required(data, "base", _parse_pr_ref),
        head=_required(data, "head", _parse_pr_ref),
    )


@dataclass(frozen=True)
class PullRequestEvent:
    action: PullRequestAction
    number: int
    repository: Repository
    pull_request: PullRequest
    changes: Optional[PullRequestChanges] = None

    @classmethod
    def from_dict(cls, data: Any) -> "PullRequestEvent":
        """Build from a decoded pull_request payload, raising EventError on bad input."""
        data = _check_dict("<root>", data)
        return cls(
            action=_required(data, "action", _parse_pr_action),
            number=_required(data, "number", _check_u64),
            repository=_required(data, "repository", _parse_repository),
            pull_request=_required(data, "pull_request", _parse_pull_request),
            changes=_optional(data, "changes", _parse_changes),
        )