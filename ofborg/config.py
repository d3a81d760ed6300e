"""Service configuration loaded from a JSON file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from ofborg.acl import Acl

T = TypeVar("T")

_U16_MAX = 2**16 - 1
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


class ConfigError(ValueError):
    """The configuration is missing a field or holds a value of the wrong type."""


def _check_str(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"field `{key}`: expected a string, got {value!r}")
    return value


def _check_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"field `{key}`: expected a boolean, got {value!r}")
    return value


def _int_in(low: int, high: int) -> Callable[[str, Any], int]:
    def check(key: str, value: Any) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise ConfigError(f"field `{key}`: expected an integer, got {value!r}")
        if not low <= value <= high:
            raise ConfigError(f"field `{key}`: {value} is outside {low}..={high}")
        return value

    return check


def _check_str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise ConfigError(f"field `{key}`: expected a list of strings, got {value!r}")
    return [_check_str(key, item) for item in value]


def _check_one_or_many(key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return _check_str_list(key, value)
    raise ConfigError(f"field `{key}`: expected string or list of strings, got {value!r}")


def _check_section(key: str, value: Any) -> dict:
    if not isinstance(value, dict):
        raise ConfigError(f"field `{key}`: expected an object, got {value!r}")
    return value


def _required(data: dict, key: str, check: Callable[[str, Any], T]) -> T:
    value = data.get(key)
    if value is None:
        raise ConfigError(f"missing field `{key}`")
    return check(key, value)


def _optional(data: dict, key: str, check: Callable[[str, Any], T]) -> Optional[T]:
    value = data.get(key)
    if value is None:
        return None
    return check(key, value)


@dataclass
class FeedbackConfig:
    full_logs: bool


@dataclass
class RabbitMqConfig:
    ssl: bool
    host: str
    username: str
    password: str
    virtualhost: Optional[str] = None

    def as_uri(self) -> str:
        scheme = "amqps" if self.ssl else "amqp"
        vhost = self.virtualhost if self.virtualhost is not None else "/"
        return f"{scheme}://{self.username}:{self.password}@{self.host}/{vhost}"


@dataclass
class NixConfig:
    system: list[str]
    remote: str
    build_timeout_seconds: int
    initial_heap_size: Optional[str] = None


@dataclass
class GithubConfig:
    token: str


@dataclass
class GithubAppConfig:
    app_id: int
    installation_id: int
    private_key: Path


@dataclass
class LogStorage:
    path: str


@dataclass
class RunnerConfig:
    identity: str
    repos: Optional[list[str]] = None
    disable_trusted_users: bool = False
    trusted_users: Optional[list[str]] = None
    # When true, this builder attaches its own queue to the build job
    # exchange and answers every job; meant for development only.
    build_all_jobs: Optional[bool] = None


@dataclass
class CheckoutConfig:
    root: str


def _parse_runner(key: str, data: Any) -> RunnerConfig:
    data = _check_section(key, data)
    return RunnerConfig(
        identity=_required(data, "identity", _check_str),
        repos=_optional(data, "repos", _check_str_list),
        disable_trusted_users=bool(_optional(data, "disable_trusted_users", _check_bool)),
        trusted_users=_optional(data, "trusted_users", _check_str_list),
        build_all_jobs=_optional(data, "build_all_jobs", _check_bool),
    )


def _parse_feedback(key: str, data: Any) -> FeedbackConfig:
    data = _check_section(key, data)
    return FeedbackConfig(full_logs=_required(data, "full_logs", _check_bool))


def _parse_checkout(key: str, data: Any) -> CheckoutConfig:
    data = _check_section(key, data)
    return CheckoutConfig(root=_required(data, "root", _check_str))


def _parse_nix(key: str, data: Any) -> NixConfig:
    data = _check_section(key, data)
    return NixConfig(
        system=_required(data, "system", _check_one_or_many),
        remote=_required(data, "remote", _check_str),
        build_timeout_seconds=_required(data, "build_timeout_seconds", _int_in(0, _U16_MAX)),
        initial_heap_size=_optional(data, "initial_heap_size", _check_str),
    )


def _parse_rabbitmq(key: str, data: Any) -> RabbitMqConfig:
    data = _check_section(key, data)
    password = _required(data, "password", _check_str)
    return RabbitMqConfig(
        ssl=_required(data, "ssl", _check_bool),
        host=_required(data, "host", _check_str),
        virtualhost=_optional(data, "virtualhost", _check_str),
        username=_required(data, "username", _check_str),
        password=password,
    )


def _parse_github(key: str, data: Any) -> GithubConfig:
    data = _check_section(key, data)
    return GithubConfig(token=_required(data, "token", _check_str))


def _parse_github_app(key: str, data: Any) -> GithubAppConfig:
    data = _check_section(key, data)
    i32 = _int_in(_I32_MIN, _I32_MAX)
    key_path = _required(data, "private_key", _check_str)
    return GithubAppConfig(
        app_id=_required(data, "app_id", i32),
        installation_id=_required(data, "installation_id", i32),
        private_key=Path(key_path),
    )


def _parse_log_storage(key: str, data: Any) -> LogStorage:
    data = _check_section(key, data)
    return LogStorage(path=_required(data, "path", _check_str))


@dataclass
class Config:
    runner: RunnerConfig
    feedback: FeedbackConfig
    checkout: CheckoutConfig
    nix: NixConfig
    rabbitmq: RabbitMqConfig
    github: Optional[GithubConfig] = None
    github_app: Optional[GithubAppConfig] = None
    log_storage: Optional[LogStorage] = field(default=None)

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """Build a Config from decoded JSON, raising ConfigError on bad input."""
        data = _check_section("<root>", data)
        return cls(
            runner=_required(data, "runner", _parse_runner),
            feedback=_required(data, "feedback", _parse_feedback),
            checkout=_required(data, "checkout", _parse_checkout),
            nix=_required(data, "nix", _parse_nix),
            rabbitmq=_required(data, "rabbitmq", _parse_rabbitmq),
            github=_optional(data, "github", _parse_github),
            github_app=_optional(data, "github_app", _parse_github_app),
            log_storage=_optional(data, "log_storage", _parse_log_storage),
        )

    def whoami(self) -> str:
        return f"{self.runner.identity}-{','.join(self.nix.system)}"

    def acl(self) -> Acl:
        """The access rules; trusted users are required unless disabled."""
        if self.runner.repos is None:
            raise ConfigError("fetching config's runner.repos")
        if self.runner.disable_trusted_users:
            trusted_users = None
        else:
            if self.runner.trusted_users is None:
                raise ConfigError("fetching config's runner.trusted_users")
            trusted_users = list(self.runner.trusted_users)
        return Acl(list(self.runner.repos), trusted_users)


def load(filename: "os.PathLike[str] | str") -> Config:
    """Read and validate the JSON configuration file."""
    with open(filename, encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"invalid JSON in {os.fspath(filename)}: {e}") from e
    return Config.from_dict(data)