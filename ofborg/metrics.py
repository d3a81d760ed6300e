"""Metric definitions, the events that feed them, and a Prometheus collector."""

from __future__ import annotations

import enum
import json
import threading
from dataclasses import dataclass
from typing import Any, Iterable, Optional

_COLLECTOR_TYPE = "u64"
_U64_MAX = 2**64 - 1


class MetricKind(enum.Enum):
    """A ticker counts occurrences; a counter accumulates a reported value."""

    TICKER = "ticker"
    COUNTER = "counter"


def name_to_parts(name: str) -> list[str]:
    """Split a PascalCase name into its words."""
    parts: list[str] = []
    buf = ""
    for c in name:
        if c.isupper() and buf:
            parts.append(buf)
            buf = ""
        buf += c
    if buf:
        parts.append(buf)
    return parts


@dataclass(frozen=True)
class MetricDefinition:
    """One metric: its kind, PascalCase name, help text and index fields."""

    kind: MetricKind
    name: str
    description: str
    fields: tuple[tuple[str, str], ...] = ()

    def variant(self) -> str:
        return "".join(name_to_parts(self.name))

    def metric_name(self) -> str:
        return "_".join(name_to_parts(self.name)).lower()

    def serialized_name(self) -> str:
        """The kebab-case name used for the event on the wire."""
        return "-".join(name_to_parts(self.name)).lower()

    def metric_type(self) -> str:
        return "counter"

    def index_names(self) -> list[str]:
        return [field_name for field_name, _ in self.fields]

    def index_types(self) -> list[str]:
        return [field_type for _, field_type in self.fields]

    def field_names(self) -> list[str]:
        extra = ["value"] if self.kind is MetricKind.COUNTER else []
        return self.index_names() + extra

    def field_types(self) -> list[str]:
        extra = [_COLLECTOR_TYPE] if self.kind is MetricKind.COUNTER else []
        return self.index_types() + extra

    def record_value(self, values: tuple) -> int:
        return 1 if self.kind is MetricKind.TICKER else values[-1]


def _definition(
    kind: MetricKind, name: str, description: str, fields: Optional[Iterable[tuple[str, str]]]
) -> MetricDefinition:
    return MetricDefinition(
        kind=kind,
        name=name,
        description=description,
        fields=tuple((str(n), str(t)) for n, t in (fields or ())),
    )


def ticker(
    name: str, description: str, fields: Optional[Iterable[tuple[str, str]]] = None
) -> MetricDefinition:
    return _definition(MetricKind.TICKER, name, description, fields)


def counter(
    name: str, description: str, fields: Optional[Iterable[tuple[str, str]]] = None
) -> MetricDefinition:
    return _definition(MetricKind.COUNTER, name, description, fields)


_EVENTS: tuple[MetricDefinition, ...] = (
    ticker(
        "StatCollectorLegacyEvent",
        "Number of received legacy events",
        [("event", "String")],
    ),
    ticker("StatCollectorBogusEvent", "Number of received unparseable events"),
    ticker("JobReceived", "Number of received worker jobs"),
    counter(
        "EvaluationDuration",
        "Amount of time spent running evaluations",
        [("branch", "String")],
    ),
    ticker(
        "EvaluationDurationCount",
        "Number of timed evaluations performed",
        [("branch", "String")],
    ),
    ticker(
        "TargetBranchFailsEvaluation",
        "Number of PR evaluations which failed because the target branch failed",
        [("branch", "String")],
    ),
    ticker("JobDecodeSuccess", "Number of successfully decoded jobs"),
    ticker("JobDecodeFailure", "Number of jobs which failed to parse"),
    ticker("IssueAlreadyClosed", "Number of jobs for issues which are already closed"),
    ticker("IssueFetchFailed", "Number of failed fetches for GitHub issues"),
    ticker("TaskEvaluationCheckComplete", "Number of completed evaluation tasks"),
)

_BY_VARIANT = {d.variant(): d for d in _EVENTS}
_BY_SERIALIZED = {d.serialized_name(): d for d in _EVENTS}


def events() -> list[MetricDefinition]:
    """All known metrics, in output order."""
    return list(_EVENTS)


def _check_value(field_type: str, value: Any) -> None:
    if field_type == "String":
        if not isinstance(value, str):
            raise ValueError(f"expected a string, got {value!r}")
    elif field_type == "u64":
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= _U64_MAX:
            raise ValueError(f"expected an unsigned 64-bit integer, got {value!r}")
    else:
        raise ValueError(f"unsupported field type {field_type!r}")


class Event:
    """An occurrence of one metric, carrying its field values."""

    __slots__ = ("variant", "values")

    def __init__(self, variant: str, *values: Any) -> None:
        definition = _BY_VARIANT.get(variant)
        if definition is None:
            raise ValueError(f"unknown event {variant!r}")
        types = definition.field_types()
        if len(values) != len(types):
            raise ValueError(
                f"event {variant} takes {len(types)} field(s), got {len(values)}"
            )
        for field_type, value in zip(types, values):
            _check_value(field_type, value)
        self.variant = variant
        self.values = tuple(values)

    @property
    def definition(self) -> MetricDefinition:
        return _BY_VARIANT[self.variant]

    def to_json(self) -> str:
        name = self.definition.serialized_name()
        if not self.values:
            return json.dumps(name)
        if len(self.values) == 1:
            return json.dumps({name: self.values[0]})
        return json.dumps({name: list(self.values)})

    @classmethod
    def from_json(cls, data: "str | bytes") -> "Event":
        decoded = json.loads(data)
        if isinstance(decoded, str):
            definition = _BY_SERIALIZED.get(decoded)
            if definition is None:
                raise ValueError(f"unknown event {decoded!r}")
            return cls(definition.variant())
        if isinstance(decoded, dict) and len(decoded) == 1:
            ((name, payload),) = decoded.items()
            definition = _BY_SERIALIZED.get(name)
            if definition is None:
                raise ValueError(f"unknown event {name!r}")
            count = len(definition.field_names())
            if count == 0:
                raise ValueError(f"event {name} carries no fields")
            if count == 1:
                return cls(definition.variant(), payload)
            if not isinstance(payload, list):
                raise ValueError(f"event {name} expects a list of {count} fields")
            return cls(definition.variant(), *payload)
        raise ValueError(f"not an event: {decoded!r}")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Event):
            return NotImplemented
        return self.variant == other.variant and self.values == other.values

    def __hash__(self) -> int:
        return hash((self.variant, self.values))

    def __repr__(self) -> str:
        args = ", ".join(repr(v) for v in (self.variant, *self.values))
        return f"Event({args})"


def event_metric_name(event: Event) -> str:
    return event.definition.metric_name()


class MetricCollector:
    """Thread-safe accumulation of events per metric, index fields and instance."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tables: dict[str, dict[tuple, int]] = {d.metric_name(): {} for d in _EVENTS}

    def record(self, instance: str, event: Event) -> None:
        definition = event.definition
        key = (*event.values[: len(definition.fields)], instance)
        amount = definition.record_value(event.values)
        with self._lock:
            table = self._tables[definition.metric_name()]
            table[key] = table.get(key, 0) + amount

    def snapshot(self) -> dict[str, dict[tuple, int]]:
        """A copy of every table, keyed by metric name then (index values..., instance)."""
        with self._lock:
            return {name: dict(table) for name, table in self._tables.items()}

    def prometheus_output(self) -> str:
        """Render every metric in the Prometheus text exposition format."""
        chunks: list[str] = []
        with self._lock:
            for definition in _EVENTS:
                name = definition.metric_name()
                chunks.append(f"# HELP ofborg_{name} {definition.description}\n")
                chunks.append(f"# TYPE ofborg_{name} {definition.metric_type()}\n")
                labels = [*definition.index_names(), "instance"]
                lines = []
                for key, value in self._tables[name].items():
                    kvs = ",".join(f'{label}="{v}"' for label, v in zip(labels, key))
                    lines.append(f"ofborg_{name}{{{kvs}}} {value}")
                chunks.append("\n".join(lines))
                chunks.append("\n")
        return "".join(chunks)