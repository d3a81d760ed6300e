"""Plain descriptions of AMQP exchanges, queues, bindings and consumers."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional, Union


class ExchangeType(enum.Enum):
    """Standard exchange types; any other type is given as its name."""

    TOPIC = "topic"
    HEADERS = "headers"
    FANOUT = "fanout"
    DIRECT = "direct"


def exchange_type_name(exchange_type: "ExchangeType | str") -> str:
    """The wire name of an exchange type; a custom type is passed as a string."""
    if isinstance(exchange_type, ExchangeType):
        return exchange_type.value
    if isinstance(exchange_type, str):
        return exchange_type
    raise TypeError(f"not an exchange type: {exchange_type!r}")


@dataclass
class ConsumeConfig:
    """Options for consuming from a queue."""

    queue: str
    consumer_tag: str = ""
    no_local: bool = False
    no_ack: bool = False
    exclusive: bool = False
    no_wait: bool = False


@dataclass
class BindQueueConfig:
    """Bind a queue to an exchange, optionally with a routing key."""

    queue: str
    exchange: str
    routing_key: Optional[str] = None
    no_wait: bool = False


@dataclass
class ExchangeConfig:
    """Declare an exchange of a given type."""

    exchange: str
    exchange_type: Union[ExchangeType, str]
    passive: bool = False
    durable: bool = False
    auto_delete: bool = False
    internal: bool = False
    no_wait: bool = False

    @property
    def type_name(self) -> str:
        return exchange_type_name(self.exchange_type)


@dataclass
class QueueConfig:
    """Declare a queue; an empty name lets the server generate one."""

    queue: str
    passive: bool = False
    durable: bool = False
    exclusive: bool = False
    auto_delete: bool = False
    no_wait: bool = False