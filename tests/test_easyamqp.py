import pytest

from ofborg.easyamqp import (
    BindQueueConfig,
    ConsumeConfig,
    ExchangeConfig,
    ExchangeType,
    QueueConfig,
    exchange_type_name,
)


@pytest.mark.parametrize(
    "kind, name",
    [
        (ExchangeType.TOPIC, "topic"),
        (ExchangeType.HEADERS, "headers"),
        (ExchangeType.FANOUT, "fanout"),
        (ExchangeType.DIRECT, "direct"),
    ],
)
def test_standard_exchange_type_names(kind, name):
    assert exchange_type_name(kind) == name


def test_custom_exchange_type_passes_through():
    assert exchange_type_name("x-delayed-message") == "x-delayed-message"


def test_exchange_type_round_trip():
    for kind in ExchangeType:
        assert ExchangeType(exchange_type_name(kind)) is kind


def test_invalid_exchange_type():
    with pytest.raises(TypeError):
        exchange_type_name(42)


def test_exchange_config_type_name():
    config = ExchangeConfig(
        exchange="build-jobs", exchange_type=ExchangeType.FANOUT, durable=True
    )
    assert config.type_name == "fanout"
    assert config.durable is True
    assert config.passive is False


def test_bind_queue_without_routing_key():
    config = BindQueueConfig(queue="build-results", exchange="build-results")
    assert config.routing_key is None
    assert config.no_wait is False


def test_bind_queue_with_routing_key():
    config = BindQueueConfig(
        queue="build-inputs", exchange="github-events", routing_key="issue_comment.*"
    )
    assert config.routing_key == "issue_comment.*"


def test_queue_config_exclusive_generated():
    config = QueueConfig(queue="", exclusive=True, auto_delete=True)
    assert config.queue == ""
    assert (config.exclusive, config.auto_delete, config.durable) == (True, True, False)


def test_consume_config_fields():
    config = ConsumeConfig(queue="stats-events", consumer_tag="builder-1-stats")
    assert config.queue == "stats-events"
    assert config.consumer_tag == "builder-1-stats"
    assert not any([config.no_local, config.no_ack, config.exclusive, config.no_wait])