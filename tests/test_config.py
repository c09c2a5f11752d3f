import pytest

from slay import (
    BalancingStrategy,
    ClientConfig,
    ConfigError,
    ConfigHandle,
    EdgeConfig,
    JitterMode,
    LoadBalancerConfig,
    Server,
    ServerConfig,
)


def test_defaults():
    assert ClientConfig().arrival_rate == 5.0
    assert ClientConfig().timeout_ms == 5000.0
    server = ServerConfig()
    assert (server.service_time_ms, server.workers, server.backlog_limit) == (200.0, 4, 50)
    assert LoadBalancerConfig().overhead_ms == 2.0
    assert LoadBalancerConfig().strategy is BalancingStrategy.ROUND_ROBIN
    assert EdgeConfig().latency_ms == 10.0


@pytest.mark.parametrize("build, field", [
    (lambda: ServerConfig(workers=0), "workers"),
    (lambda: ServerConfig(backlog_limit=-1), "backlog_limit"),
    (lambda: ServerConfig(failure_probability=1.5), "failure_probability"),
    (lambda: EdgeConfig(latency_ms=-1.0), "latency_ms"),
    (lambda: EdgeConfig(loss_probability=2.0), "loss_probability"),
    (lambda: ClientConfig(arrival_rate=-5.0), "arrival_rate"),
    (lambda: ClientConfig(timeout_ms=0.0), "timeout_ms"),
    (lambda: LoadBalancerConfig(max_retries=-1), "max_retries"),
    (lambda: LoadBalancerConfig(backoff_multiplier=0.5), "backoff_multiplier"),
])
def test_out_of_domain_values_are_rejected(build, field):
    with pytest.raises(ConfigError) as excinfo:
        build()
    assert excinfo.value.field == field


def test_config_error_is_a_value_error():
    with pytest.raises(ValueError):
        ServerConfig(workers=0)


def test_enums_accept_their_values():
    assert LoadBalancerConfig(strategy="random").strategy is BalancingStrategy.RANDOM
    assert EdgeConfig(jitter_mode="uniform").jitter_mode is JitterMode.UNIFORM
    with pytest.raises(ConfigError):
        LoadBalancerConfig(strategy="fastest")


def test_dict_round_trip_and_unknown_fields():
    data = LoadBalancerConfig(max_retries=2).to_dict()
    assert data["strategy"] == "round_robin"
    assert LoadBalancerConfig.from_dict(data) == LoadBalancerConfig(max_retries=2)

    with pytest.raises(ConfigError) as excinfo:
        ServerConfig.from_dict({"threads": 4})
    assert excinfo.value.field == "threads"


def test_handle_update_is_all_or_nothing():
    handle = ConfigHandle(ServerConfig())
    updated = handle.update(workers=8)
    assert updated.workers == 8
    assert handle.version == 1

    with pytest.raises(ConfigError):
        handle.update(workers=16, backlog_limit=-3)
    assert handle.get().workers == 8
    assert handle.get().backlog_limit == 50
    assert handle.version == 1


def test_handle_replace_checks_type():
    handle = ConfigHandle(ServerConfig())
    handle.replace(ServerConfig(workers=2))
    assert handle.get().workers == 2
    with pytest.raises(ConfigError):
        handle.replace(EdgeConfig())


def test_node_apply_config_keeps_previous_on_error():
    server = Server("s")
    server.apply_config({"service_time_ms": 50.0})
    assert server.encode_config()["service_time_ms"] == 50.0

    with pytest.raises(ConfigError):
        server.apply_config({"workers": 8, "saturation_penalty": -1.0})
    assert server.config.get().workers == 4
    assert server.config.get().service_time_ms == 50.0
