import pytest

from slay import COMPONENTS, ConfigError, Server, TestHarness, create_component, run_scenario
from slay.harness import build_simulation


def test_registry_lists_every_kind():
    assert set(COMPONENTS) == {"Client", "Server", "LoadBalancer", "Edge"}
    for kind, (node_class, _) in COMPONENTS.items():
        assert node_class.kind == kind


def test_create_component_from_dict():
    server = create_component("Server", "s", {"workers": 2})
    assert isinstance(server, Server)
    assert server.config.get().workers == 2

    with pytest.raises(ConfigError):
        create_component("Database", "db")
    with pytest.raises(ConfigError):
        create_component("Edge", "e")
    with pytest.raises(ConfigError):
        create_component("Server", "s", {"threads": 2})


def test_single_server_run_is_reproducible(single_server_description):
    first = run_scenario(single_server_description, seed=42, until_ms=2000.0)
    again = run_scenario(single_server_description, seed=42, until_ms=2000.0)
    other = run_scenario(single_server_description, seed=7, until_ms=2000.0)

    assert 18 <= first.requests_sent <= 22
    assert first.succeeded > 0
    assert first.failed == 0
    assert first == again
    assert first.events_processed == again.events_processed
    assert first.trace_digest != other.trace_digest


def test_event_budget(single_server_description):
    stats = run_scenario(single_server_description, seed=1, max_events=500)
    assert stats.events_processed == 500


def test_a_limit_is_required(single_server_description):
    with pytest.raises(ValueError):
        run_scenario(single_server_description)


def test_faults_from_description():
    description = {
        "nodes": [
            {"id": "client", "kind": "Client", "config": {"arrival_rate": 20.0}},
            {"id": "lb", "kind": "LoadBalancer"},
            {"id": "a", "kind": "Server"},
            {"id": "b", "kind": "Server"},
        ],
        "links": [
            {"src": "client", "dst": "lb"},
            {"src": "lb", "dst": "a"},
            {"src": "lb", "dst": "b"},
        ],
        "faults": [{"node": "b", "at": 1000.0, "healthy": False}],
    }
    sim = build_simulation(description, seed=5)
    sim.run(until=1002.0)
    b = sim.get_node("b")
    arrivals_at_fault = b.arrivals
    assert arrivals_at_fault > 0
    assert not b.is_healthy()

    sim.run(until=3000.0)
    assert b.arrivals == arrivals_at_fault
    assert sim.statistics().succeeded > 0


def test_harness_helpers():
    harness = TestHarness(seed=42)
    harness.add_client("client", arrival_rate=10.0)
    harness.add_server("s1")
    harness.add_server("s2")
    harness.connect("client", "s1")
    harness.set_target("client", "s2")
    assert harness.node("client").get_targets() == ["s2"]

    harness.run_for(3000.0)
    assert harness.sla() == 1.0
    assert harness.p99() > 0
    assert harness.node("s1").arrivals == 0
