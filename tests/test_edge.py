import pytest

from conftest import deliver, make_request
from slay import Edge, EdgeConfig, EdgeState, EventKind, TopologyError


def transmit(edge, n, kind=EventKind.ARRIVAL):
    cmds = deliver(edge, kind, make_request(n))
    return cmds[0].delay if cmds else None


def test_edge_identity_and_fixed_target():
    edge = Edge("a", "b")
    assert edge.id == "a->b"
    assert edge.get_targets() == ["b"]
    with pytest.raises(TopologyError):
        edge.add_target("c")
    with pytest.raises(TopologyError):
        edge.clear_targets()


@pytest.mark.parametrize("kind", [EventKind.ARRIVAL, EventKind.RESPONSE_ARRIVAL])
def test_delivery_keeps_kind_and_payload(kind):
    edge = Edge("a", "b")
    request = make_request()
    (cmd,) = deliver(edge, kind, request)
    assert cmd.target == "b"
    assert cmd.kind == kind
    assert cmd.payload is request
    assert cmd.delay == 10.0
    assert edge.delivered == 1


def test_total_loss_drops_everything():
    edge = Edge("a", "b", EdgeConfig(loss_probability=1.0))
    assert all(transmit(edge, n) is None for n in range(100))
    assert edge.dropped == 100
    assert edge.delivered == 0


def test_unhealthy_edge_drops():
    edge = Edge("a", "b")
    edge.set_healthy(False)
    assert transmit(edge, 1) is None
    assert edge.dropped == 1


def test_normal_jitter_is_clamped_at_zero():
    edge = Edge("a", "b", EdgeConfig(latency_ms=0.0, jitter_ms=50.0))
    edge.set_seed(3)
    delays = [transmit(edge, n) for n in range(200)]
    assert min(delays) == 0.0
    assert max(delays) > 0.0


def test_uniform_jitter_bounds():
    edge = Edge("a", "b", EdgeConfig(latency_ms=10.0, jitter_ms=5.0, jitter_mode="uniform"))
    delays = [transmit(edge, n) for n in range(200)]
    assert all(10.0 <= d <= 15.0 for d in delays)


def test_loss_roll_does_not_shift_latency_draws():
    lossless = Edge("a", "b", EdgeConfig(jitter_ms=3.0))
    lossy = Edge("a", "b", EdgeConfig(jitter_ms=3.0, loss_probability=0.5))
    lossless.set_seed(7)
    lossy.set_seed(7)

    expected = [transmit(lossless, n) for n in range(100)]
    observed = [transmit(lossy, n) for n in range(100)]

    assert None in observed
    for want, got in zip(expected, observed):
        if got is not None:
            assert got == want


def test_snapshot():
    edge = Edge("a", "b", EdgeConfig(loss_probability=1.0))
    transmit(edge, 1)
    edge.sync_display_stats(1.0)
    snapshot = edge.get_visual_snapshot()
    assert isinstance(snapshot, EdgeState)
    assert (snapshot.src, snapshot.dst, snapshot.dropped) == ("a", "b", 1)
