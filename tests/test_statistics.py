import pytest

from slay import MetricsCollector, RunStatistics, Statistics
from slay.statistics import LatencyWindow, RateWindow, percentile


def test_percentile():
    assert percentile([], 99) == 0.0
    assert percentile(range(1, 101), 50) == pytest.approx(50.5)


def test_rate_window_slides():
    window = RateWindow()
    for time in (0.0, 500.0, 999.0):
        window.record(time)
    assert window.rate(999.0) == 3.0
    assert window.rate(1600.0) == 1.0


def test_latency_window():
    window = LatencyWindow(window_ms=1000.0)
    assert window.percentiles(0.0) == (0.0, 0.0, 0.0)
    for i in range(1, 101):
        window.record(float(i), float(i))
    p50, _, p99 = window.percentiles(100.0)
    assert p50 == pytest.approx(50.5)
    assert p99 == pytest.approx(99.01)
    assert window.mean(100.0) == pytest.approx(50.5)

    assert window.values(1050.0) == [float(i) for i in range(50, 101)]


def test_metrics_collector_smooths_rates():
    collector = MetricsCollector()
    assert not collector.update(100.0, 5, 0, 1.0)
    assert collector.update(200.0, 10, 2, 5.0)

    (point,) = collector.history
    assert point.success_rps == pytest.approx(5.0)
    assert point.failure_rps == pytest.approx(1.0)
    assert point.p99_ms == 5.0

    collector.reset(200.0)
    assert len(collector.history) == 0


def test_run_statistics():
    stats = RunStatistics(seed=1, sim_time_ms=0.0, events_processed=0)
    assert stats.success_rate == 1.0

    stats = RunStatistics(seed=1, sim_time_ms=10.0, events_processed=3, succeeded=3, failed=1)
    assert stats.success_rate == 0.75
    assert stats.to_dict()["success_rate"] == 0.75


def test_summary_report(capsys):
    stats = RunStatistics(
        seed=42, sim_time_ms=2000.0, events_processed=10,
        succeeded=9, failed=1, failure_reasons={"timeout": 1},
    )
    Statistics(stats).print_summary()
    out = capsys.readouterr().out
    assert "SIMULATION SUMMARY" in out
    assert "timeout" in out
