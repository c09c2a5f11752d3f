"""
Quickstart examples for the slay simulator.

Demonstrates the scenario runners, the harness, and the live control
surface (health toggles and config updates between runs).
"""

from scenarios import run_single_server_scenario, run_failover_scenario, run_stress_test, compare_seeds


def example_1_single_server():
    """
    Example 1: Client -> Edge -> Server with default parameters.

    The simplest way to run a simulation.
    """
    print("="*80)
    print("EXAMPLE 1: Single Server")
    print("="*80)

    run_single_server_scenario()


def example_2_seed_comparison():
    """
    Example 2: Reproducibility.

    The same seed reproduces a run exactly, including its trace digest.
    """
    print("\n" + "="*80)
    print("EXAMPLE 2: Seed Comparison")
    print("="*80)

    compare_seeds((42, 42, 7), {"simulation_time_ms": 5000.0, "jitter_ms": 2.0})


def example_3_failover():
    """
    Example 3: Failover behind a load balancer.

    One of two servers goes down at t=2s and comes back at t=4s.
    """
    print("\n" + "="*80)
    print("EXAMPLE 3: Failover")
    print("="*80)

    run_failover_scenario({
        "fault_at_ms": 2000.0,
        "recover_at_ms": 4000.0,
        "simulation_time_ms": 6000.0,
    })


def example_4_harness():
    """
    Example 4: Scripted run with the harness.

    Builds a topology by hand, overloads the server, then scales it up live.
    """
    print("\n" + "="*80)
    print("EXAMPLE 4: Harness and Live Config")
    print("="*80)

    from slay import Statistics, TestHarness

    harness = TestHarness(seed=1)
    harness.add_client("client", arrival_rate=50.0, timeout_ms=1000.0)
    harness.add_server("server", workers=2, backlog_limit=10, service_time_ms=100.0, saturation_penalty=1.0)
    harness.connect("client", "server", edge={"latency_ms": 10.0, "jitter_ms": 2.0})

    harness.run_for(5000.0)
    print(f"Overloaded: SLA {harness.sla() * 100:.1f}%, p99 {harness.p99():.1f} ms")

    harness.sim.apply_config("server", {"workers": 8})
    harness.sim.reset_stats()
    harness.run_for(5000.0)
    print(f"Scaled up:  SLA {harness.sla() * 100:.1f}%, p99 {harness.p99():.1f} ms")

    Statistics.print_node_table(harness.sim.snapshots())


def example_5_stress_test():
    """
    Example 5: Stress test with a large topology.
    """
    print("\n" + "="*80)
    print("EXAMPLE 5: Stress Test")
    print("="*80)

    run_stress_test({
        "num_clients": 200,
        "num_servers": 40,
        "simulation_time_ms": 5000.0,
    })


if __name__ == "__main__":
    example_1_single_server()
    example_2_seed_comparison()
    example_3_failover()
    example_4_harness()
    example_5_stress_test()
