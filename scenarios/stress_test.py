"""
Stress test scenario for large topologies.

Many clients behind one load balancer fanning out to a server pool, with
jittery, slightly lossy links and saturation penalties on the servers.
"""

from typing import Any

from tabulate import tabulate
from tqdm import tqdm

from slay import (
    BalancingStrategy,
    Client,
    ClientConfig,
    EdgeConfig,
    LoadBalancer,
    LoadBalancerConfig,
    Server,
    ServerConfig,
    Simulation,
    Statistics,
)


class StressTestScenario:
    """
    Stress test scenario.

    Exercises the engine with:
    - Up to 1,000 clients and 200 servers
    - Poisson arrivals
    - Lossy, jittery links between every hop
    - Retries with a shared budget and outlier ejection
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize stress test scenario.

        Args:
            config: Configuration dictionary with keys:
                - seed: Run seed (default: 42)
                - num_clients: Number of clients (default: 100, max: 1000)
                - num_servers: Number of servers (default: 20, max: 200)
                - arrival_rate: Requests per second per client (default: 5)
                - strategy: Balancing strategy (default: LEAST_CONNECTIONS)
                - max_retries: Retries per request (default: 2)
                - loss_probability: Loss on every link (default: 0.001)
                - saturation_penalty: Server saturation penalty (default: 2.0)
                - simulation_time_ms: Total simulation time (default: 10000)
                - enable_progress_bar: Show progress bar (default: True)
        """
        self.config = {
            "seed": 42,
            "num_clients": 100,
            "num_servers": 20,
            "arrival_rate": 5.0,
            "strategy": BalancingStrategy.LEAST_CONNECTIONS,
            "max_retries": 2,
            "latency_ms": 5.0,
            "jitter_ms": 1.0,
            "loss_probability": 0.001,
            "service_time_ms": 100.0,
            "saturation_penalty": 2.0,
            "simulation_time_ms": 10000.0,
            "enable_progress_bar": True,
            **config
        }

        # Validate
        if self.config["num_clients"] > 1000:
            raise ValueError("num_clients cannot exceed 1,000")
        if self.config["num_servers"] > 200:
            raise ValueError("num_servers cannot exceed 200")

        self.sim: Simulation = None

    def setup(self):
        """Set up the stress test."""
        print("Setting up stress test scenario...")
        print(f"  Clients: {self.config['num_clients']}")
        print(f"  Servers: {self.config['num_servers']}")
        print(f"  Strategy: {BalancingStrategy(self.config['strategy']).value}")

        link = EdgeConfig(
            latency_ms=self.config["latency_ms"],
            jitter_ms=self.config["jitter_ms"],
            loss_probability=self.config["loss_probability"],
        )

        self.sim = Simulation(seed=self.config["seed"])
        self.sim.add_node(LoadBalancer("lb", LoadBalancerConfig(
            strategy=self.config["strategy"],
            max_retries=self.config["max_retries"],
            retry_budget=50.0,
            retry_refill_per_sec=10.0,
            eject_after_failures=5,
        )))

        iterator = range(self.config["num_servers"])
        if self.config["enable_progress_bar"]:
            iterator = tqdm(iterator, desc="Creating servers")
        for i in iterator:
            server_id = f"server_{i:03d}"
            self.sim.add_node(Server(server_id, ServerConfig(
                service_time_ms=self.config["service_time_ms"],
                saturation_penalty=self.config["saturation_penalty"],
                failure_probability=0.01,
            )))
            self.sim.connect("lb", server_id, edge=link, reverse=link)

        iterator = range(self.config["num_clients"])
        if self.config["enable_progress_bar"]:
            iterator = tqdm(iterator, desc="Creating clients")
        for i in iterator:
            client_id = f"client_{i:04d}"
            self.sim.add_node(Client(client_id, ClientConfig(
                arrival_rate=self.config["arrival_rate"],
                arrival_process="poisson",
                timeout_ms=2000.0,
            )))
            self.sim.connect(client_id, "lb", edge=link, reverse=link)

        print(f"Topology created: {len(self.sim.topology)} nodes, {len(self.sim.topology.edges)} edges")
        print("Setup complete!")

    def run(self):
        """Run the stress test simulation."""
        print("\nRunning stress test simulation...")
        total_ms = self.config["simulation_time_ms"]

        if self.config["enable_progress_bar"]:
            checkpoint_ms = total_ms / 100
            for checkpoint in tqdm(range(100), desc="Simulation progress"):
                self.sim.run(until=(checkpoint + 1) * checkpoint_ms)
        else:
            events_processed = self.sim.run(until=total_ms)
            print(f"  Events processed: {events_processed}")

        print("Simulation complete!")

    def analyze(self):
        """Analyze stress test results."""
        print("\n" + "="*80)
        print("STRESS TEST ANALYSIS")
        print("="*80)

        stats = self.sim.statistics()
        Statistics(stats).print_summary()

        print("\n[Stress Test Metrics]")
        print(f"  Nodes simulated: {len(self.sim.topology)}")
        print(f"  Events processed: {stats.events_processed}")
        print(f"  Events per simulated second: {stats.events_processed / (stats.sim_time_ms / 1000):.2f}")

        lb_state = self.sim.get_node("lb").get_visual_snapshot()
        if lb_state is not None:
            print(f"  Retry tokens left: {lb_state.retry_tokens:.1f}")
            print(f"  Ejected servers at end: {len(lb_state.ejected)}")
        Statistics.print_history(self.sim.collector)

        busiest = sorted(
            self.sim.topology.nodes_of(Server), key=lambda s: s.processed, reverse=True
        )[:10]
        rows = [[s.id, s.processed, s.rejected, s.errors] for s in busiest]
        print(tabulate(rows, headers=["Server", "Processed", "Rejected", "Errors"], tablefmt="grid"))


def run_stress_test(config: dict[str, Any] = None):
    """
    Convenience function to run stress test.

    Args:
        config: Optional configuration dictionary

    Returns:
        The scenario instance
    """
    if config is None:
        config = {}

    scenario = StressTestScenario(config)
    scenario.setup()
    scenario.run()
    scenario.analyze()

    return scenario


def run_scalability_study():
    """
    Run a scalability study with increasing client counts.

    Tests: 10, 50, 100, 500, 1000 clients
    """
    import time

    print("="*80)
    print("SCALABILITY STUDY")
    print("="*80)

    results = []
    for num_clients in [10, 50, 100, 500, 1000]:
        print(f"\n{'='*80}")
        print(f"Testing with {num_clients} clients...")
        print(f"{'='*80}")

        scenario = StressTestScenario({
            "num_clients": num_clients,
            "num_servers": max(2, num_clients // 5),
            "simulation_time_ms": 5000.0,
            "enable_progress_bar": False,
        })
        scenario.setup()
        started = time.perf_counter()
        scenario.run()
        wall_time = time.perf_counter() - started

        stats = scenario.sim.statistics()
        results.append([num_clients, f"{wall_time:.2f}", stats.events_processed, f"{stats.success_rate * 100:.2f}%"])

    print("\n" + "="*80)
    print("SCALABILITY RESULTS")
    print("="*80)
    print(tabulate(results, headers=["Clients", "Wall Time (s)", "Events", "Success"], tablefmt="grid"))
