"""
Failover scenario.

A load balancer spreads traffic over two servers; one of them goes down
mid-run. Routing should move entirely to the surviving server, with
retries covering requests caught by the outage.
"""

from typing import Any

from tabulate import tabulate

from slay import (
    BalancingStrategy,
    Client,
    ClientConfig,
    LoadBalancer,
    LoadBalancerConfig,
    Server,
    ServerConfig,
    Simulation,
    Statistics,
)


class FailoverScenario:
    """
    Client -> LoadBalancer -> {server_a, server_b}.

    server_b turns unhealthy at ``fault_at_ms`` and, optionally, recovers at
    ``recover_at_ms``. Arrivals are counted per server before and after the
    fault.
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize scenario with configuration.

        Args:
            config: Configuration dictionary with keys:
                - seed: Run seed (default: 42)
                - arrival_rate: Client requests per second (default: 20)
                - strategy: Balancing strategy (default: ROUND_ROBIN)
                - max_retries: Retries per request (default: 2)
                - retry_budget: Retry token bucket size (default: 10)
                - service_time_ms: Mean service time (default: 50)
                - workers: Workers per server (default: 4)
                - fault_at_ms: When server_b goes down (default: 2000)
                - recover_at_ms: When server_b recovers (default: None)
                - simulation_time_ms: Total simulation time (default: 5000)
        """
        self.config = {
            "seed": 42,
            "arrival_rate": 20.0,
            "strategy": BalancingStrategy.ROUND_ROBIN,
            "max_retries": 2,
            "retry_budget": 10.0,
            "service_time_ms": 50.0,
            "workers": 4,
            "fault_at_ms": 2000.0,
            "recover_at_ms": None,
            "simulation_time_ms": 5000.0,
            **config
        }

        self.sim: Simulation = None
        self.arrivals_before: dict[str, int] = {}
        self.arrivals_after: dict[str, int] = {}

    def setup(self):
        """Set up the simulation."""
        print("Setting up failover scenario...")
        print(f"  Strategy: {BalancingStrategy(self.config['strategy']).value}")
        print(f"  Fault at: {self.config['fault_at_ms']} ms")

        self.sim = Simulation(seed=self.config["seed"])
        self.sim.add_node(Client("client", ClientConfig(arrival_rate=self.config["arrival_rate"])))
        self.sim.add_node(LoadBalancer("lb", LoadBalancerConfig(
            strategy=self.config["strategy"],
            max_retries=self.config["max_retries"],
            retry_budget=self.config["retry_budget"],
        )))
        for server_id in ("server_a", "server_b"):
            self.sim.add_node(Server(server_id, ServerConfig(
                service_time_ms=self.config["service_time_ms"],
                workers=self.config["workers"],
            )))
            self.sim.connect("lb", server_id)
        self.sim.connect("client", "lb")

        self.sim.schedule_health("server_b", self.config["fault_at_ms"], False)
        if self.config["recover_at_ms"] is not None:
            self.sim.schedule_health("server_b", self.config["recover_at_ms"], True)

        print("Setup complete!")

    def _arrivals(self) -> dict[str, int]:
        return {
            server_id: self.sim.get_node(server_id).arrivals
            for server_id in ("server_a", "server_b")
        }

    def run(self):
        """Run up to the fault, then to the end."""
        print("\nRunning simulation...")
        # Requests already on their way when the fault hits still land.
        settle_ms = self.sim.get_node("lb").config.get().overhead_ms
        self.sim.run(until=self.config["fault_at_ms"] + settle_ms)
        self.arrivals_before = self._arrivals()

        self.sim.run(until=self.config["simulation_time_ms"])
        after = self._arrivals()
        self.arrivals_after = {
            server_id: after[server_id] - self.arrivals_before[server_id]
            for server_id in after
        }
        print("Simulation complete!")
        print(f"  Events processed: {self.sim.events_processed}")

    def analyze(self):
        """Print per-server traffic around the fault and the run summary."""
        print("\n[Traffic around the fault]")
        rows = [
            [server_id, self.arrivals_before[server_id], self.arrivals_after[server_id]]
            for server_id in ("server_a", "server_b")
        ]
        print(tabulate(rows, headers=["Server", "Before fault", "After fault"], tablefmt="grid"))

        Statistics(self.sim.statistics()).print_summary()
        Statistics.print_node_table(self.sim.snapshots())


def run_failover_scenario(config: dict[str, Any] = None):
    """
    Convenience function to run the failover scenario.

    Args:
        config: Optional configuration dictionary

    Returns:
        The scenario instance
    """
    if config is None:
        config = {}

    scenario = FailoverScenario(config)
    scenario.setup()
    scenario.run()
    scenario.analyze()

    return scenario
