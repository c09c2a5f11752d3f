"""
Simulation scenarios.

Each scenario builds a topology, runs it, and prints an analysis of one
behavior of the modelled system.
"""

from .single_server import SingleServerScenario, run_single_server_scenario, compare_seeds
from .failover import FailoverScenario, run_failover_scenario
from .stress_test import StressTestScenario, run_stress_test, run_scalability_study

__all__ = [
    "SingleServerScenario",
    "FailoverScenario",
    "StressTestScenario",
    "run_single_server_scenario",
    "compare_seeds",
    "run_failover_scenario",
    "run_stress_test",
    "run_scalability_study",
]
