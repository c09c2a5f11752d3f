"""
Exception hierarchy for the simulation core.

Only programmer errors and rejected configuration raise. Simulated failures
(full backlogs, exhausted retries, lost packets) are modelled as failed
requests and never surface as exceptions.
"""

from typing import Any


class SlayError(Exception):
    """Base class for all simulation core errors."""


class CausalityError(SlayError):
    """An event was scheduled before the current virtual time."""

    def __init__(self, time: float, now: float):
        super().__init__(f"cannot schedule event at t={time:.6f}ms, clock is already at t={now:.6f}ms")
        self.time = time
        self.now = now


class ConfigError(SlayError, ValueError):
    """
    A configuration field is outside its domain.

    Attributes:
        field: Name of the offending field
        value: Rejected value
        reason: Human-readable constraint
    """

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(f"invalid value for {field}: {value!r} ({reason})")
        self.field = field
        self.value = value
        self.reason = reason


class TopologyError(SlayError):
    """A topology mutation would leave a dangling or duplicate reference."""
