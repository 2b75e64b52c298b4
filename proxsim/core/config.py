"""
Solver configuration definitions.

This module defines the configuration dataclass used to parameterise a
proxel sweep. Fields carry explicit defaults so that test runs can be
created easily without requiring the user to supply values for every
field. The defaults reproduce the reference machine model: 100 time
units simulated in steps of 4 with a truncation threshold of 1e-12.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SolverConfig:
    """Top level configuration for proxel solver runs.

    ``horizon`` bounds the age counters of every proxel. When left as
    ``None`` it is derived from the number of time steps, which is
    sufficient for any age reachable within the simulated time span.
    """

    # Time discretisation
    total_time: float = 100.0
    step_size: float = 4.0

    # Truncation threshold (MINPROB); lighter proxels are discarded
    min_prob: float = 1e-12

    # Age discretisation horizon; None -> k_max
    horizon: Optional[int] = None

    # Seed for the coin flips of random leaf extraction
    seed: int = 42

    # Log tree size every N steps (0 disables)
    progress_interval: int = 100

    # Per-step probability conservation audit
    check_conservation: bool = False
    conservation_tol: float = 1e-9

    extras: dict = field(default_factory=dict)

    @property
    def k_max(self) -> int:
        """Number of discrete time steps, rounded to the nearest integer."""
        return int(math.floor(self.total_time / self.step_size + 0.5))

    @property
    def resolved_horizon(self) -> int:
        if self.horizon is not None:
            return self.horizon
        return max(self.k_max, 1)

    def to_dict(self) -> dict:
        """Return a dict representation of the configuration.

        Useful for serialisation or for recording the parameters of a
        run alongside its results.
        """
        data = self.__dict__.copy()
        data["extras"] = dict(self.extras)
        data["k_max"] = self.k_max
        data["resolved_horizon"] = self.resolved_horizon
        return data
