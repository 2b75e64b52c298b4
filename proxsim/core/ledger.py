"""
Solution ledger responsible for occupancy bookkeeping and the truncation
error budget.

Every proxel the driver processes retires its mass into the occupancy
table cell of its state and time step. Proxels dropped below the
truncation threshold are not lost silently: their mass is added to the
error accumulator so that callers can bound the inaccuracy of the
result. Together, live mass, retired mass and discarded mass account for
the full unit of probability.
"""

from __future__ import annotations

import numpy as np


class ConservationError(RuntimeError):
    """Probability mass was created or destroyed during a time step."""


class SolutionLedger:
    """Occupancy table plus discarded-mass accounting."""

    def __init__(self, n_states: int, n_steps: int):
        self.n_states = n_states
        self.n_steps = n_steps
        self.occupancy = np.zeros((n_states, n_steps), dtype=np.float64)
        self.error_by_step = np.zeros(n_steps, dtype=np.float64)
        self.error = 0.0
        self.discarded = 0

    def record(self, state: int, step: int, mass: float) -> None:
        """Add the mass of a processed proxel to cell ``(state, step)``."""
        self.occupancy[state, step] += mass

    def discard(self, step: int, mass: float) -> None:
        """Account for the mass of a proxel dropped during ``step``."""
        self.error += mass
        self.error_by_step[step] += mass
        self.discarded += 1

    def step_total(self, step: int) -> float:
        return float(self.occupancy[:, step].sum())

    def cumulative_error(self) -> np.ndarray:
        """Running total of discarded mass up to and including each step."""
        return np.cumsum(self.error_by_step)

    @staticmethod
    def check_conservation(expected: float, observed: float, discarded: float, tol: float) -> float:
        """Return the residual ``expected - observed - discarded``.

        ``expected`` is the mass of the generation that was drained,
        ``observed`` the mass of the generation built from it and
        ``discarded`` the mass dropped in between. Raises
        ``ConservationError`` when the residual exceeds ``tol``.
        """
        residual = expected - observed - discarded
        if abs(residual) > tol:
            raise ConservationError(
                f"mass not conserved: drained {expected:.12e}, built {observed:.12e}, "
                f"discarded {discarded:.12e} (residual {residual:.3e})"
            )
        return residual

    def to_dict(self) -> dict:
        return {
            "occupancy": self.occupancy.tolist(),
            "error": self.error,
            "error_by_step": self.error_by_step.tolist(),
            "discarded": self.discarded,
        }
