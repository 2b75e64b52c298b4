"""
Repairable machine with scheduled maintenance.

Three states are modelled: the machine is ``UP``, ``DOWN`` after a
failure, or in ``MAINT`` for preventive maintenance. Failures follow a
lognormal law over the uptime since the last repair. Maintenance is due
a fixed time after the previous maintenance, which requires a second age
counter that keeps running through failures and repairs. A due date
that falls while the machine is down is missed.

  * ``UP -> DOWN``     lognormal(mu, sigma) on the uptime (clock 1)
  * ``UP -> MAINT``    deterministic at ``maint_interval`` (clock 2)
  * ``DOWN -> UP``     normal(repair_mean, repair_std) on the downtime
  * ``MAINT -> UP``    exponential(maint_rate), restarts clock 2
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...core import hazards
from ...core.config import SolverConfig
from ...core.model import Model, Transition

UP = 0
DOWN = 1
MAINT = 2

STATES = ("UP", "DOWN", "MAINT")


@dataclass
class RepairParameters:
    failure_mu: float = 3.0
    failure_sigma: float = 0.5
    repair_mean: float = 8.0
    repair_std: float = 2.0
    maint_interval: float = 40.0
    maint_rate: float = 0.5


def build_repair_model(config: SolverConfig, params: Optional[RepairParameters] = None) -> Model:
    """Build the repair model; the deterministic maintenance needs the step size."""
    p = params if params is not None else RepairParameters()
    model = Model(
        states=STATES,
        transitions={
            UP: [
                Transition(target=DOWN, hazard=hazards.lognormal(p.failure_mu, p.failure_sigma)),
                Transition(
                    target=MAINT,
                    hazard=hazards.deterministic(p.maint_interval, config.step_size),
                    clock=2,
                ),
            ],
            DOWN: [Transition(target=UP, hazard=hazards.normal(p.repair_mean, p.repair_std))],
            MAINT: [
                Transition(target=UP, hazard=hazards.exponential(p.maint_rate), reset_age2=True),
            ],
        },
        initial_state=UP,
        age_counters=2,
        name="repair",
    )
    model.validate()
    return model
