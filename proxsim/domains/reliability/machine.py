"""
Overheating machine with high and low performance modes.

The machine runs in high performance mode (``HPM``) until it overheats,
after which it cools down in low performance mode (``LPM``) before
returning to full speed. Time to overheating follows a Weibull law with
scale 55 and shape 4; the cool-down period is uniformly distributed on
``[9, 11)``. Both sojourns are non-Markovian, which makes the system a
natural fit for a proxel sweep with a single age counter.
"""

from __future__ import annotations

from ...core.hazards import uniform_hrf, weibull_hrf
from ...core.model import Model, Transition

HPM = 0
LPM = 1

STATES = ("HPM", "LPM")


def overheat(age: float) -> float:
    """Rate of leaving high performance mode after ``age`` time units."""
    return weibull_hrf(age, 55.0, 4.0, 0.0)


def cooldown(age: float) -> float:
    """Rate of finishing the cool-down after ``age`` time units."""
    return uniform_hrf(age, 9.0, 11.0)


def build_machine_model() -> Model:
    model = Model(
        states=STATES,
        transitions={
            HPM: [Transition(target=LPM, hazard=overheat)],
            LPM: [Transition(target=HPM, hazard=cooldown)],
        },
        initial_state=HPM,
        name="machine",
    )
    model.validate()
    return model
