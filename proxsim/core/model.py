"""
Model description consumed by the proxel driver.

A model is a small, enumerable set of discrete states together with a
transition table. Each entry of the table names a target state and the
hazard rate function governing the transition as a function of age.
The driver consults this table when expanding a proxel instead of
hard-coding the branches of a particular system.

Ages are counted in time steps. ``age1`` is the time spent in the
current state and restarts at zero on every transition. Models declaring
two age counters also carry ``age2``, a clock that keeps running across
transitions and only restarts on transitions flagged ``reset_age2``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .hazards import Hazard


@dataclass
class Transition:
    """Age-dependent transition towards ``target``.

    ``clock`` selects which age counter is fed to ``hazard`` (1 or 2).
    """
    target: int
    hazard: Hazard
    clock: int = 1
    reset_age2: bool = False


@dataclass
class Model:
    states: Sequence[str]
    transitions: Dict[int, List[Transition]] = field(default_factory=dict)
    initial_state: int = 0
    age_counters: int = 1
    name: str = "model"

    @property
    def n_states(self) -> int:
        return len(self.states)

    def outgoing(self, state: int) -> List[Transition]:
        return self.transitions.get(state, [])

    def state_name(self, state: int) -> str:
        if 0 <= state < len(self.states):
            return self.states[state]
        return "NULL"

    def state_index(self, name: str) -> int:
        return list(self.states).index(name)

    def validate(self) -> None:
        """Raise ``ValueError`` if the transition table is malformed."""
        n = self.n_states
        if n == 0:
            raise ValueError(f"{self.name}: no states defined")
        if self.age_counters not in (1, 2):
            raise ValueError(f"{self.name}: age_counters must be 1 or 2, got {self.age_counters}")
        if not 0 <= self.initial_state < n:
            raise ValueError(f"{self.name}: initial state {self.initial_state} out of range")
        for source, transitions in self.transitions.items():
            if not 0 <= source < n:
                raise ValueError(f"{self.name}: transition source {source} out of range")
            for tr in transitions:
                if not 0 <= tr.target < n:
                    raise ValueError(
                        f"{self.name}: transition {self.state_name(source)} -> {tr.target} has unknown target"
                    )
                if tr.clock not in (1, 2) or tr.clock > self.age_counters:
                    raise ValueError(
                        f"{self.name}: transition {self.state_name(source)} -> "
                        f"{self.state_name(tr.target)} reads clock {tr.clock} "
                        f"but the model has {self.age_counters} age counter(s)"
                    )
