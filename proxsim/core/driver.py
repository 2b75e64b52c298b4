"""
Proxel driver: generation-by-generation time stepping.

The driver evolves an exact discretised probability distribution over
(state, age) combinations. Two proxel trees are live at once. At every
time step their roles are swapped: the tree built during the previous
step is drained proxel by proxel, and each proxel is expanded into its
successors in the other tree according to the hazard rates of the
model. Mass of processed proxels is retired into the solution ledger
under the step it belongs to.

Proxels lighter than the truncation threshold are dropped and their
mass is charged to the ledger's error accumulator. The last proxel of a
generation is always expanded, even when it is below the threshold, so
that a generation holding only trace mass still makes progress. This
keeps the sweep moving at the cost of a small bias and is an
approximation rather than an exact policy.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

from .config import SolverConfig
from .ledger import SolutionLedger
from .model import Model, Transition
from .store import Proxel, ProxelPool, ProxelTree

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    """Outcome of a complete sweep.

    Attributes:
        state_names: Display names of the model states.
        times: Model time of each column of ``occupancy``.
        occupancy: Probability of each state per time step, shape
            ``(n_states, k_max + 1)``.
        error: Total mass discarded by truncation.
        error_by_step: Discarded mass per time step.
        total_processed: Number of proxels expanded during the run.
        peak_live: Maximum number of concurrently live proxels.
        final_generation: Proxels left in the generation built by the
            last step.
    """
    state_names: List[str]
    times: np.ndarray
    occupancy: np.ndarray
    error: float
    error_by_step: np.ndarray
    total_processed: int
    peak_live: int
    final_generation: List[Proxel]

    def probability(self, state_name: str) -> np.ndarray:
        """Return the occupancy time series of a state by name."""
        return self.occupancy[self.state_names.index(state_name)]

    def to_dict(self) -> dict:
        return {
            "states": list(self.state_names),
            "times": self.times.tolist(),
            "occupancy": {
                name: self.occupancy[idx].tolist()
                for idx, name in enumerate(self.state_names)
            },
            "error": self.error,
            "error_by_step": self.error_by_step.tolist(),
            "total_processed": self.total_processed,
            "peak_live": self.peak_live,
        }

    def format_table(self) -> str:
        """Render one line per time step with the probability of every state."""
        lines = []
        for k, t in enumerate(self.times):
            cells = " - ".join(
                f"{name}-Prob.: {self.occupancy[idx, k]:.5e}"
                for idx, name in enumerate(self.state_names)
            )
            lines.append(f"Time: {t:4.0f} - {cells}")
        return "\n".join(lines)


class ProxelSimulator:
    """Drives the two-generation proxel sweep for a model.

    The simulator owns the shared node pool, the two generation trees
    and the solution ledger. Counters ``total_processed`` and the pool's
    ``peak_live`` are reported in the result as resource statistics.
    """

    def __init__(self, model: Model, config: Optional[SolverConfig] = None):
        model.validate()
        self.model = model
        self.cfg = config if config is not None else SolverConfig()
        self.dt = self.cfg.step_size
        self.k_max = self.cfg.k_max
        self.horizon = self.cfg.resolved_horizon
        self.rng = np.random.default_rng(self.cfg.seed)
        self.pool = ProxelPool()
        self.trees = [
            ProxelTree(self.pool, self.horizon, self.rng),
            ProxelTree(self.pool, self.horizon, self.rng),
        ]
        # trees[sw] is being built, trees[1 - sw] is being drained
        self.sw = 0
        self.ledger = SolutionLedger(model.n_states, self.k_max + 1)
        self.total_processed = 0

    @property
    def building(self) -> ProxelTree:
        return self.trees[self.sw]

    @property
    def current(self) -> ProxelTree:
        return self.trees[1 - self.sw]

    def reset(self, seed_initial: bool = True) -> None:
        """Empty both generations and the ledger.

        With ``seed_initial`` the initial proxel (initial state, ages
        zero, mass one) is placed into the generation being built.
        """
        for tree in self.trees:
            tree.clear()
        self.sw = 0
        self.rng = np.random.default_rng(self.cfg.seed)
        for tree in self.trees:
            tree.rng = self.rng
        self.pool.peak_live = self.pool.live
        self.ledger = SolutionLedger(self.model.n_states, self.k_max + 1)
        self.total_processed = 0
        if seed_initial:
            self.building.insert(self.model.initial_state, 0, 0, 1.0)

    def step(self, k: int) -> int:
        """Swap generations and drain the current one into the next.

        Processed proxels are recorded under step ``k - 1``. Returns the
        number of proxels expanded.
        """
        self.sw = 1 - self.sw
        current = self.current
        building = self.building
        ledger = self.ledger
        min_prob = self.cfg.min_prob
        audit = self.cfg.check_conservation
        if audit:
            drained_mass = current.total_mass()
            error_before = ledger.error

        processed = 0
        dropped = ledger.discarded
        while not current.is_empty():
            proxel = current.extract_any()
            while proxel.mass < min_prob and not current.is_empty():
                ledger.discard(k - 1, proxel.mass)
                proxel = current.extract_any()
            processed += 1
            ledger.record(proxel.state, k - 1, proxel.mass)
            self.expand(proxel, building)

        self.total_processed += processed
        if ledger.discarded > dropped:
            logger.debug("step %d: dropped %d proxels below %g", k, ledger.discarded - dropped, min_prob)
        if audit:
            ledger.check_conservation(
                drained_mass, building.total_mass(), ledger.error - error_before, self.cfg.conservation_tol
            )
        return processed

    def expand(self, proxel: Proxel, target: ProxelTree) -> None:
        """Insert the successors of ``proxel`` into ``target``.

        Each outgoing transition fires with probability
        ``z = dt * hazard(age * dt)``. While the total stays below one,
        the remainder stays in the same state one step older. Otherwise
        the transitions are saturated and share the full mass in
        proportion to their rates.
        """
        dt = self.dt
        mass = proxel.mass
        next_age2 = proxel.age2 + 1 if self.model.age_counters == 2 else 0
        transitions = self.model.outgoing(proxel.state)

        rates = []
        for tr in transitions:
            age = proxel.age1 if tr.clock == 1 else proxel.age2
            rates.append(dt * tr.hazard(age * dt))
        total = sum(rates)

        if total >= 1.0:
            if math.isinf(total):
                # only the infinite rates fire
                rates = [1.0 if math.isinf(z) else 0.0 for z in rates]
                total = sum(rates)
            for tr, z in zip(transitions, rates):
                if z > 0.0:
                    self._fire(target, tr, next_age2, mass * (z / total))
            return

        for tr, z in zip(transitions, rates):
            if z > 0.0:
                self._fire(target, tr, next_age2, mass * z)
        stay = mass * (1.0 - total)
        if stay > 0.0:
            target.insert(proxel.state, proxel.age1 + 1, next_age2, stay)

    @staticmethod
    def _fire(target: ProxelTree, tr: Transition, next_age2: int, mass: float) -> None:
        if mass <= 0.0:
            return
        age2 = 0 if tr.reset_age2 else next_age2
        target.insert(tr.target, 0, age2, mass)

    def run(self) -> SimulationResult:
        """Run all steps ``1 .. k_max + 1`` from the initial proxel."""
        self.reset()
        interval = self.cfg.progress_interval
        logger.info(
            "starting %s: k_max=%d dt=%g horizon=%d min_prob=%g",
            self.model.name, self.k_max, self.dt, self.horizon, self.cfg.min_prob,
        )
        for k in range(1, self.k_max + 2):
            if interval and k % interval == 0:
                logger.info("step %d: %d proxels in tree", k, self.building.size())
            self.step(k)
        logger.info(
            "finished %s: error=%.5e peak=%d processed=%d",
            self.model.name, self.ledger.error, self.pool.peak_live, self.total_processed,
        )
        return self.result()

    def result(self) -> SimulationResult:
        return SimulationResult(
            state_names=list(self.model.states),
            times=np.arange(self.k_max + 1, dtype=np.float64) * self.dt,
            occupancy=self.ledger.occupancy.copy(),
            error=self.ledger.error,
            error_by_step=self.ledger.error_by_step.copy(),
            total_processed=self.total_processed,
            peak_live=self.pool.peak_live,
            final_generation=self.building.proxels(),
        )


def simulate(model: Model, config: Optional[SolverConfig] = None) -> SimulationResult:
    """Convenience wrapper running a fresh simulator to completion."""
    return ProxelSimulator(model, config).run()
