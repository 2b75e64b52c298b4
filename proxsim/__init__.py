"""
Proxel-based transient analysis of non-Markovian discrete-state systems.

This package contains a deterministic solver that evolves the exact,
discretised probability distribution of a system whose transitions
depend on the time spent in a state. Probability mass is split into
proxels, each tagged with a discrete state and one or two age counters,
and advanced generation by generation through the hazard rates of the
model.

The major subpackages are:

``proxsim.core``       Solver components: configuration, hazard rate
                       library, proxel store, solution ledger, model
                       description and the time stepping driver.
``proxsim.domains``    Example models (overheating machine, repairable
                       machine with maintenance).
``proxsim.scenarios``  Command line entry points running the models.

Please see the individual modules for further documentation.
"""

from .core.config import SolverConfig
from .core.driver import ProxelSimulator, SimulationResult, simulate
from .core.ledger import ConservationError, SolutionLedger
from .core.model import Model, Transition
from .core.store import Proxel, ProxelPool, ProxelTree, ProxelTreeError, decode_id, encode_id

__all__ = [
    "SolverConfig",
    "ProxelSimulator",
    "SimulationResult",
    "simulate",
    "SolutionLedger",
    "ConservationError",
    "Model",
    "Transition",
    "Proxel",
    "ProxelPool",
    "ProxelTree",
    "ProxelTreeError",
    "encode_id",
    "decode_id",
]
