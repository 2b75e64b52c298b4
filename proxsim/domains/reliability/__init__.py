"""Reliability models: machines failing, cooling down and being repaired."""

from .machine import build_machine_model
from .repair import RepairParameters, build_repair_model

__all__ = ["build_machine_model", "build_repair_model", "RepairParameters"]
