"""Random-population simulation of the ledgers."""

from .runner import SimulationResult, SimulationRunner

__all__ = ["SimulationResult", "SimulationRunner"]
