"""
Simulation module - Time stepping for cars on a shared track.

This module contains:
- Simulator: Main simulation controller
"""

from coastersim.simulation.simulator import Simulator, SimulatorConfig

__all__ = [
    "Simulator",
    "SimulatorConfig",
]
