"""
CoasterSim - A roller coaster track and ride simulation core.

This package provides:
- Centripetal Catmull-Rom track splines with arc-length parametrization
- Rotation-minimizing track frames with stations and authored roll
- Editable track component with staged rebuilds
- Arc-length car physics with gravity, drag and rolling friction
- Procedural and preset track layouts
"""

__version__ = "0.1.0"

from coastersim.simulation.simulator import Simulator
from coastersim.car.car import Car
from coastersim.track.component import TrackComponent

__all__ = ["Simulator", "Car", "TrackComponent", "__version__"]
