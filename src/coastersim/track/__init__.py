"""
Track module - Spline geometry, frames and the editable track component.

This module contains:
- Spline: Centripetal Catmull-Rom curve with arc-length lookup
- PathSampler: Arc-length sampling with linear segment overrides
- build_frames: Rotation-minimizing frame builder
- FrameCursor: Cached frame lookup for vehicles
- TrackComponent: Node/metadata editing and staged rebuilds
- TrackGenerator: Procedural and preset layouts
"""

from coastersim.track.types import EdgeType, EdgeMeta, NodeMeta, RollKey, Frame
from coastersim.track.spline import Node, Spline
from coastersim.track.sampler import PathSampler, Sample
from coastersim.track.frames import build_frames, FrameMetaSource
from coastersim.track.cursor import FrameCursor, Pose
from coastersim.track.terrain import HeightField, HeightSampler, snap_to_terrain
from coastersim.track.component import TrackComponent, TrackConfig, RebuildState, RollEasing
from coastersim.track.generator import TrackGenerator, GeneratorConfig

__all__ = [
    "EdgeType",
    "EdgeMeta",
    "NodeMeta",
    "RollKey",
    "Frame",
    "Node",
    "Spline",
    "PathSampler",
    "Sample",
    "build_frames",
    "FrameMetaSource",
    "FrameCursor",
    "Pose",
    "HeightField",
    "HeightSampler",
    "snap_to_terrain",
    "TrackComponent",
    "TrackConfig",
    "RebuildState",
    "RollEasing",
    "TrackGenerator",
    "GeneratorConfig",
]
