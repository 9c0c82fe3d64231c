"""
Track component - Editable coaster track with staged rebuilds.

Contains:
- Spline and per-node / per-segment metadata
- Station interval and roll key derivation
- Three-stage rebuild pipeline (arc length -> metadata -> frames)
- Scalar and frame samplers for renderers and vehicles
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
import logging
from typing import List, Tuple
import numpy as np

from coastersim.track.frames import build_frames
from coastersim.track.rotation import (
    Y_AXIS,
    normalize,
    orthonormalize,
    quat_from_basis,
    smoothstep,
    up_reference,
    wrap_angle,
)
from coastersim.track.sampler import PathSampler
from coastersim.track.spline import Node, Spline
from coastersim.track.terrain import HeightSampler, snap_to_terrain
from coastersim.track.types import EdgeMeta, EdgeType, Frame, NodeMeta, RollKey

logger = logging.getLogger(__name__)


@dataclass
class TrackConfig:
    """Track building parameters."""
    ds: float = 0.5                    # Frame spacing in meters
    up: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    closed: bool = False

    # Arc length
    lut_samples: int = 64              # LUT steps per segment

    # Stations
    feather_m: float = 0.75            # Fade band outside each station
    merge_tolerance: float = 1e-4      # Station gap / roll key merge distance
    search_step_m: float = 0.05        # Closest-point refinement step

    # Loop closing
    snap_distance_m: float = 0.25      # Closer endpoints are welded
    stitch_distance_m: float = 4.0     # Farther endpoints get bridge nodes


class RebuildState(IntEnum):
    """Pending rebuild work; each state implies all lower ones."""
    CLEAN = 0
    FRAMES_DIRTY = 1
    META_DIRTY = 2
    SPLINE_DIRTY = 3


class RollEasing(Enum):
    """Easing curves for spreading roll over a node range."""
    LINEAR = "linear"
    SMOOTHSTEP = "smoothstep"
    COSINE = "cosine"
    QUINTIC = "quintic"

    def apply(self, t: float) -> float:
        """Map t in [0, 1] through the easing curve."""
        t = min(max(t, 0.0), 1.0)
        if self is RollEasing.SMOOTHSTEP:
            return smoothstep(t)
        if self is RollEasing.COSINE:
            return 0.5 - 0.5 * np.cos(t * np.pi)
        if self is RollEasing.QUINTIC:
            return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)
        return t


class TrackComponent:
    """Editable track owning the spline, its metadata and its frames.

    Edits only mark work as pending; ``rebuild()`` runs the stages that are
    needed:

    1. Arc-length table, metadata resized to node/segment counts
    2. Station intervals and roll keys
    3. Frame sequence

    Implements the station/roll queries used by the frame builder.

    Usage:
        track = TrackComponent(TrackConfig(closed=True))
        for p in points:
            track.add_node(p)
        track.rebuild()

        frame = track.frame_at_s(42.0)
    """

    def __init__(self, config: TrackConfig | None = None):
        """Initialize an empty track.

        Args:
            config: Track configuration. Uses defaults if None.
        """
        self.config = config or TrackConfig()

        self._spline = Spline(closed=self.config.closed)
        self._edges: List[EdgeMeta] = []
        self._node_meta: List[NodeMeta] = []
        self._sampler = PathSampler(self._spline, self._edges)

        # Derived data
        self._stations: List[Tuple[float, float]] = []
        self._roll_keys: List[RollKey] = []
        self._roll_key_s = np.zeros(0)
        self._frames: List[Frame] = []
        self._frame_s = np.zeros(0)

        self._ds = self.config.ds
        self._up = normalize(np.asarray(self.config.up, dtype=float), Y_AXIS)
        self._state = RebuildState.SPLINE_DIRTY

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def spline(self) -> Spline:
        """Underlying spline. Call ``mark_dirty()`` after editing it directly."""
        return self._spline

    @property
    def sampler(self) -> PathSampler:
        return self._sampler

    @property
    def edges(self) -> List[EdgeMeta]:
        return self._edges

    @property
    def node_meta(self) -> List[NodeMeta]:
        return self._node_meta

    @property
    def frames(self) -> List[Frame]:
        """Frames from the last rebuild."""
        return self._frames

    @property
    def stations(self) -> List[Tuple[float, float]]:
        return list(self._stations)

    @property
    def roll_keys(self) -> List[RollKey]:
        return list(self._roll_keys)

    @property
    def state(self) -> RebuildState:
        return self._state

    @property
    def ds(self) -> float:
        return self._ds

    @property
    def up(self) -> np.ndarray:
        return self._up.copy()

    @property
    def is_closed(self) -> bool:
        return self._spline.is_closed

    @property
    def node_count(self) -> int:
        return self._spline.node_count

    @property
    def segment_count(self) -> int:
        return self._spline.segment_count

    @property
    def total_length(self) -> float:
        """Path length covered by the frames (spline length before a build)."""
        if self._frames:
            return self._frames[-1].s
        return self._spline.total_length

    # ------------------------------------------------------------------
    # Dirty tracking
    # ------------------------------------------------------------------

    def _mark(self, state: RebuildState) -> None:
        if state > self._state:
            self._state = state

    def mark_dirty(self) -> None:
        """Schedule the whole pipeline."""
        self._mark(RebuildState.SPLINE_DIRTY)

    def set_ds(self, ds: float) -> None:
        """Set frame spacing (non-positive values fall back when building)."""
        self._ds = float(ds)
        self._mark(RebuildState.FRAMES_DIRTY)

    def set_up(self, up) -> None:
        """Set the world-up reference."""
        self._up = normalize(np.asarray(up, dtype=float), Y_AXIS)
        self._mark(RebuildState.FRAMES_DIRTY)

    # ------------------------------------------------------------------
    # Node editing
    # ------------------------------------------------------------------

    def _place(self, position, terrain: HeightSampler | None, clearance: float) -> np.ndarray:
        if terrain is not None:
            return snap_to_terrain(position, terrain, clearance)
        return np.array(position, dtype=float)

    def add_node(
        self,
        position,
        roll: float | None = None,
        terrain: HeightSampler | None = None,
        clearance: float = 0.5,
    ) -> int:
        """Append a node.

        Args:
            position: World position
            roll: Bank angle in radians (defaults to the last node's roll)
            terrain: Optional ground to snap onto
            clearance: Height kept above the ground when snapping

        Returns:
            Index of the new node
        """
        if roll is None:
            count = self._spline.node_count
            roll = self._spline.get_node(count - 1).roll if count else 0.0
        index = self._spline.add_node(Node(self._place(position, terrain, clearance), roll))
        self._node_meta.append(NodeMeta())
        self._mark(RebuildState.SPLINE_DIRTY)
        return index

    def insert_node(
        self,
        index: int,
        position,
        roll: float | None = None,
        terrain: HeightSampler | None = None,
        clearance: float = 0.5,
    ) -> None:
        """Insert a node before ``index`` (roll defaults to the previous node's)."""
        count = self._spline.node_count
        if not 0 <= index <= count:
            raise IndexError(f"node index {index} out of range ({count} nodes)")
        if roll is None:
            if index > 0:
                roll = self._spline.get_node(index - 1).roll
            else:
                roll = self._spline.get_node(0).roll if count else 0.0

        self._spline.insert_node(index, Node(self._place(position, terrain, clearance), roll))
        self._node_meta.insert(index, NodeMeta())
        self._mark(RebuildState.SPLINE_DIRTY)

    def move_node(
        self,
        index: int,
        position,
        terrain: HeightSampler | None = None,
        clearance: float = 0.5,
    ) -> None:
        """Move a node."""
        self._spline.move_node(index, self._place(position, terrain, clearance))
        self._mark(RebuildState.SPLINE_DIRTY)

    def remove_node(self, index: int) -> None:
        """Remove a node and its metadata."""
        self._spline.remove_node(index)
        if index < len(self._node_meta):
            del self._node_meta[index]
        self._mark(RebuildState.SPLINE_DIRTY)

    def set_node_roll(self, index: int, roll: float) -> None:
        """Set a node's bank angle in radians."""
        self._spline.set_node_roll(index, roll)
        self._mark(RebuildState.META_DIRTY)

    def spread_roll(
        self,
        a: int,
        b: int,
        roll_a: float,
        roll_b: float,
        easing: RollEasing = RollEasing.LINEAR,
    ) -> None:
        """Blend roll from node a to node b.

        Args:
            a: First node index
            b: Last node index (order may be swapped)
            roll_a: Roll at the lower index in radians
            roll_b: Roll at the higher index in radians
            easing: Blend curve between the two
        """
        count = self._spline.node_count
        for i in (a, b):
            if not 0 <= i < count:
                raise IndexError(f"node index {i} out of range ({count} nodes)")
        if a > b:
            a, b = b, a

        for i in range(a, b + 1):
            t = 0.0 if a == b else (i - a) / (b - a)
            w = easing.apply(t)
            self._spline.set_node_roll(i, roll_a * (1.0 - w) + roll_b * w)
        self._mark(RebuildState.META_DIRTY)

    def set_node_station(
        self,
        index: int,
        start: bool = False,
        end: bool = False,
        length_m: float = 0.0,
    ) -> None:
        """Set station markers of a node.

        A lone ``start`` with ``length_m > 0`` opens a station of that length;
        ``start`` on node i with ``end`` on node i+1 spans the two nodes.
        """
        count = self._spline.node_count
        if not 0 <= index < count:
            raise IndexError(f"node index {index} out of range ({count} nodes)")
        self._sync_meta_with_spline()
        self._node_meta[index] = NodeMeta(start, end, float(length_m))
        self._mark(RebuildState.META_DIRTY)

    def set_closed(self, closed: bool) -> None:
        """Open or close the loop.

        Closing welds endpoints closer than ``snap_distance_m`` and bridges
        endpoints farther than ``stitch_distance_m`` with two nodes.
        """
        spline = self._spline
        spline.set_closed(closed)

        if closed and spline.node_count >= 4:
            first = spline.get_node(0)
            last = spline.get_node(spline.node_count - 1)
            gap = float(np.linalg.norm(last.position - first.position))

            if gap < self.config.snap_distance_m:
                spline.move_node(spline.node_count - 1, first.position)
                logger.info(f"Closing loop: welded last node onto first (gap {gap:.3f} m)")
            elif gap > self.config.stitch_distance_m:
                delta = wrap_angle(first.roll - last.roll)
                for f in (1.0 / 3.0, 2.0 / 3.0):
                    position = last.position + (first.position - last.position) * f
                    spline.add_node(Node(position, last.roll + delta * f))
                logger.info(f"Closing loop: bridged {gap:.2f} m gap with 2 nodes")

        self._sync_meta_with_spline()
        self._mark(RebuildState.SPLINE_DIRTY)

    # ------------------------------------------------------------------
    # Segment overrides
    # ------------------------------------------------------------------

    def set_edge_type(self, seg: int, edge_type: EdgeType) -> bool:
        """Set a segment's interpolation mode.

        Returns:
            False if the segment does not exist
        """
        self._sync_meta_with_spline()
        if not 0 <= seg < len(self._edges):
            logger.warning(f"Ignoring edge override for segment {seg} ({len(self._edges)} segments)")
            return False
        if edge_type in (EdgeType.CIRCULAR, EdgeType.HELIX):
            logger.warning(f"{edge_type.value} segments are not supported yet, sampling as Catmull-Rom")
        self._edges[seg].edge_type = edge_type
        self._mark(RebuildState.FRAMES_DIRTY)
        return True

    def set_linear_by_segment(self, seg: int) -> bool:
        """Make a segment a straight line between its anchors."""
        return self.set_edge_type(seg, EdgeType.LINEAR)

    def set_catmull_rom_by_segment(self, seg: int) -> bool:
        """Restore curve interpolation on a segment."""
        return self.set_edge_type(seg, EdgeType.CATMULL_ROM)

    def set_linear_by_node(self, node: int) -> bool:
        """Make the segment starting at a node straight."""
        try:
            seg = self._spline.segment_index_starting_at_node(node)
        except IndexError:
            logger.warning(f"Node {node} does not start a segment")
            return False
        return self.set_linear_by_segment(seg)

    def linearize_tail(self, count: int = 1) -> int:
        """Straighten the last ``count`` segments.

        Returns:
            Number of segments changed
        """
        segments = self._spline.segment_count
        changed = 0
        for k in range(count):
            seg = segments - 1 - k
            if seg < 0:
                break
            changed += int(self.set_linear_by_segment(seg))
        return changed

    # ------------------------------------------------------------------
    # Rebuild pipeline
    # ------------------------------------------------------------------

    def rebuild(self) -> bool:
        """Run pending rebuild stages.

        Returns:
            True if the track has frames afterwards
        """
        if self._state >= RebuildState.SPLINE_DIRTY:
            self._spline.rebuild_arc_length_lut(self.config.lut_samples)
            self._sync_meta_with_spline()
            logger.debug(
                f"Arc-length table rebuilt: {self._spline.segment_count} segments, "
                f"{self._spline.total_length:.2f} m"
            )
        if self._state >= RebuildState.META_DIRTY:
            self._build_station_intervals()
            self._rebuild_roll_keys()
            logger.debug(f"Metadata rebuilt: {len(self._stations)} stations, {len(self._roll_keys)} roll keys")
        if self._state >= RebuildState.FRAMES_DIRTY:
            self._frames = build_frames(self._sampler, self._ds, self._up, self)
            self._frame_s = np.array([f.s for f in self._frames])
        self._state = RebuildState.CLEAN

        if not self._frames:
            logger.debug(f"Track has no frames ({self._spline.node_count} nodes)")
        return bool(self._frames)

    def _sync_meta_with_spline(self) -> None:
        nodes = self._spline.node_count
        del self._node_meta[nodes:]
        self._node_meta.extend(NodeMeta() for _ in range(nodes - len(self._node_meta)))

        segments = self._spline.segment_count
        del self._edges[segments:]
        self._edges.extend(EdgeMeta() for _ in range(segments - len(self._edges)))

    def _s_for_node(self, i: int) -> float:
        if self._spline.is_node_on_curve(i):
            return self._spline.s_at_node(i)
        position = self._spline.get_node(i).position
        return self._spline.approximate_s_for_point(position, self.config.search_step_m)

    def _build_station_intervals(self) -> None:
        self._stations = []
        spline = self._spline
        length = spline.total_length
        if spline.segment_count == 0 or length <= 0.0:
            return

        closed = spline.is_closed
        intervals: List[Tuple[float, float]] = []

        def push(a: float, b: float) -> None:
            if a <= b:
                intervals.append((a, b))
            else:
                intervals.append((a, length))
                intervals.append((0.0, b))

        # Single node with a length
        for i, meta in enumerate(self._node_meta):
            if meta.station_start and meta.station_length_m > 0.0:
                a = self._s_for_node(i)
                b = a + meta.station_length_m
                if b <= length:
                    push(a, b)
                elif closed:
                    push(a, b % length)
                else:
                    push(a, length)

        # Start/end node pairs
        count = len(self._node_meta)
        pairs = count if closed else count - 1
        for i in range(max(pairs, 0)):
            j = (i + 1) % count
            if self._node_meta[i].station_start and self._node_meta[j].station_end:
                a = self._s_for_node(i)
                b = self._s_for_node(j)
                if not closed and b < a:
                    a, b = b, a
                push(a, b)

        merged: List[Tuple[float, float]] = []
        for a, b in sorted(intervals):
            if merged and a <= merged[-1][1] + self.config.merge_tolerance:
                merged[-1] = (merged[-1][0], max(merged[-1][1], b))
            else:
                merged.append((a, b))
        self._stations = merged

    def _rebuild_roll_keys(self) -> None:
        self._roll_keys = []
        if self._spline.segment_count > 0:
            keys = [
                (RollKey(self._s_for_node(i), node.roll), self._spline.is_node_on_curve(i))
                for i, node in enumerate(self._spline.nodes)
            ]
            keys.sort(key=lambda item: item[0].s)

            # Coincident keys: an on-curve node beats an off-curve end node
            last_on_curve = False
            for key, on_curve in keys:
                if self._roll_keys and abs(key.s - self._roll_keys[-1].s) < self.config.merge_tolerance:
                    if on_curve or not last_on_curve:
                        self._roll_keys[-1].roll = key.roll
                        last_on_curve = on_curve
                else:
                    self._roll_keys.append(key)
                    last_on_curve = on_curve

            for prev, key in zip(self._roll_keys, self._roll_keys[1:]):
                key.roll = prev.roll + wrap_angle(key.roll - prev.roll)

        self._roll_key_s = np.array([k.s for k in self._roll_keys])

    # ------------------------------------------------------------------
    # Station / roll queries
    # ------------------------------------------------------------------

    def is_in_station(self, s: float) -> bool:
        """Whether an arc length lies inside a station."""
        s = self._spline.wrap_s(s)
        return any(a <= s <= b for a, b in self._stations)

    def station_edge_fade_weight(self, s: float) -> float:
        """Blend weight toward level orientation just outside a station.

        Returns:
            Smoothstep weight, 1 at a station edge and 0 one feather away
        """
        feather = self.config.feather_m
        if not self._stations or feather <= 0.0:
            return 0.0

        length = self._spline.total_length
        s = self._spline.wrap_s(s)
        candidates = (s, s - length, s + length) if self.is_closed else (s,)

        weight = 0.0
        for a, b in self._stations:
            for x in candidates:
                if a - feather <= x < a:
                    weight = max(weight, smoothstep((x - (a - feather)) / feather))
                elif b < x <= b + feather:
                    weight = max(weight, smoothstep(1.0 - (x - b) / feather))
        return weight

    def manual_roll_at_s(self, s: float) -> float:
        """Authored roll at an arc length, interpolated between roll keys."""
        keys = self._roll_keys
        if not keys:
            return 0.0
        if len(keys) == 1:
            return keys[0].roll

        length = self._spline.total_length
        closed = self.is_closed and length > 0.0
        if closed:
            s = self._spline.wrap_s(s)
        else:
            if s <= keys[0].s:
                return keys[0].roll
            if s >= keys[-1].s:
                return keys[-1].roll

        idx = int(np.searchsorted(self._roll_key_s, s, side="right"))
        wrapped = idx == 0 or idx == len(keys)
        k1 = keys[idx - 1] if idx > 0 else keys[-1]
        k2 = keys[idx] if idx < len(keys) else keys[0]

        span = k2.s - k1.s
        offset = s - k1.s
        if closed and span < 0.0:
            span += length
        if closed and offset < 0.0:
            offset += length
        if abs(span) < 1e-6:
            return k1.roll

        delta = k2.roll - k1.roll
        if wrapped:
            delta = wrap_angle(delta)
        return k1.roll + delta * (offset / span)

    # ------------------------------------------------------------------
    # Samplers
    # ------------------------------------------------------------------

    def position_at_s(self, s: float) -> np.ndarray:
        """Track position at an arc length (edge overrides honoured)."""
        return self._sampler.sample_at_s(s).position

    def tangent_at_s(self, s: float) -> np.ndarray:
        """Unit track direction at an arc length."""
        return self._sampler.sample_at_s(s).tangent

    def frame_at_s(self, s: float) -> Frame:
        """Frame at an arc length, interpolated between built frames.

        Before the first build a level frame at the curve point is returned.
        """
        frames = self._frames
        if not frames:
            sample = self._sampler.sample_at_s(s)
            normal, binormal = up_reference(sample.tangent, self._up)
            return Frame(
                position=sample.position,
                tangent=sample.tangent,
                normal=normal,
                binormal=binormal,
                s=float(s),
                orientation=quat_from_basis(sample.tangent, normal, binormal),
            )

        s = self._spline.wrap_s(s) if self.is_closed else float(s)
        if s <= frames[0].s:
            return _copy_frame(frames[0])
        if s >= frames[-1].s:
            return _copy_frame(frames[-1])

        i = int(np.searchsorted(self._frame_s, s, side="right"))
        a = frames[i - 1]
        b = frames[i]
        t = min(max((s - a.s) / (b.s - a.s), 0.0), 1.0)

        tangent = normalize(a.tangent + (b.tangent - a.tangent) * t, a.tangent)
        normal = normalize(a.normal + (b.normal - a.normal) * t, a.normal)
        normal, binormal = orthonormalize(tangent, normal)
        return Frame(
            position=a.position + (b.position - a.position) * t,
            tangent=tangent,
            normal=normal,
            binormal=binormal,
            s=s,
            orientation=quat_from_basis(tangent, normal, binormal),
        )

    def get_state(self) -> dict:
        """Get track summary.

        Returns:
            Dictionary describing the track
        """
        return {
            "nodes": self._spline.node_count,
            "segments": self._spline.segment_count,
            "closed": self.is_closed,
            "length_m": self.total_length,
            "frames": len(self._frames),
            "ds": self._ds,
            "stations": self.stations,
            "linear_segments": [i for i, e in enumerate(self._edges) if e.edge_type is EdgeType.LINEAR],
            "state": self._state.name,
        }


def _copy_frame(frame: Frame) -> Frame:
    return Frame(
        position=frame.position.copy(),
        tangent=frame.tangent.copy(),
        normal=frame.normal.copy(),
        binormal=frame.binormal.copy(),
        s=frame.s,
        orientation=frame.orientation.copy(),
    )
