"""Scene query services consumed by the visibility engine.

The engine only ever talks to a ``QueryService``: an overlap query that
returns candidate targets near a point, and a raycast that returns the
nearest obstacle hit along a direction. Any physics engine or spatial index
can provide these. Masks are opaque to the engine; the implementations here
treat them as layer bitmasks (bit ``n`` set means layer ``n`` participates).

``SegmentScene`` is the bundled implementation. Obstacles are footprints on
the x/z plane, extruded without limit along Y, so a ray at any height is
blocked by the footprint outline. Footprints sharing a layer are merged with
shapely's ``unary_union`` first, so edges buried inside an overlap never
block. The merged ring edges are flattened into numpy arrays and every
raycast tests all of them in a single vectorized pass, the same batch
intersection the angular sweep engine uses for its ray fan. The arrays are
rebuilt on the next query whenever the obstacle or target lists change,
whether through ``add_obstacle`` and friends or by editing the lists.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Protocol

import numpy as np
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.ops import unary_union

from .geometry import Vec3, obb_corners
from .types import ALL_LAYERS, RayHit, Target, check_layer

logger = logging.getLogger(__name__)

Segment = tuple[float, float, float, float]


class QueryService(Protocol):
    def overlap(
        self, position: Vec3, radius: float, mask: int
    ) -> Iterable[Target] | None: ...

    def raycast(
        self,
        origin: Vec3,
        direction: Vec3,
        max_distance: float,
        mask: int,
    ) -> RayHit | None: ...


class EmptyScene:
    """Scene with nothing in it: no targets, no obstacles."""

    def overlap(self, position, radius, mask):
        return []

    def raycast(self, origin, direction, max_distance, mask):
        return None


@dataclass
class Obstacle:
    """Opaque footprint on the x/z plane."""

    id: str
    vertices: list[tuple[float, float]]
    layer: int = 0

    def __post_init__(self) -> None:
        check_layer(self.layer, f"Obstacle {self.id!r}")
        if len(self.vertices) < 3:
            raise ValueError(
                f"Obstacle {self.id!r} needs at least 3 vertices"
            )

    @staticmethod
    def box(
        obstacle_id: str,
        cx: float,
        cz: float,
        width: float,
        depth: float,
        rotation_deg: float = 0.0,
        layer: int = 0,
    ) -> Obstacle:
        return Obstacle(
            id=obstacle_id,
            vertices=obb_corners(cx, cz, width / 2, depth / 2, rotation_deg),
            layer=layer,
        )

    @staticmethod
    def circle(
        obstacle_id: str,
        cx: float,
        cz: float,
        radius: float,
        quad_segs: int = 8,
        layer: int = 0,
    ) -> Obstacle:
        """Approximate a round obstacle with a buffered point.

        ``quad_segs`` is the number of segments per quarter circle.
        """
        ring = ShapelyPoint(cx, cz).buffer(radius, quad_segs=quad_segs)
        coords = list(ring.exterior.coords)
        if coords and coords[-1] == coords[0]:
            coords = coords[:-1]
        return Obstacle(id=obstacle_id, vertices=coords, layer=layer)

    @staticmethod
    def polygon(
        obstacle_id: str,
        vertices: list[tuple[float, float]],
        layer: int = 0,
    ) -> Obstacle:
        """Arbitrary footprint. Raises ValueError for degenerate outlines."""
        verts = [(float(x), float(z)) for x, z in vertices]
        if len(verts) >= 3 and not ShapelyPolygon(verts).is_valid:
            raise ValueError(
                f"Obstacle {obstacle_id!r} has a self-intersecting outline"
            )
        return Obstacle(id=obstacle_id, vertices=verts, layer=layer)

    def edges(self) -> list[Segment]:
        return _ring_edges(self.vertices)

    @staticmethod
    def from_dict(d: dict) -> Obstacle:
        kind = d.get("type", "polygon")
        layer = d.get("layer", 0)
        if kind == "box":
            return Obstacle.box(
                d["id"],
                d["x"],
                d["z"],
                d["width"],
                d["depth"],
                d.get("rotation_deg", 0.0),
                layer=layer,
            )
        if kind == "circle":
            return Obstacle.circle(
                d["id"],
                d["x"],
                d["z"],
                d["radius"],
                d.get("quad_segs", 8),
                layer=layer,
            )
        if kind == "polygon":
            return Obstacle.polygon(
                d["id"], [tuple(v) for v in d["vertices"]], layer=layer
            )
        raise ValueError(f"Unknown obstacle type: {kind!r}")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "polygon",
            "vertices": [list(v) for v in self.vertices],
            "layer": self.layer,
        }


def _ring_edges(coords) -> list[Segment]:
    coords = list(coords)
    if coords and coords[-1] == coords[0]:
        coords = coords[:-1]
    n = len(coords)
    result = []
    for i in range(n):
        x1, z1 = coords[i][:2]
        x2, z2 = coords[(i + 1) % n][:2]
        result.append((x1, z1, x2, z2))
    return result


def _merged_layer_edges(
    group: list[Obstacle],
) -> list[tuple[Segment, int]]:
    """Ring edges of the union of same-layer footprints.

    Each edge is paired with the index (into ``group``) of the footprint
    whose outline it lies on, so hits still report an obstacle id.
    """
    shapes = [ShapelyPolygon(o.vertices) for o in group]
    merged = unary_union(shapes)
    if merged.is_empty:
        return []
    if merged.geom_type == "MultiPolygon":
        parts = list(merged.geoms)
    else:
        parts = [merged]

    result: list[tuple[Segment, int]] = []
    for part in parts:
        rings = [part.exterior, *part.interiors]
        for ring in rings:
            for seg in _ring_edges(ring.coords):
                if len(shapes) == 1:
                    result.append((seg, 0))
                    continue
                mid = ShapelyPoint(
                    (seg[0] + seg[2]) / 2, (seg[1] + seg[3]) / 2
                )
                dists = [s.boundary.distance(mid) for s in shapes]
                result.append((seg, int(np.argmin(dists))))
    return result


def _same_items(built, current) -> bool:
    if built is None or len(built) != len(current):
        return False
    return all(a is b for a, b in zip(built, current))


def _layer_mask(layers: np.ndarray, mask: int) -> np.ndarray:
    return ((np.int64(mask & ALL_LAYERS) >> layers) & 1).astype(bool)


@dataclass
class SegmentScene:
    obstacles: list[Obstacle] = field(default_factory=list)
    targets: list[Target] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._built_obstacles: tuple[Obstacle, ...] | None = None
        self._built_targets: tuple[Target, ...] | None = None
        self._segs = np.empty((0, 4), dtype=np.float64)
        self._seg_layers = np.empty(0, dtype=np.int64)
        self._seg_owner = np.empty(0, dtype=np.int64)
        self._target_pos = np.empty((0, 3), dtype=np.float64)
        self._target_layers = np.empty(0, dtype=np.int64)

    # -- editing --

    def add_obstacle(self, obstacle: Obstacle) -> None:
        self.obstacles.append(obstacle)

    def remove_obstacle(self, obstacle_id: str) -> None:
        """Remove every obstacle with this id (no-op if none match)."""
        self.obstacles = [o for o in self.obstacles if o.id != obstacle_id]

    def add_target(self, target: Target) -> None:
        self.targets.append(target)

    def remove_target(self, target_id: str) -> None:
        self.targets = [t for t in self.targets if t.id != target_id]

    def segments(self) -> list[Segment]:
        """Blocking segments ``(x1, z1, x2, z2)`` after merging."""
        self._refresh_obstacles()
        return [tuple(float(c) for c in s) for s in self._segs]

    def _refresh_obstacles(self) -> None:
        if _same_items(self._built_obstacles, self.obstacles):
            return
        by_layer: dict[int, list[int]] = {}
        for idx, obs in enumerate(self.obstacles):
            by_layer.setdefault(obs.layer, []).append(idx)

        segs: list[Segment] = []
        layers: list[int] = []
        owners: list[int] = []
        for layer, indices in by_layer.items():
            group = [self.obstacles[i] for i in indices]
            for seg, local in _merged_layer_edges(group):
                segs.append(seg)
                layers.append(layer)
                owners.append(indices[local])
        self._segs = np.array(segs, dtype=np.float64).reshape(-1, 4)
        self._seg_layers = np.array(layers, dtype=np.int64)
        self._seg_owner = np.array(owners, dtype=np.int64)
        self._built_obstacles = tuple(self.obstacles)
        logger.debug(
            "Rebuilt %d blocking segments from %d obstacles on %d layers",
            len(segs),
            len(self.obstacles),
            len(by_layer),
        )

    def _refresh_targets(self) -> None:
        if _same_items(self._built_targets, self.targets):
            return
        self._target_pos = np.array(
            [t.position for t in self.targets], dtype=np.float64
        ).reshape(-1, 3)
        self._target_layers = np.array(
            [t.layer for t in self.targets], dtype=np.int64
        )
        self._built_targets = tuple(self.targets)

    # -- queries --

    def overlap(
        self, position: Vec3, radius: float, mask: int = ALL_LAYERS
    ) -> list[Target]:
        """Targets within ``radius`` of ``position``, in insertion order."""
        self._refresh_targets()
        if len(self.targets) == 0:
            return []
        delta = self._target_pos - np.asarray(position, dtype=np.float64)
        dist_sq = np.einsum("ij,ij->i", delta, delta)
        inside = (dist_sq <= radius * radius) & _layer_mask(
            self._target_layers, mask
        )
        return [self.targets[i] for i in np.flatnonzero(inside)]

    def raycast(
        self,
        origin: Vec3,
        direction: Vec3,
        max_distance: float,
        mask: int = ALL_LAYERS,
    ) -> RayHit | None:
        """Nearest footprint edge hit within ``max_distance``, or None."""
        self._refresh_obstacles()
        if len(self._segs) == 0:
            return None

        norm = math.sqrt(sum(c * c for c in direction))
        if norm < 1e-12:
            return None
        dx, dy, dz = (c / norm for c in direction)
        ox, oy, oz = origin

        segs = self._segs
        seg_dx = segs[:, 2] - segs[:, 0]
        seg_dz = segs[:, 3] - segs[:, 1]
        d_x1 = segs[:, 0] - ox
        d_z1 = segs[:, 1] - oz

        denom = dx * seg_dz - dz * seg_dx
        valid_denom = np.abs(denom) >= 1e-12
        safe_denom = np.where(valid_denom, denom, 1.0)

        # t is measured along the full 3D direction, so it is the hit distance
        t = (d_x1 * seg_dz - d_z1 * seg_dx) / safe_denom
        u = (d_x1 * dz - d_z1 * dx) / safe_denom

        valid = (
            valid_denom
            & (t >= 0)
            & (t <= max_distance)
            & (u >= 0)
            & (u <= 1)
            & _layer_mask(self._seg_layers, mask)
        )
        if not valid.any():
            return None
        t_valid = np.where(valid, t, np.inf)
        nearest = int(np.argmin(t_valid))
        dist = float(t_valid[nearest])
        owner = self.obstacles[int(self._seg_owner[nearest])]
        return RayHit(
            point=(ox + dx * dist, oy + dy * dist, oz + dz * dist),
            distance=dist,
            obstacle_id=owner.id,
        )

    @staticmethod
    def from_dict(d: dict) -> SegmentScene:
        return SegmentScene(
            obstacles=[Obstacle.from_dict(o) for o in d.get("obstacles", [])],
            targets=[Target.from_dict(t) for t in d.get("targets", [])],
        )

    def to_dict(self) -> dict:
        return {
            "obstacles": [o.to_dict() for o in self.obstacles],
            "targets": [t.to_dict() for t in self.targets],
        }
