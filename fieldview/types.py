"""Data types for field-of-view evaluation and the scene JSON schema."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
from shapely.geometry import Point as ShapelyPoint
from shapely.geometry import Polygon as ShapelyPolygon

from .geometry import Vec3, to_world_point

ALL_LAYERS = 0xFFFFFFFF
MAX_LAYER = 31


def check_layer(layer: int, owner: str) -> None:
    """Raise ValueError unless ``layer`` names a bit of a 32-bit mask."""
    if not 0 <= layer <= MAX_LAYER:
        raise ValueError(
            f"{owner}: layer must be in [0, {MAX_LAYER}], got {layer}"
        )


def _vec3(v) -> Vec3:
    x, y, z = v
    return (float(x), float(y), float(z))


@dataclass(frozen=True)
class Observer:
    """Snapshot of the observer transform for a single evaluation."""

    position: Vec3
    heading_deg: float
    view_radius: float
    view_angle: float


@dataclass
class FovParams:
    view_radius: float = 10.0
    view_angle: float = 90.0
    mesh_resolution: float = 1.0
    edge_resolve_iterations: int = 4
    edge_distance_threshold: float = 0.5
    target_mask: int = ALL_LAYERS
    obstacle_mask: int = ALL_LAYERS
    scan_interval: float = 0.2

    def validate(self) -> None:
        """Raise ValueError if any parameter is out of range."""
        if not self.view_radius > 0:
            raise ValueError(
                f"view_radius must be > 0, got {self.view_radius}"
            )
        if not 0 <= self.view_angle <= 360:
            raise ValueError(
                f"view_angle must be in [0, 360], got {self.view_angle}"
            )
        if not self.mesh_resolution > 0:
            raise ValueError(
                f"mesh_resolution must be > 0, got {self.mesh_resolution}"
            )
        if self.edge_resolve_iterations < 0:
            raise ValueError(
                "edge_resolve_iterations must be >= 0, got "
                f"{self.edge_resolve_iterations}"
            )
        if self.edge_distance_threshold < 0:
            raise ValueError(
                "edge_distance_threshold must be >= 0, got "
                f"{self.edge_distance_threshold}"
            )
        if self.scan_interval <= 0:
            raise ValueError(
                f"scan_interval must be > 0, got {self.scan_interval}"
            )

    def observer(self, position, heading_deg: float = 0.0) -> Observer:
        return Observer(
            position=_vec3(position),
            heading_deg=float(heading_deg),
            view_radius=self.view_radius,
            view_angle=self.view_angle,
        )

    @staticmethod
    def from_dict(d: dict | None) -> FovParams:
        if not d:
            return FovParams()
        defaults = FovParams()
        params = FovParams(
            view_radius=d.get("view_radius", defaults.view_radius),
            view_angle=d.get("view_angle", defaults.view_angle),
            mesh_resolution=d.get("mesh_resolution", defaults.mesh_resolution),
            edge_resolve_iterations=int(
                d.get(
                    "edge_resolve_iterations",
                    defaults.edge_resolve_iterations,
                )
            ),
            edge_distance_threshold=d.get(
                "edge_distance_threshold", defaults.edge_distance_threshold
            ),
            target_mask=d.get("target_mask", defaults.target_mask),
            obstacle_mask=d.get("obstacle_mask", defaults.obstacle_mask),
            scan_interval=d.get("scan_interval", defaults.scan_interval),
        )
        params.validate()
        return params

    def to_dict(self) -> dict:
        return {
            "view_radius": self.view_radius,
            "view_angle": self.view_angle,
            "mesh_resolution": self.mesh_resolution,
            "edge_resolve_iterations": self.edge_resolve_iterations,
            "edge_distance_threshold": self.edge_distance_threshold,
            "target_mask": self.target_mask,
            "obstacle_mask": self.obstacle_mask,
            "scan_interval": self.scan_interval,
        }


@dataclass(frozen=True)
class ViewCastInfo:
    hit: bool
    point: Vec3
    distance: float
    angle: float  # global heading in degrees


@dataclass(frozen=True)
class EdgeInfo:
    """Refined boundary points on either side of a silhouette edge.

    point_a is the last probe classified with the min-side sample, point_b
    the last probe on the other side. Either is None when no probe landed
    on that side.
    """

    point_a: Vec3 | None = None
    point_b: Vec3 | None = None


@dataclass(frozen=True)
class RayHit:
    point: Vec3
    distance: float
    obstacle_id: str | None = None


@dataclass
class ViewMesh:
    """Triangle fan in observer-local space, apex at vertex 0."""

    vertices: list[Vec3] = field(default_factory=lambda: [(0.0, 0.0, 0.0)])
    triangles: list[tuple[int, int, int]] = field(default_factory=list)

    def outline(self) -> list[tuple[float, float]]:
        """x/z outline of the fan, origin first."""
        return [(v[0], v[2]) for v in self.vertices]

    def _shape(self) -> ShapelyPolygon | None:
        verts = self.outline()
        if len(verts) < 3:
            return None
        return ShapelyPolygon(verts)

    def area(self) -> float:
        """Area of the fan outline, regardless of winding."""
        shape = self._shape()
        return 0.0 if shape is None else shape.area

    def contains_local(self, x: float, z: float) -> bool:
        """Whether a local x/z point lies in the fan (edges included)."""
        shape = self._shape()
        if shape is None:
            return False
        return bool(shape.covers(ShapelyPoint(x, z)))

    def flat_triangles(self) -> list[int]:
        return [i for tri in self.triangles for i in tri]

    def as_arrays(self) -> tuple[np.ndarray, np.ndarray]:
        """(V, 3) float vertex array and (T, 3) int index array."""
        verts = np.array(self.vertices, dtype=np.float64).reshape(-1, 3)
        tris = np.array(self.triangles, dtype=np.int32).reshape(-1, 3)
        return verts, tris

    def world_vertices(self, observer: Observer) -> list[Vec3]:
        """Map the local vertices back into world space."""
        return [
            to_world_point(v, observer.position, observer.heading_deg)
            for v in self.vertices
        ]

    def to_dict(self) -> dict:
        return {
            "vertices": [list(v) for v in self.vertices],
            "triangles": [list(t) for t in self.triangles],
        }


@dataclass(frozen=True)
class Target:
    """Candidate entity returned by overlap queries."""

    id: str
    position: Vec3
    layer: int = 0

    def __post_init__(self) -> None:
        check_layer(self.layer, f"Target {self.id!r}")

    @staticmethod
    def from_dict(d: dict) -> Target:
        return Target(
            id=d["id"],
            position=_vec3(d["position"]),
            layer=d.get("layer", 0),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "position": list(self.position),
            "layer": self.layer,
        }


@dataclass
class TargetScan:
    """Outcome of one target visibility pass, in overlap-query order."""

    visible: list[Target] = field(default_factory=list)
    outside_view: list[Target] = field(default_factory=list)
    occluded: list[Target] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "visible": [t.id for t in self.visible],
            "outside_view": [t.id for t in self.outside_view],
            "occluded": [t.id for t in self.occluded],
        }
