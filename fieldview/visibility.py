"""Field-of-view polygon and target line-of-sight for a single observer.

This module answers two questions for an observer standing somewhere in a
scene: what region of the plane can it see, and which of the nearby targets
can it see right now?

The region is built by sampling. The observer's view angle is split into
``round(view_angle * mesh_resolution)`` equal steps and one view cast (a ray
of length ``view_radius``) is fired per step. Neighbouring casts that
disagree, either because one hit an obstacle and the other didn't or because
both hit but at very different depths, straddle a silhouette edge. For each
such pair we bisect the angular gap a fixed number of times
(``edge_resolve_iterations``), keeping the last probe on each side as the
refined edge points. Samples and edge points, in angular order, become the
rim of a triangle fan whose apex is the observer:

    vertex 0        observer origin (0, 0, 0) in local space
    vertex k + 1    k-th rim point, transformed into observer-local space
    triangle k      (0, k + 1, k + 2)

Cost per evaluation is ``step_count + edges * edge_resolve_iterations``
raycasts. There is no convergence test in the bisection, so cost is the same
regardless of obstacle shape, and accuracy after ``n`` iterations is
``step_angle / 2**n`` degrees.

Targets are tested independently of the fan: a target is visible when it is
inside the view radius, strictly within half the view angle of the
observer's forward direction, and a ray of exactly the target distance
reaches it without hitting an obstacle.

Everything here is a pure function of the observer snapshot, the parameters
and the scene queries; nothing is cached between calls.
"""

from __future__ import annotations

import logging
from typing import Iterator

from .geometry import (
    Vec3,
    add_scaled,
    angle_between,
    global_direction,
    length,
    to_local_point,
)
from .scene import EmptyScene, QueryService
from .types import (
    ALL_LAYERS,
    EdgeInfo,
    FovParams,
    Observer,
    Target,
    TargetScan,
    ViewCastInfo,
    ViewMesh,
)

logger = logging.getLogger(__name__)


def _scene_or_empty(scene: QueryService | None) -> QueryService:
    return EmptyScene() if scene is None else scene


def view_cast(
    observer: Observer,
    angle: float,
    scene: QueryService | None,
    obstacle_mask: int = ALL_LAYERS,
) -> ViewCastInfo:
    """Probe along a global heading, bounded by the view radius."""
    direction = global_direction(angle)
    hit = _scene_or_empty(scene).raycast(
        observer.position, direction, observer.view_radius, obstacle_mask
    )
    if hit is not None and hit.distance <= observer.view_radius:
        return ViewCastInfo(True, hit.point, hit.distance, angle)
    return ViewCastInfo(
        False,
        add_scaled(observer.position, direction, observer.view_radius),
        observer.view_radius,
        angle,
    )


def step_count(view_angle: float, mesh_resolution: float) -> int:
    """Number of samples across the view angle (never less than 1)."""
    return max(1, round(view_angle * mesh_resolution))


def sample_view_casts(
    observer: Observer,
    params: FovParams,
    scene: QueryService | None,
) -> Iterator[ViewCastInfo]:
    """Yield one view cast per step, in increasing global angle."""
    steps = step_count(observer.view_angle, params.mesh_resolution)
    step_angle = observer.view_angle / steps
    start = observer.heading_deg - observer.view_angle / 2
    for i in range(steps):
        yield view_cast(
            observer, start + step_angle * i, scene, params.obstacle_mask
        )


def needs_edge(
    prev: ViewCastInfo, curr: ViewCastInfo, threshold: float
) -> bool:
    """True if a silhouette edge lies between two neighbouring casts."""
    if prev.hit != curr.hit:
        return True
    return (
        prev.hit
        and curr.hit
        and abs(prev.distance - curr.distance) > threshold
    )


def find_edge(
    observer: Observer,
    min_cast: ViewCastInfo,
    max_cast: ViewCastInfo,
    scene: QueryService | None,
    params: FovParams,
) -> EdgeInfo:
    """Bisect between two casts for ``edge_resolve_iterations`` probes."""
    min_angle = min_cast.angle
    max_angle = max_cast.angle
    min_point: Vec3 | None = None
    max_point: Vec3 | None = None

    for _ in range(params.edge_resolve_iterations):
        angle = (min_angle + max_angle) / 2
        cast = view_cast(observer, angle, scene, params.obstacle_mask)
        exceeded = (
            abs(min_cast.distance - cast.distance)
            > params.edge_distance_threshold
        )
        if cast.hit == min_cast.hit and not exceeded:
            min_angle = angle
            min_point = cast.point
        else:
            max_angle = angle
            max_point = cast.point

    return EdgeInfo(min_point, max_point)


def compute_view_points(
    observer: Observer,
    params: FovParams,
    scene: QueryService | None,
) -> list[Vec3]:
    """World-space rim points of the view fan, in angular order."""
    points: list[Vec3] = []
    prev: ViewCastInfo | None = None
    edges = 0
    refine = params.edge_resolve_iterations > 0
    for cast in sample_view_casts(observer, params, scene):
        if (
            refine
            and prev is not None
            and needs_edge(prev, cast, params.edge_distance_threshold)
        ):
            edge = find_edge(observer, prev, cast, scene, params)
            if edge.point_a is not None:
                points.append(edge.point_a)
            if edge.point_b is not None:
                points.append(edge.point_b)
            edges += 1
        points.append(cast.point)
        prev = cast

    logger.debug(
        "View fan at heading %.1f: %d points, %d edges refined",
        observer.heading_deg,
        len(points),
        edges,
    )
    return points


def build_view_mesh(observer: Observer, points: list[Vec3]) -> ViewMesh:
    """Triangulate rim points into a fan anchored at the observer."""
    vertices: list[Vec3] = [(0.0, 0.0, 0.0)]
    for p in points:
        vertices.append(
            to_local_point(p, observer.position, observer.heading_deg)
        )
    triangles = [(0, i + 1, i + 2) for i in range(len(points) - 1)]
    return ViewMesh(vertices=vertices, triangles=triangles)


def compute_visibility_polygon(
    observer: Observer,
    params: FovParams,
    scene: QueryService | None,
) -> ViewMesh:
    points = compute_view_points(observer, params, scene)
    return build_view_mesh(observer, points)


def scan_targets(
    observer: Observer,
    params: FovParams,
    scene: QueryService | None,
) -> TargetScan:
    """Classify every target within the view radius.

    A target is ``outside_view`` if it fails the angle test, ``occluded`` if
    an obstacle sits between it and the observer, and ``visible`` otherwise.
    The angle test is strict: a target exactly at half the view angle is
    outside the view.
    """
    scene = _scene_or_empty(scene)
    forward = global_direction(observer.heading_deg)
    half_angle = observer.view_angle / 2
    result = TargetScan()

    candidates = scene.overlap(
        observer.position, observer.view_radius, params.target_mask
    )
    seen: set[Target] = set()
    for target in candidates or ():
        if target in seen:
            continue
        seen.add(target)

        offset = (
            target.position[0] - observer.position[0],
            target.position[1] - observer.position[1],
            target.position[2] - observer.position[2],
        )
        distance = length(offset)
        if distance < 1e-12:
            # Standing on the target: nothing can be in between.
            result.visible.append(target)
            continue

        if angle_between(forward, offset) >= half_angle:
            result.outside_view.append(target)
            continue

        direction = (
            offset[0] / distance,
            offset[1] / distance,
            offset[2] / distance,
        )
        hit = scene.raycast(
            observer.position, direction, distance, params.obstacle_mask
        )
        if hit is None:
            result.visible.append(target)
        else:
            result.occluded.append(target)

    logger.debug(
        "Target scan: %d visible, %d outside view, %d occluded",
        len(result.visible),
        len(result.outside_view),
        len(result.occluded),
    )
    return result


def compute_visible_targets(
    observer: Observer,
    params: FovParams,
    scene: QueryService | None,
) -> list[Target]:
    return scan_targets(observer, params, scene).visible
