"""Direction, transform and footprint helpers.

Headings follow the Y-up convention used throughout the package: angle 0
points along +z ("north"), angles grow clockwise when viewed from above, so a
heading of 90 degrees points along +x. A direction for heading ``a`` is
``(sin(a), 0, cos(a))``.

Provides:

  * ``global_direction`` / ``relative_direction``: unit vectors for a world
    heading, or for an angle measured from the observer's current heading.
  * ``to_local_point``: world-to-observer transform (yaw only), used to
    anchor the view mesh under the observer.
  * ``angle_between``: unsigned 3D angle in degrees, atan2 form so that
    symmetric inputs land exactly on the expected value.
  * ``obb_corners``: x/z corners of a rotated box footprint.
"""

from __future__ import annotations

import math

Vec3 = tuple[float, float, float]
Corners = list[tuple[float, float]]


def global_direction(angle_deg: float) -> Vec3:
    rad = math.radians(angle_deg)
    return (math.sin(rad), 0.0, math.cos(rad))


def relative_direction(angle_deg: float, heading_deg: float) -> Vec3:
    """Direction for an angle measured from ``heading_deg``."""
    return global_direction(angle_deg + heading_deg)


def heading_of(direction: Vec3) -> float:
    """Global heading in degrees of a direction's x/z projection."""
    return math.degrees(math.atan2(direction[0], direction[2]))


def to_local_point(point: Vec3, position: Vec3, heading_deg: float) -> Vec3:
    """Express a world point in the frame of an observer at ``position``."""
    rad = math.radians(heading_deg)
    cos_h = math.cos(rad)
    sin_h = math.sin(rad)
    dx = point[0] - position[0]
    dy = point[1] - position[1]
    dz = point[2] - position[2]
    return (
        dx * cos_h - dz * sin_h,
        dy,
        dx * sin_h + dz * cos_h,
    )


def to_world_point(local: Vec3, position: Vec3, heading_deg: float) -> Vec3:
    """Inverse of ``to_local_point``."""
    rad = math.radians(heading_deg)
    cos_h = math.cos(rad)
    sin_h = math.sin(rad)
    x, y, z = local
    return (
        position[0] + x * cos_h + z * sin_h,
        position[1] + y,
        position[2] - x * sin_h + z * cos_h,
    )


def add_scaled(origin: Vec3, direction: Vec3, t: float) -> Vec3:
    return (
        origin[0] + direction[0] * t,
        origin[1] + direction[1] * t,
        origin[2] + direction[2] * t,
    )


def length(v: Vec3) -> float:
    return math.sqrt(v[0] * v[0] + v[1] * v[1] + v[2] * v[2])


def angle_between(a: Vec3, b: Vec3) -> float:
    """Unsigned angle between two vectors in degrees (0 if either is zero)."""
    cx = a[1] * b[2] - a[2] * b[1]
    cy = a[2] * b[0] - a[0] * b[2]
    cz = a[0] * b[1] - a[1] * b[0]
    cross = math.sqrt(cx * cx + cy * cy + cz * cz)
    dot = a[0] * b[0] + a[1] * b[1] + a[2] * b[2]
    if cross == 0.0 and dot == 0.0:
        return 0.0
    return math.degrees(math.atan2(cross, dot))


def obb_corners(
    cx: float,
    cz: float,
    half_w: float,
    half_d: float,
    rot_deg: float = 0.0,
) -> Corners:
    """Compute the 4 corners of a rectangle rotated by a heading in degrees."""
    rad = math.radians(rot_deg)
    cos_r = math.cos(rad)
    sin_r = math.sin(rad)
    result: Corners = []
    for sx, sz in ((-1, -1), (1, -1), (1, 1), (-1, 1)):
        lx = sx * half_w
        lz = sz * half_d
        result.append(
            (
                cx + lx * cos_r + lz * sin_r,
                cz - lx * sin_r + lz * cos_r,
            )
        )
    return result

