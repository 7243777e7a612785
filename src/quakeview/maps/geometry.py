"""Vector and plane algebra for brush and face geometry.

Vectors are plain ``(x, y, z)`` float tuples; every operation is a named
function so no behaviour hides behind operator overloads.

Plane convention
----------------
A :class:`Plane` stores a unit normal ``n`` and a signed offset ``d`` with the
equation ``dot(n, x) + d = 0``.  A point is *outside* the plane when
``dot(n, x) + d > 0``; brushes are the intersection of the inside half-spaces.

Coordinate system
-----------------
Quake data is authored Z-up.  Output meshes are right-handed and Y-up, so every
position read from a level goes through :func:`remap_position`, which maps
``(x, y, z)`` to ``(x, z, -y)``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

Vec3 = tuple[float, float, float]
Vec2 = tuple[float, float]

#: Normals shorter than this are treated as degenerate.
EPSILON = 1e-6

ZERO: Vec3 = (0.0, 0.0, 0.0)


# ---------------------------------------------------------------------------
# Vector math
# ---------------------------------------------------------------------------

def add(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def sub(a: Vec3, b: Vec3) -> Vec3:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def scale(a: Vec3, s: float) -> Vec3:
    return (a[0] * s, a[1] * s, a[2] * s)


def negate(a: Vec3) -> Vec3:
    return (-a[0], -a[1], -a[2])


def dot(a: Vec3, b: Vec3) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def cross(a: Vec3, b: Vec3) -> Vec3:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def length(a: Vec3) -> float:
    return math.sqrt(a[0] * a[0] + a[1] * a[1] + a[2] * a[2])


def normalise(a: Vec3) -> Vec3:
    ln = length(a)
    if ln <= EPSILON:
        return ZERO
    return (a[0] / ln, a[1] / ln, a[2] / ln)


def angle_between(a: Vec3, b: Vec3) -> float:
    """Unsigned angle in radians between *a* and *b*.

    Uses ``atan2(|a x b|, a . b)``, which stays accurate for nearly parallel
    vectors and yields ``0.0`` when either vector is zero.
    """

    return math.atan2(length(cross(a, b)), dot(a, b))


def centroid(points: Sequence[Vec3]) -> Vec3:
    """Arithmetic mean of *points*."""

    n = len(points)
    if n == 0:
        return ZERO
    sx = sy = sz = 0.0
    for p in points:
        sx += p[0]
        sy += p[1]
        sz += p[2]
    return (sx / n, sy / n, sz / n)


def newell_normal(points: Sequence[Vec3]) -> Vec3:
    """Unit Newell normal of a closed polygon (zero vector if degenerate)."""

    nx = ny = nz = 0.0
    count = len(points)
    for i in range(count):
        xi, yi, zi = points[i]
        xj, yj, zj = points[(i + 1) % count]
        nx += (yi - yj) * (zi + zj)
        ny += (zi - zj) * (xi + xj)
        nz += (xi - xj) * (yi + yj)
    return normalise((nx, ny, nz))


def triangle_normal(a: Vec3, b: Vec3, c: Vec3) -> Vec3:
    """Unit normal of the triangle ``a -> b -> c`` (counter-clockwise front)."""

    return normalise(cross(sub(b, a), sub(c, a)))


# ---------------------------------------------------------------------------
# Coordinate remap
# ---------------------------------------------------------------------------

def remap_position(v: Vec3) -> Vec3:
    """Z-up level space to right-handed Y-up output space."""

    return (v[0], v[2], -v[1])


def unmap_position(v: Vec3) -> Vec3:
    """Inverse of :func:`remap_position`."""

    return (v[0], -v[2], v[1])


# ---------------------------------------------------------------------------
# Planes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Plane:
    """Oriented plane ``dot(normal, x) + d = 0``."""

    normal: Vec3
    d: float

    @property
    def is_degenerate(self) -> bool:
        return length(self.normal) <= EPSILON


def plane_from_points(p0: Vec3, p1: Vec3, p2: Vec3) -> Plane:
    """Plane through three points with normal ``(p1 - p0) x (p2 - p0)``.

    Collinear points give a degenerate plane with a zero normal; callers
    discard faces built on such planes.
    """

    n = normalise(cross(sub(p1, p0), sub(p2, p0)))
    if n == ZERO:
        return Plane(normal=ZERO, d=0.0)
    return Plane(normal=n, d=-dot(n, p0))


def signed_distance(plane: Plane, x: Vec3) -> float:
    return dot(plane.normal, x) + plane.d


def intersect_three_planes(p1: Plane, p2: Plane, p3: Plane) -> Vec3 | None:
    """Return the single point shared by three planes, or ``None``.

    The determinant is compared against exactly zero.  Nearly parallel planes
    produce far-away points, which the brush half-space filter rejects.
    """

    n23 = cross(p2.normal, p3.normal)
    det = dot(p1.normal, n23)
    if det == 0:
        return None

    n31 = cross(p3.normal, p1.normal)
    n12 = cross(p1.normal, p2.normal)
    summed = add(add(scale(n23, -p1.d), scale(n31, -p2.d)), scale(n12, -p3.d))
    return scale(summed, 1.0 / det)
