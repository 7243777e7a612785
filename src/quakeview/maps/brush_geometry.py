"""Brush-to-polygon conversion by three-plane intersection.

Turns a parsed :class:`~quakeview.maps.map_parser.Brush` into one convex,
counter-clockwise polygon per face.  The algorithm:

1. Intersect every unordered triple of face planes.
2. Keep a corner only if it lies inside (or on) every other half-space of the
   brush.  The three planes that produced it are not tested again.
3. Hand each kept corner to the three faces that produced it.
4. Sort each face's corners by angle around the face centroid.
5. Reverse the polygon if its Newell normal disagrees with the face normal.

Faces left with fewer than three corners are dropped.  A brush with no
surviving face raises :class:`~quakeview.common.errors.DegenerateBrushError`.

The half-space test carries no tolerance, so corners shared by more than three
planes are emitted once per triple and may repeat inside a polygon.  Repeated
corners only produce zero-area triangles.

Texture coordinates
-------------------
Standard faces pick a texture axis pair from :data:`BASE_AXES` by the largest
``dot(face normal, reference normal)``.  Valve 220 faces carry their own axes.
Either way ``uv = (offset + (v . u, v . v) / scale) / (width, height)``.
The rotation field is parsed but not applied.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from quakeview.common.aabb import AABB
from quakeview.common.errors import DegenerateBrushError
from quakeview.maps.geometry import (
    Vec2,
    Vec3,
    add,
    angle_between,
    centroid,
    dot,
    intersect_three_planes,
    newell_normal,
    plane_from_points,
    signed_distance,
    sub,
)
from quakeview.maps.map_parser import Brush, BrushFace


# ---------------------------------------------------------------------------
# Texture axis table
# ---------------------------------------------------------------------------

#: ``(reference normal, u axis, v axis)`` per axis-aligned surface, in the
#: order floor, ceiling, west wall, east wall, south wall, north wall.
#: The table is matched against face normals after the coordinate remap.
BASE_AXES: tuple[tuple[Vec3, Vec3, Vec3], ...] = (
    ((0.0, 0.0, 1.0), (1.0, 0.0, 0.0), (0.0, -1.0, 0.0)),
    ((0.0, 0.0, -1.0), (1.0, 0.0, 0.0), (0.0, -1.0, 0.0)),
    ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, -1.0)),
    ((-1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, -1.0)),
    ((0.0, 1.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, -1.0)),
    ((0.0, -1.0, 0.0), (1.0, 0.0, 0.0), (0.0, 0.0, -1.0)),
)


@dataclass(frozen=True)
class FacePolygon:
    """Ordered corners of one brush face."""

    face: BrushFace
    vertices: list[Vec3]


# ---------------------------------------------------------------------------
# Polygoniser
# ---------------------------------------------------------------------------

def polygonise_brush(brush: Brush) -> list[FacePolygon]:
    """Return the convex polygon of every non-degenerate face of *brush*.

    Polygons come out in face order, wound counter-clockwise when viewed
    from outside along the face normal.
    """

    faces = [f for f in brush.faces if not f.plane.is_degenerate]
    planes = [f.plane for f in faces]
    corners: list[list[Vec3]] = [[] for _ in faces]

    count = len(planes)
    for i in range(count):
        for j in range(i + 1, count):
            for k in range(j + 1, count):
                v = intersect_three_planes(planes[i], planes[j], planes[k])
                if v is None:
                    continue
                # v lies on planes i, j and k; only the other half-spaces are tested.
                if any(
                    signed_distance(p, v) > 0
                    for m, p in enumerate(planes)
                    if m != i and m != j and m != k
                ):
                    continue
                corners[i].append(v)
                corners[j].append(v)
                corners[k].append(v)

    polygons: list[FacePolygon] = []
    for face, verts in zip(faces, corners):
        if len(verts) < 3:
            continue
        polygons.append(FacePolygon(face=face, vertices=sort_polygon_vertices(verts, face.plane.normal)))

    if not polygons:
        raise DegenerateBrushError(f"brush at line {brush.line} has no face with three or more corners")
    return polygons


def sort_polygon_vertices(vertices: Sequence[Vec3], normal: Vec3) -> list[Vec3]:
    """Order the corners of a convex planar polygon counter-clockwise about *normal*.

    Selection sort: each pivot pulls in the candidate on the leading side of
    the plane through the centroid spanned by ``pivot - centroid`` and
    *normal*, with the smallest angle to the pivot.  Ties keep the earlier
    candidate.
    """

    verts = list(vertices)
    if len(verts) < 3:
        return verts
    c = centroid(verts)
    c_up = add(c, normal)

    for idx in range(len(verts) - 2):
        pivot = verts[idx]
        to_pivot = sub(pivot, c)
        splitter = plane_from_points(pivot, c, c_up)

        def precedes(a: Vec3, b: Vec3) -> bool:
            if signed_distance(splitter, a) < 0:
                return False
            if signed_distance(splitter, b) < 0:
                return True
            return angle_between(to_pivot, sub(a, c)) < angle_between(to_pivot, sub(b, c))

        best = idx + 1
        for cand in range(idx + 2, len(verts)):
            if precedes(verts[cand], verts[best]):
                best = cand
        verts[idx + 1], verts[best] = verts[best], verts[idx + 1]

    if dot(newell_normal(verts), normal) < 0:
        verts.reverse()
    return verts


def brush_bounds(brush: Brush) -> AABB | None:
    """Bounding box of every polygon corner of *brush* (``None`` if degenerate)."""

    try:
        polygons = polygonise_brush(brush)
    except DegenerateBrushError:
        return None
    return polygons_bounds(polygons)


def polygons_bounds(polygons: Sequence[FacePolygon]) -> AABB | None:
    return AABB.from_points(v for poly in polygons for v in poly.vertices)


# ---------------------------------------------------------------------------
# UV projection
# ---------------------------------------------------------------------------

def texture_axes_for_plane(normal: Vec3) -> tuple[Vec3, Vec3]:
    """Pick the base ``(u, v)`` axes whose reference normal best matches *normal*.

    The first entry wins ties.
    """

    best_dot = dot(normal, BASE_AXES[0][0])
    best = BASE_AXES[0]
    for entry in BASE_AXES[1:]:
        d = dot(normal, entry[0])
        if d > best_dot:
            best_dot = d
            best = entry
    return best[1], best[2]


def face_texture_axes(face: BrushFace) -> tuple[Vec3, Vec3]:
    if face.u_axis is not None and face.v_axis is not None:
        return face.u_axis, face.v_axis
    return texture_axes_for_plane(face.plane.normal)


def project_map_uv(vertex: Vec3, face: BrushFace, width: int, height: int) -> Vec2:
    """Normalised texture coordinate of *vertex* on *face*."""

    u_axis, v_axis = face_texture_axes(face)
    su, sv = face.scale
    u = face.offset[0] + dot(vertex, u_axis) / su
    v = face.offset[1] + dot(vertex, v_axis) / sv
    return (u / width, v / height)
