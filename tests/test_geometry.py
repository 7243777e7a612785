from __future__ import annotations

import math

from quakeview.maps.geometry import (
    Plane,
    angle_between,
    intersect_three_planes,
    newell_normal,
    plane_from_points,
    remap_position,
    signed_distance,
    unmap_position,
)

EPS = 1e-6


def _close(a, b) -> bool:
    return all(abs(x - y) <= EPS for x, y in zip(a, b))


def test_plane_from_points_normal_and_offset() -> None:
    p = plane_from_points((0.0, 0.0, 5.0), (1.0, 0.0, 5.0), (0.0, 1.0, 5.0))
    assert _close(p.normal, (0.0, 0.0, 1.0))
    assert abs(p.d + 5.0) <= EPS
    assert abs(signed_distance(p, (3.0, -2.0, 5.0))) <= EPS
    assert signed_distance(p, (0.0, 0.0, 6.0)) > 0


def test_plane_from_collinear_points_is_degenerate() -> None:
    p = plane_from_points((0.0, 0.0, 0.0), (1.0, 1.0, 1.0), (2.0, 2.0, 2.0))
    assert p.is_degenerate
    assert p.normal == (0.0, 0.0, 0.0)


def test_intersect_three_axis_planes() -> None:
    # x = 1, y = 2, z = 3
    px = Plane(normal=(1.0, 0.0, 0.0), d=-1.0)
    py = Plane(normal=(0.0, 1.0, 0.0), d=-2.0)
    pz = Plane(normal=(0.0, 0.0, 1.0), d=-3.0)
    v = intersect_three_planes(px, py, pz)
    assert v is not None
    assert _close(v, (1.0, 2.0, 3.0))


def test_intersect_parallel_planes_has_no_point() -> None:
    a = Plane(normal=(0.0, 0.0, 1.0), d=0.0)
    b = Plane(normal=(0.0, 0.0, 1.0), d=-4.0)
    c = Plane(normal=(1.0, 0.0, 0.0), d=0.0)
    assert intersect_three_planes(a, b, c) is None


def test_remap_round_trip() -> None:
    for v in [(1.0, 2.0, 3.0), (-5.5, 0.0, 17.25), (0.0, -1.0, 0.0)]:
        assert unmap_position(remap_position(v)) == v
    assert remap_position((1.0, 2.0, 3.0)) == (1.0, 3.0, -2.0)


def test_angle_between_and_newell_normal() -> None:
    assert abs(angle_between((1.0, 0.0, 0.0), (0.0, 1.0, 0.0)) - math.pi / 2) <= EPS
    assert angle_between((1.0, 0.0, 0.0), (0.0, 0.0, 0.0)) == 0.0

    square = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (1.0, 1.0, 0.0), (0.0, 1.0, 0.0)]
    assert _close(newell_normal(square), (0.0, 0.0, 1.0))
    assert _close(newell_normal(list(reversed(square))), (0.0, 0.0, -1.0))
