from __future__ import annotations

import pytest

from quakeview.maps.brush_geometry import BASE_AXES, project_map_uv, texture_axes_for_plane
from quakeview.maps.geometry import Plane, plane_from_points
from quakeview.maps.map_parser import BrushFace


def _face(
    *,
    normal=(0.0, 0.0, 1.0),
    offset=(0.0, 0.0),
    scale=(1.0, 1.0),
    u_axis=None,
    v_axis=None,
) -> BrushFace:
    return BrushFace(
        points=((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)),
        plane=Plane(normal=normal, d=0.0),
        texture="TEST",
        offset=offset,
        rotation=0.0,
        scale=scale,
        u_axis=u_axis,
        v_axis=v_axis,
    )


def test_floor_face_projects_vertex_to_texel_over_size() -> None:
    face = _face()
    assert texture_axes_for_plane(face.plane.normal) == ((1.0, 0.0, 0.0), (0.0, -1.0, 0.0))
    assert project_map_uv((1.0, 0.0, 0.0), face, 64, 64) == (1.0 / 64.0, 0.0)


def test_offset_is_added_after_scale() -> None:
    face = _face(offset=(16.0, 8.0), scale=(2.0, 4.0))
    u, v = project_map_uv((32.0, -32.0, 0.0), face, 64, 32)
    # u = (16 + 32 / 2) / 64, v = (8 + 32 / 4) / 32
    assert u == pytest.approx(0.5)
    assert v == pytest.approx(0.5)


@pytest.mark.parametrize("index", range(6))
def test_each_reference_normal_selects_its_own_axes(index: int) -> None:
    normal, u, v = BASE_AXES[index]
    assert texture_axes_for_plane(normal) == (u, v)


def test_tie_keeps_first_candidate() -> None:
    # Equal dot with floor (0,0,1) and west wall (1,0,0): floor wins.
    n = (0.7071067811865476, 0.0, 0.7071067811865476)
    assert texture_axes_for_plane(n) == BASE_AXES[0][1:]


def test_slanted_plane_picks_dominant_axis() -> None:
    p = plane_from_points((0.0, 0.0, 0.0), (0.0, 1.0, 0.1), (1.0, 0.0, 0.0))
    # Mostly -Z: the ceiling entry.
    assert p.normal[2] < -0.9
    assert texture_axes_for_plane(p.normal) == BASE_AXES[1][1:]


def test_valve_axes_override_table() -> None:
    face = _face(u_axis=(0.0, 0.0, 1.0), v_axis=(0.0, 1.0, 0.0), offset=(4.0, 0.0))
    u, v = project_map_uv((10.0, 6.0, 12.0), face, 16, 16)
    assert u == pytest.approx((4.0 + 12.0) / 16.0)
    assert v == pytest.approx(6.0 / 16.0)
