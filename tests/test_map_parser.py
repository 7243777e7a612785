from __future__ import annotations

import pytest

from conftest import box_brush
from quakeview.common.errors import ErrorKind, UnexpectedEndOfInputError, UnexpectedTokenError
from quakeview.maps.map_parser import parse_map


def test_parse_entities_properties_and_brushes() -> None:
    text = "\n".join(
        [
            "// a comment line",
            "{",
            '"classname" "worldspawn"',
            '"wad" "gfx/base.wad"',
            box_brush(0, 0, 0, 64, 64, 64, texture="+0button"),
            "}",
            "{",
            '"classname" "light"',
            '"origin" "32 32 48"  // trailing comment',
            "}",
        ]
    )
    entities = parse_map(text)
    assert [e.classname for e in entities] == ["worldspawn", "light"]
    assert entities[0].properties["wad"] == "gfx/base.wad"
    assert len(entities[0].brushes) == 1
    assert len(entities[0].brushes[0].faces) == 6
    assert entities[0].brushes[0].faces[0].texture == "+0button"
    assert entities[1].brushes == []


def test_face_points_are_remapped_and_fields_read() -> None:
    text = '{\n"classname" "worldspawn"\n{\n( 1 2 3 ) ( 4 5 6 ) ( 7 8 10 ) *lava1 16 -8 45 0.5 2\n}\n}\n'
    (ent,) = parse_map(text)
    face = ent.brushes[0].faces[0]
    assert face.points == ((1.0, 3.0, -2.0), (4.0, 6.0, -5.0), (7.0, 10.0, -8.0))
    assert face.texture == "*lava1"
    assert face.offset == (16.0, -8.0)
    assert face.rotation == 45.0
    assert face.scale == (0.5, 2.0)
    assert face.u_axis is None


def test_valve_220_face() -> None:
    text = (
        '{\n"classname" "worldspawn"\n{\n'
        "( 0 0 0 ) ( 0 1 0 ) ( 1 0 0 ) floor [ 1 0 0 8 ] [ 0 -1 0 4 ] 0 1 1\n"
        "}\n}\n"
    )
    (ent,) = parse_map(text)
    face = ent.brushes[0].faces[0]
    assert face.u_axis == (1.0, 0.0, -0.0)
    assert face.v_axis == (0.0, 0.0, 1.0)
    assert face.offset == (8.0, 4.0)


def test_zero_scale_reads_as_one() -> None:
    text = '{\n"classname" "worldspawn"\n{\n( 0 0 0 ) ( 0 1 0 ) ( 1 0 0 ) floor 0 0 0 0 0\n}\n}\n'
    (ent,) = parse_map(text)
    assert ent.brushes[0].faces[0].scale == (1.0, 1.0)


def test_empty_text_has_no_entities() -> None:
    assert parse_map("  // nothing here\n") == []


def test_unexpected_token_reports_position() -> None:
    text = '{\n"classname" "worldspawn"\n  x\n}\n'
    with pytest.raises(UnexpectedTokenError) as ei:
        parse_map(text)
    assert ei.value.kind is ErrorKind.UNEXPECTED_TOKEN
    assert ei.value.line == 3
    assert ei.value.column == 3
    assert ei.value.found == "x"


def test_bad_number_is_unexpected_token() -> None:
    text = '{\n"classname" "worldspawn"\n{\n( 0 zero 0 ) ( 0 1 0 ) ( 1 0 0 ) floor 0 0 0 1 1\n}\n}\n'
    with pytest.raises(UnexpectedTokenError) as ei:
        parse_map(text)
    assert ei.value.found == "zero"
    assert ei.value.line == 4


def test_entity_without_properties_is_rejected() -> None:
    with pytest.raises(UnexpectedTokenError):
        parse_map("{\n}\n")


def test_empty_brush_is_rejected() -> None:
    with pytest.raises(UnexpectedTokenError):
        parse_map('{\n"classname" "worldspawn"\n{\n}\n}\n')


@pytest.mark.parametrize(
    "text",
    [
        '{\n"classname" "worldspawn"\n',
        '{\n"classname" "worldspawn"\n{\n( 0 0 0 ) ( 0 1 0 ) ( 1 0 0 ) floor 0 0',
        '{\n"classname" "worldsp',
    ],
)
def test_truncated_input(text: str) -> None:
    with pytest.raises(UnexpectedEndOfInputError) as ei:
        parse_map(text)
    assert ei.value.kind is ErrorKind.UNEXPECTED_END_OF_INPUT
