from __future__ import annotations

from pathlib import Path

import pytest

from conftest import build_bsp, build_miptex, build_miptex_lump, floor_bsp_lumps
from quakeview.common.errors import (
    ErrorKind,
    IndexOutOfRangeError,
    InvalidBspVersionError,
    LumpSizeMismatchError,
    ReadFailedError,
)
from quakeview.maps.bsp import BspFile, Lump


def test_wrong_version_is_rejected() -> None:
    blob = build_bsp(floor_bsp_lumps(), version=22)
    with pytest.raises(InvalidBspVersionError) as ei:
        BspFile(blob)
    assert ei.value.version == 22
    assert ei.value.kind is ErrorKind.INVALID_BSP_VERSION


def test_truncated_header() -> None:
    blob = build_bsp(floor_bsp_lumps())
    with pytest.raises(ReadFailedError):
        BspFile(blob[:40])


def test_lump_past_end_of_file() -> None:
    blob = build_bsp(floor_bsp_lumps())
    with pytest.raises(ReadFailedError):
        BspFile(blob[:-8])


def test_record_counts_and_typed_reads(floor_bsp_bytes: bytes) -> None:
    bsp = BspFile(floor_bsp_bytes)
    assert bsp.count(Lump.VERTICES) == 4
    assert bsp.count(Lump.EDGES) == 5
    assert bsp.count(Lump.LEAVES) == 2
    assert bsp.vertex(2) == (64.0, 64.0, 0.0)
    assert bsp.edge(3).vs == 2 and bsp.edge(3).ve == 3
    assert bsp.listedge(0) == -4
    assert bsp.listface(0) == 0

    face = bsp.face(0)
    assert (face.ledge_id, face.ledge_num, face.texinfo_id) == (0, 4, 0)
    node = bsp.node(0)
    assert (node.front, node.back) == (-2, -1)
    assert bsp.leaf(1).listface_num == 1
    assert bsp.model(0).node_id == 0
    assert bsp.plane(0).normal == (0.0, 0.0, 1.0)
    ti = bsp.texinfo(0)
    assert ti.u_axis == (1.0, 0.0, 0.0)
    assert ti.v_axis == (0.0, -1.0, 0.0)
    assert [m.node_id for m in bsp.models()] == [0]


def test_index_out_of_range(floor_bsp_bytes: bytes) -> None:
    bsp = BspFile(floor_bsp_bytes)
    with pytest.raises(IndexOutOfRangeError) as ei:
        bsp.vertex(4)
    assert (ei.value.index, ei.value.count) == (4, 4)
    with pytest.raises(IndexOutOfRangeError):
        bsp.edge(-1)


def test_lump_size_must_be_a_record_multiple() -> None:
    lumps = floor_bsp_lumps()
    lumps[Lump.VERTICES] += b"\x00\x00"
    bsp = BspFile(build_bsp(lumps))
    with pytest.raises(LumpSizeMismatchError) as ei:
        bsp.vertex(0)
    assert ei.value.record_size == 12
    assert ei.value.kind is ErrorKind.LUMP_SIZE_MISMATCH


def test_entities_lump(floor_bsp_bytes: bytes) -> None:
    ents = BspFile(floor_bsp_bytes).entities()
    assert ents[0]["classname"] == "worldspawn"
    assert ents[1] == {"classname": "info_player_start", "origin": "16 32 24"}


def test_miptex_directory(floor_bsp_bytes: bytes) -> None:
    bsp = BspFile(floor_bsp_bytes)
    assert bsp.miptex_count() == 1
    header = bsp.miptex(0)
    assert header is not None
    assert (header.name, header.width, header.height) == ("floor", 16, 16)
    assert bsp.miptex_pixels(0) == bytes([5]) * 256
    assert bsp.miptex_pixels(0, 1) == bytes([1]) * 64
    image = bsp.miptex_image(0)
    assert (image.width, image.height, len(image.rgb)) == (16, 16, 16 * 16 * 3)


def test_absent_miptex_slot() -> None:
    lumps = floor_bsp_lumps(
        miptex=build_miptex_lump([None, build_miptex(name="b", width=8, height=8)])
    )
    bsp = BspFile(build_bsp(lumps))
    assert bsp.miptex_offset(0) == -1
    assert bsp.miptex(0) is None
    assert bsp.miptex(1).name == "b"
    with pytest.raises(ReadFailedError):
        bsp.miptex_pixels(0)
    with pytest.raises(IndexOutOfRangeError):
        bsp.miptex(2)


def test_load_from_disk(floor_bsp_path: Path, tmp_path: Path) -> None:
    assert BspFile.load(floor_bsp_path).count(Lump.FACES) == 1
    with pytest.raises(ReadFailedError):
        BspFile.load(tmp_path / "missing.bsp")
