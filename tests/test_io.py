"""Tests for volremesh.io."""
from __future__ import annotations

import struct

import numpy as np
import numpy.testing as npt
import pytest
import trimesh

from volremesh import Mesh, RemeshError, load_mesh, save_mesh
from volremesh.io import load_obj, load_ply, load_stl, save_obj, save_ply


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _write_binary_stl(triangles: np.ndarray) -> bytes:
    header  = b"\x00" * 80
    count   = struct.pack("<I", len(triangles))
    records = bytearray()
    for tri in triangles:
        records += struct.pack("<fff", 0.0, 0.0, 0.0)
        for v in tri:
            records += struct.pack("<fff", float(v[0]), float(v[1]), float(v[2]))
        records += struct.pack("<H", 0)
    return header + count + bytes(records)


def _write_ascii_stl(triangles: np.ndarray) -> str:
    lines = ["solid test"]
    for tri in triangles:
        lines.append("  facet normal 0 0 0")
        lines.append("    outer loop")
        for v in tri:
            lines.append(f"      vertex {v[0]:.6g} {v[1]:.6g} {v[2]:.6g}")
        lines.append("    endloop")
        lines.append("  endfacet")
    lines.append("endsolid test")
    return "\n".join(lines)


def _write_binary_ply(verts: np.ndarray, faces: np.ndarray) -> bytes:
    header = (
        "ply\n"
        "format binary_little_endian 1.0\n"
        f"element vertex {len(verts)}\n"
        "property float x\nproperty float y\nproperty float z\n"
        "property uchar alpha\n"
        f"element face {len(faces)}\n"
        "property list uchar int vertex_indices\n"
        "end_header\n"
    ).encode("ascii")
    body = bytearray()
    for v in verts:
        body += struct.pack("<fffB", *map(float, v), 255)
    for f in faces:
        body += struct.pack("<B", len(f)) + struct.pack(f"<{len(f)}i", *map(int, f))
    return header + bytes(body)


# ---------------------------------------------------------------------------
# OBJ
# ---------------------------------------------------------------------------

def _quad_area(mesh) -> float:
    tri = mesh.triangles()
    return 0.5 * float(np.linalg.norm(np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0]), axis=-1).sum())


def _assert_same_surface(loaded, expected) -> None:
    assert loaded.n_faces == expected.n_faces
    npt.assert_allclose(np.unique(loaded.vertices, axis=0), np.unique(expected.vertices, axis=0), atol=1e-7)
    assert loaded.signed_volume() == pytest.approx(expected.signed_volume())


class TestObj:
    def test_roundtrip(self, tmp_path, box_mesh):
        path = tmp_path / "box.obj"
        save_obj(path, box_mesh)
        loaded = load_obj(path)
        _assert_same_surface(loaded, box_mesh)

    def test_polygons_and_suffixes(self, tmp_path):
        path = tmp_path / "quad.obj"
        path.write_text(
            "# quad with uv and normals\n"
            "v 0 0 0\nv 1 0 0\nv 1 1 0\nv 0 1 0\n"
            "vt 0 0\nvn 0 0 1\n"
            "f 1/1/1 2/1/1 3/1/1 4/1/1\n"
        )
        mesh = load_obj(path)
        assert mesh.n_faces == 2
        assert _quad_area(mesh) == pytest.approx(1.0)
        npt.assert_allclose(np.sort(mesh.vertices[np.unique(mesh.faces)], axis=0),
                            np.sort([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], axis=0))

    def test_negative_indices(self, tmp_path):
        path = tmp_path / "neg.obj"
        path.write_text("v 0 0 0\nv 1 0 0\nv 0 1 0\nf -3 -2 -1\n")
        mesh = load_obj(path)
        assert mesh.n_faces == 1
        npt.assert_allclose(mesh.triangles()[0], [[0, 0, 0], [1, 0, 0], [0, 1, 0]])

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_obj(tmp_path / "nope.obj")


# ---------------------------------------------------------------------------
# PLY
# ---------------------------------------------------------------------------

class TestPly:
    def test_roundtrip(self, tmp_path, box_mesh):
        path = tmp_path / "box.ply"
        save_ply(path, box_mesh)
        loaded = load_ply(path)
        npt.assert_allclose(loaded.vertices, box_mesh.vertices)
        npt.assert_array_equal(loaded.faces, box_mesh.faces)

    def test_vertex_colours(self, tmp_path, box_mesh):
        path = tmp_path / "coloured.ply"
        colors = np.tile(np.array([[0, 255, 0]], dtype=np.uint8), (box_mesh.n_vertices, 1))
        save_ply(path, box_mesh, colors=colors)
        loaded = trimesh.load(path, process=False)
        npt.assert_array_equal(np.asarray(loaded.visual.vertex_colors)[:, :3], colors)
        npt.assert_allclose(load_ply(path).vertices, box_mesh.vertices)

    def test_coloured_points(self, tmp_path):
        path = tmp_path / "points.ply"
        points = np.array([[0.0, 0.0, 0.0], [1.0, 2.0, 3.0], [-1.0, 0.5, 0.25]])
        colors = np.array([[0, 255, 0], [255, 0, 0], [0, 255, 0]], dtype=np.uint8)
        save_ply(path, Mesh(points, np.zeros((0, 3), dtype=np.int64)), colors=colors)
        cloud = trimesh.load(path)
        npt.assert_array_equal(np.asarray(cloud.colors)[:, :3], colors)
        loaded = load_ply(path)
        assert loaded.n_faces == 0
        npt.assert_allclose(loaded.vertices, points)

    def test_binary(self, tmp_path, box_mesh):
        path = tmp_path / "box_bin.ply"
        path.write_bytes(_write_binary_ply(box_mesh.vertices, box_mesh.faces))
        loaded = load_ply(path)
        npt.assert_allclose(loaded.vertices, box_mesh.vertices)
        npt.assert_array_equal(loaded.faces, box_mesh.faces)

    def test_binary_quad(self, tmp_path):
        verts = np.array([[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]], dtype=np.float64)
        path = tmp_path / "quad.ply"
        path.write_bytes(_write_binary_ply(verts, np.array([[0, 1, 2, 3]])))
        mesh = load_ply(path)
        assert mesh.n_faces == 2
        assert _quad_area(mesh) == pytest.approx(1.0)

    def test_not_a_ply(self, tmp_path):
        path = tmp_path / "bad.ply"
        path.write_bytes(b"solid nope\n")
        with pytest.raises(RemeshError):
            load_ply(path)


# ---------------------------------------------------------------------------
# STL
# ---------------------------------------------------------------------------

class TestStl:
    def test_binary_welded(self, tmp_path, box_mesh):
        path = tmp_path / "box.stl"
        path.write_bytes(_write_binary_stl(box_mesh.triangles()))
        mesh = load_stl(path)
        assert mesh.n_vertices == 8
        assert mesh.n_faces == 12
        npt.assert_allclose(mesh.triangles(), box_mesh.triangles())

    def test_ascii_welded(self, tmp_path, box_mesh):
        path = tmp_path / "box_ascii.stl"
        path.write_text(_write_ascii_stl(box_mesh.triangles()))
        mesh = load_stl(path)
        assert mesh.n_vertices == 8
        npt.assert_allclose(mesh.triangles(), box_mesh.triangles())
        assert mesh.signed_volume() == pytest.approx(1.0)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestDispatch:
    @pytest.mark.parametrize("suffix", [".obj", ".ply", ".OBJ"])
    def test_save_load(self, tmp_path, box_mesh, suffix):
        path = tmp_path / f"box{suffix}"
        save_mesh(path, box_mesh)
        _assert_same_surface(load_mesh(path), box_mesh)

    def test_load_unsupported(self, tmp_path):
        path = tmp_path / "mesh.off"
        path.write_text("OFF\n")
        with pytest.raises(RemeshError):
            load_mesh(path)

    def test_save_stl_unsupported(self, tmp_path, box_mesh):
        with pytest.raises(RemeshError):
            save_mesh(tmp_path / "box.stl", box_mesh)
