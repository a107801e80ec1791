"""End-to-end tests for volremesh.remesher."""
from __future__ import annotations

import numpy as np
import numpy.testing as npt
import pytest

from conftest import edge_use_counts, make_box_mesh, make_icosphere
from volremesh import Mesh, Policy, PreconditionError, RemeshParams, Remesher, VolumeBuilder, remesh

VS = 0.05


@pytest.fixture
def box():
    return make_box_mesh(0.53, 0.53, 0.53)


def _assert_closed(mesh):
    counts = edge_use_counts(mesh)
    assert (counts == 2).all(), f"edge use counts {np.unique(counts)}"


class _FailingBuilder(VolumeBuilder):
    def build(self, mesh, params):
        raise RuntimeError("volume kernel failed")


# ---------------------------------------------------------------------------
# Preconditions
# ---------------------------------------------------------------------------

class TestPreconditions:
    def test_invalid_params_rejected(self):
        with pytest.raises(PreconditionError):
            Remesher(RemeshParams())

    def test_build_without_mesh(self):
        with pytest.raises(PreconditionError):
            Remesher(RemeshParams(voxel_size=VS)).build_volume()

    def test_extract_without_volume(self, box):
        remesher = Remesher(RemeshParams(voxel_size=VS))
        remesher.bind_mesh(box)
        with pytest.raises(PreconditionError):
            remesher.extract_mesh(Mesh())

    def test_rebind_drops_volume(self, box):
        remesher = Remesher(RemeshParams(voxel_size=VS))
        remesher.bind_mesh(box)
        remesher.build_volume()
        assert remesher.volume is not None
        remesher.bind_mesh(box)
        assert remesher.volume is None

    def test_failed_build_discards_volume(self, box):
        remesher = Remesher(RemeshParams(voxel_size=VS))
        remesher.bind_mesh(box)
        remesher.build_volume()
        remesher.builder = _FailingBuilder()
        with pytest.raises(RuntimeError):
            remesher.build_volume()
        assert remesher.volume is None
        with pytest.raises(PreconditionError):
            remesher.extract_mesh(Mesh())


# ---------------------------------------------------------------------------
# Round trips
# ---------------------------------------------------------------------------

class TestRoundTrip:
    @pytest.mark.parametrize("policy", list(Policy))
    def test_box(self, box, policy):
        out = remesh(box, RemeshParams(voxel_size=VS, policy=policy))
        lo, hi = out.bounds()
        npt.assert_allclose(lo, -0.53, atol=VS)
        npt.assert_allclose(hi, 0.53, atol=VS)
        assert out.signed_volume() == pytest.approx(box.signed_volume(), rel=0.05)
        _assert_closed(out)

    def test_sphere(self):
        sphere = make_icosphere(3)
        out = remesh(sphere, RemeshParams(voxel_size=VS))
        assert out.signed_volume() == pytest.approx(sphere.signed_volume(), rel=0.05)
        radii = np.linalg.norm(out.vertices, axis=1)
        npt.assert_allclose(radii, 1.0, atol=VS)
        _assert_closed(out)

    def test_isovalue_offsets_surface(self, box):
        out = remesh(box, RemeshParams(isovalue=0.1, voxel_size=VS, policy=Policy.WINDING_NUMBER))
        lo, hi = out.bounds()
        npt.assert_allclose(hi, 0.63, atol=VS)
        npt.assert_allclose(lo, -0.63, atol=VS)

    def test_holed_box_is_closed(self):
        box = make_box_mesh(0.53, 0.53, 0.53)
        holed = Mesh(box.vertices, box.faces[1:])
        out = remesh(holed, RemeshParams(voxel_size=VS, policy=Policy.WINDING_NUMBER))
        _assert_closed(out)
        assert out.signed_volume() == pytest.approx(box.signed_volume(), rel=0.1)

    def test_flipped_input_gives_outward_output(self, box):
        flipped = Mesh(box.vertices, box.faces[:, ::-1])
        out = remesh(flipped, RemeshParams(voxel_size=VS, policy=Policy.WINDING_NUMBER))
        assert out.signed_volume() > 0.0

    def test_no_unreferenced_vertices(self, box):
        out = remesh(box, RemeshParams(voxel_size=VS))
        used = np.zeros(out.n_vertices, dtype=bool)
        used[out.faces.ravel()] = True
        assert used.all()

    def test_extract_replaces_out(self, box):
        remesher = Remesher(RemeshParams(voxel_size=VS))
        remesher.bind_mesh(box)
        remesher.build_volume()
        out = make_icosphere(1)
        result = remesher.extract_mesh(out)
        assert result is out
        assert out.bounds()[1].max() == pytest.approx(0.53, abs=VS)

    def test_extract_twice_is_stable(self, box):
        remesher = Remesher(RemeshParams(voxel_size=VS))
        remesher.bind_mesh(box)
        remesher.build_volume()
        a = remesher.extract_mesh(Mesh())
        b = remesher.extract_mesh(Mesh())
        npt.assert_array_equal(a.faces, b.faces)
        npt.assert_allclose(a.vertices, b.vertices)

    def test_empty_extraction(self, box):
        remesher = Remesher(RemeshParams(isovalue=-0.6, voxel_size=0.1))
        remesher.bind_mesh(box)
        remesher.build_volume()
        out = remesher.extract_mesh(box.copy())
        assert out.is_empty()

    def test_empty_mesh_gives_empty_result(self):
        out = remesh(Mesh(), RemeshParams(voxel_size=0.1, policy=Policy.WINDING_NUMBER))
        assert out.is_empty()
        assert out.n_vertices == 0

    def test_vertices_without_faces_give_empty_result(self):
        points = Mesh(np.eye(3), np.zeros((0, 3), dtype=np.int64))
        out = remesh(points, RemeshParams(isovalue=0.2, voxel_size=0.1, policy=Policy.WINDING_NUMBER))
        assert out.is_empty()

    def test_empty_mesh_level_set_rejected(self):
        with pytest.raises(PreconditionError):
            remesh(Mesh(), RemeshParams(voxel_size=0.1, policy=Policy.LEVEL_SET))
