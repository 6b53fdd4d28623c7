"""
tests/test_similarity.py
========================
Algebraic contract of SimilarityTransform and the transform applicator.

Laws pinned here:
    identity(x)              == x
    T.inverse()(T(x))        == x
    (A @ B)(x)               == A(B(x))
    projections of transformed cameras/landmarks are unchanged
"""
import json

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from gcpalign.core.similarity import SimilarityTransform
from gcpalign.core.transform import transform_camera, transform_cameras, transform_landmarks
from gcpalign.domain.types import Landmark

POINTS = np.array([
    [0.0, 0.0, 0.0],
    [1.0, 2.0, 3.0],
    [-50.0, 12.5, 7.25],
    [1e5, -2e5, 300.0],
])

SIM_A = SimilarityTransform(
    scale=0.75,
    rotation=Rotation.from_euler("zyx", [45.0, 10.0, -20.0], degrees=True).as_matrix(),
    translation=np.array([10.0, -4.0, 2.0]),
)
SIM_B = SimilarityTransform(
    scale=3.0,
    rotation=Rotation.from_euler("xyz", [-60.0, 5.0, 90.0], degrees=True).as_matrix(),
    translation=np.array([-1.0, 0.5, 100.0]),
)


# ===========================================================================
# 1. CONSTRUCTION
# ===========================================================================

class TestConstruction:

    def test_default_is_identity(self):
        sim = SimilarityTransform()
        assert sim.is_identity()
        np.testing.assert_allclose(sim.matrix(), np.eye(4))

    def test_identity_factory(self):
        assert SimilarityTransform.identity().is_identity()

    @pytest.mark.parametrize("scale", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_scale_raises(self, scale):
        with pytest.raises(ValueError, match="scale"):
            SimilarityTransform(scale=scale)

    def test_non_orthonormal_rotation_raises(self):
        with pytest.raises(ValueError, match="orthonormal"):
            SimilarityTransform(rotation=np.diag([1.0, 2.0, 1.0]))

    def test_reflection_raises(self):
        with pytest.raises(ValueError, match="orthonormal"):
            SimilarityTransform(rotation=np.diag([1.0, 1.0, -1.0]))

    def test_arrays_are_read_only(self):
        with pytest.raises(ValueError):
            SIM_A.translation[0] = 5.0


# ===========================================================================
# 2. ALGEBRA
# ===========================================================================

class TestAlgebra:

    def test_identity_apply_is_no_op(self):
        np.testing.assert_allclose(SimilarityTransform().apply(POINTS), POINTS, rtol=0, atol=0)

    def test_apply_single_point_matches_batch(self):
        np.testing.assert_allclose(SIM_A.apply(POINTS[1]), SIM_A.apply(POINTS)[1])

    def test_inverse_round_trip(self):
        back = SIM_A.inverse().apply(SIM_A.apply(POINTS))
        np.testing.assert_allclose(back, POINTS, atol=1e-8, err_msg="T^-1(T(x)) != x")

    def test_inverse_composes_to_identity(self):
        assert (SIM_A @ SIM_A.inverse()).is_identity(atol=1e-12)

    def test_compose_applies_right_operand_first(self):
        np.testing.assert_allclose(
            (SIM_A @ SIM_B).apply(POINTS),
            SIM_A.apply(SIM_B.apply(POINTS)),
            rtol=1e-12, atol=1e-6,
        )

    def test_matrix_matches_apply(self):
        homog = np.hstack([POINTS, np.ones((len(POINTS), 1))])
        np.testing.assert_allclose((homog @ SIM_B.matrix().T)[:, :3], SIM_B.apply(POINTS), atol=1e-6)

    def test_str_mentions_scale(self):
        assert "scale=0.75" in str(SIM_A)


# ===========================================================================
# 3. PERSISTENCE
# ===========================================================================

class TestPersistence:

    def test_save_load_round_trip(self):
        loaded = SimilarityTransform.load(SIM_A.save(strategy="reference"))
        np.testing.assert_allclose(loaded.matrix(), SIM_A.matrix(), rtol=1e-15)

    def test_save_records_strategy(self):
        data = json.loads(SIM_A.save(strategy="canonical"))
        assert data["method"] == "similarity3d"
        assert data["strategy"] == "canonical"

    def test_load_rejects_other_method(self):
        with pytest.raises(ValueError, match="Invalid method"):
            SimilarityTransform.load(json.dumps({"method": "similarity2d", "parameters": {}}))

    def test_load_rejects_missing_parameters(self):
        with pytest.raises(ValueError, match="Missing parameters"):
            SimilarityTransform.load(json.dumps({"method": "similarity3d", "parameters": {"scale": 1.0}}))


# ===========================================================================
# 4. TRANSFORM APPLICATOR
# ===========================================================================

class TestTransformApplicator:

    def test_identity_leaves_cameras_unchanged(self, scene):
        moved = transform_cameras(scene.world_cameras, SimilarityTransform())
        assert moved.keys() == scene.world_cameras.keys()
        for fid, cam in scene.world_cameras.items():
            np.testing.assert_allclose(moved[fid].center, cam.center)
            np.testing.assert_allclose(moved[fid].R, cam.R)
            np.testing.assert_allclose(moved[fid].K, cam.K)

    def test_identity_leaves_landmarks_unchanged(self, scene):
        moved = transform_landmarks(scene.world_landmarks, SimilarityTransform())
        for lid, lm in scene.world_landmarks.items():
            np.testing.assert_allclose(moved[lid].loc, lm.loc)
            assert moved[lid].color == lm.color

    def test_returns_new_collections(self, scene):
        moved = transform_landmarks(scene.world_landmarks, SIM_A)
        assert moved is not scene.world_landmarks
        np.testing.assert_allclose(scene.world_landmarks[0].loc, [-40.0, 0.0, 1.0])

    def test_landmark_inverse_round_trip(self, scene):
        there = transform_landmarks(scene.world_landmarks, SIM_B)
        back = transform_landmarks(there, SIM_B.inverse())
        for lid, lm in scene.world_landmarks.items():
            np.testing.assert_allclose(back[lid].loc, lm.loc, atol=1e-9)

    def test_projection_is_invariant(self, scene):
        cam = scene.world_cameras[2]
        pts = np.array([lm.loc for lm in scene.world_landmarks.values()])
        moved = transform_camera(cam, SIM_A)
        np.testing.assert_allclose(moved.project(SIM_A.apply(pts)), cam.project(pts), atol=1e-8)

    def test_camera_rotation_stays_orthonormal(self, scene):
        moved = transform_camera(scene.world_cameras[0], SIM_B)
        np.testing.assert_allclose(moved.R @ moved.R.T, np.eye(3), atol=1e-12)

    def test_landmark_color_is_kept(self):
        moved = transform_landmarks({7: Landmark(loc=[1, 2, 3], color=(1, 2, 3))}, SIM_A)
        assert moved[7].color == (1, 2, 3)
