from __future__ import annotations

from dataclasses import replace
from typing import Mapping

from gcpalign.core.similarity import SimilarityTransform
from gcpalign.domain.types import Camera, CameraMap, Landmark, LandmarkMap


def transform_camera(camera: Camera, sim: SimilarityTransform) -> Camera:
    """Move a camera into the similarity's target frame; intrinsics are unchanged."""
    return replace(
        camera,
        R=camera.R @ sim.rotation.T,
        center=sim.apply(camera.center),
    )


def transform_cameras(cameras: Mapping[int, Camera], sim: SimilarityTransform) -> CameraMap:
    return {fid: transform_camera(cam, sim) for fid, cam in cameras.items()}


def transform_landmarks(landmarks: Mapping[int, Landmark], sim: SimilarityTransform) -> LandmarkMap:
    return {lid: replace(lm, loc=sim.apply(lm.loc)) for lid, lm in landmarks.items()}
