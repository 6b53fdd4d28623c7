from abc import ABC, abstractmethod
from typing import Mapping, Optional

import numpy as np

from gcpalign.core.math_engine import principal_frame, umeyama
from gcpalign.core.similarity import SimilarityTransform
from gcpalign.domain.types import Camera, Landmark


class SimilarityEstimator(ABC):
    def estimate_transform(
        self,
        source: Mapping[int, Landmark],
        target: Mapping[int, Landmark],
    ) -> SimilarityTransform:
        """Transform taking `source` onto `target`, matched by shared landmark id in ascending order."""
        ids = sorted(set(source) & set(target))
        src = np.array([source[i].loc for i in ids], dtype=float).reshape(-1, 3)
        dst = np.array([target[i].loc for i in ids], dtype=float).reshape(-1, 3)
        return self.estimate_from_points(src, dst)

    @abstractmethod
    def estimate_from_points(self, src: np.ndarray, dst: np.ndarray) -> SimilarityTransform:
        pass


class UmeyamaSimilarity(SimilarityEstimator):
    def estimate_from_points(self, src, dst):
        s, R, t = umeyama(src, dst)
        return SimilarityTransform(scale=s, rotation=R, translation=t)


class CanonicalEstimator(ABC):
    @abstractmethod
    def estimate_transform(
        self,
        cameras: Mapping[int, Camera],
        landmarks: Mapping[int, Landmark],
    ) -> SimilarityTransform:
        pass


class PCACanonical(CanonicalEstimator):
    """
    Centres the landmark cloud, aligns its principal axes with x/y/z (largest
    variance on x) and puts the cameras on the +z side. With estimate_scale
    the landmarks end up with unit RMS distance from the origin.
    """

    def __init__(self, estimate_scale: bool = True):
        self.estimate_scale = estimate_scale

    def estimate_transform(self, cameras, landmarks):
        pts = np.array([lm.loc for lm in landmarks.values()], dtype=float).reshape(-1, 3)
        if pts.shape[0] < 3:
            raise ValueError(f"At least 3 landmarks are required for a canonical transform, got {pts.shape[0]}")

        centroid, axes, rms = principal_frame(pts)

        if cameras:
            cam_mean = np.mean([c.center for c in cameras.values()], axis=0)
            if np.dot(cam_mean - centroid, axes[2]) < 0.0:
                # Rotate 180 degrees about x: keeps the frame right-handed
                axes[1] = -axes[1]
                axes[2] = -axes[2]

        scale = 1.0
        if self.estimate_scale:
            if rms <= 0.0:
                raise ValueError("Degenerate geometry: landmarks are coincident")
            scale = 1.0 / rms

        return SimilarityTransform(scale=scale, rotation=axes, translation=-scale * (axes @ centroid))


class EstimatorFactory:
    similarity_methods = ("umeyama",)
    canonical_methods = ("pca",)

    @staticmethod
    def create_similarity(method: str) -> SimilarityEstimator:
        if method == "umeyama":
            return UmeyamaSimilarity()
        else:
            raise ValueError(f"Unknown similarity estimator: {method}")

    @staticmethod
    def create_canonical(method: str, estimate_scale: Optional[bool] = None) -> CanonicalEstimator:
        if method == "pca":
            return PCACanonical(estimate_scale=True if estimate_scale is None else estimate_scale)
        else:
            raise ValueError(f"Unknown canonical estimator: {method}")
