from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Mapping, Optional

import numpy as np

from gcpalign.core.math_engine import triangulate_dlt
from gcpalign.domain.types import Camera, Landmark, LandmarkMap, Track


class Triangulator(ABC):
    @abstractmethod
    def triangulate(
        self,
        cameras: Mapping[int, Camera],
        tracks: Mapping[int, Track],
        landmarks: Mapping[int, Landmark],
    ) -> LandmarkMap:
        """
        Re-estimates each seeded landmark from its track. Landmarks that cannot be
        triangulated are absent from the returned map.
        """
        pass


class DLTTriangulator(Triangulator):
    def __init__(self, min_views: int = 2, logger: Optional[logging.Logger] = None):
        if min_views < 2:
            raise ValueError("min_views must be at least 2")
        self.min_views = min_views
        self.logger = logger or logging.getLogger(__name__)

    def triangulate(self, cameras, tracks, landmarks):
        out: LandmarkMap = {}
        for lm_id in sorted(landmarks):
            track = tracks.get(lm_id)
            if track is None:
                self.logger.debug("Landmark %d has no track", lm_id)
                continue

            views = [(cameras[s.frame_id], s.uv) for s in track.states if s.frame_id in cameras]
            if len(views) < self.min_views:
                self.logger.debug("Landmark %d seen by %d camera(s), need %d", lm_id, len(views), self.min_views)
                continue

            X = triangulate_dlt([c.projection_matrix for c, _ in views], np.array([uv for _, uv in views]))
            if not np.all(np.isfinite(X)):
                self.logger.debug("Landmark %d triangulated to infinity", lm_id)
                continue
            if any(c.depth(X)[0] <= 0.0 for c, _ in views):
                self.logger.debug("Landmark %d triangulated behind a camera", lm_id)
                continue

            out[lm_id] = replace(landmarks[lm_id], loc=X, observations=len(views))
        return out


class TriangulatorFactory:
    available = ("dlt",)

    @staticmethod
    def create(method: str, logger: Optional[logging.Logger] = None) -> Triangulator:
        if method == "dlt":
            return DLTTriangulator(logger=logger)
        else:
            raise ValueError(f"Unknown triangulator: {method}")
