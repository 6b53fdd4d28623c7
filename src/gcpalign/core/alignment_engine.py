"""
Estimation of the similarity that moves a local reconstruction into the
reference frame.

Strategies are tried in priority order and the first one that produces a
transform wins:

  1. reference  - triangulate the reference tracks with the local cameras and
                  fit the triangulated points onto the reference landmarks
  2. canonical  - convention-based normalisation of the local reconstruction
  3. identity   - nothing viable; cameras and landmarks pass through unchanged
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from gcpalign.core.estimators import CanonicalEstimator, SimilarityEstimator
from gcpalign.core.math_engine import reprojection_rmse
from gcpalign.core.similarity import SimilarityTransform
from gcpalign.core.triangulation import Triangulator
from gcpalign.domain.types import Camera, Landmark, Track

MIN_CORRESPONDENCES = 3


@dataclass(frozen=True)
class AlignmentInputs:
    cameras: Mapping[int, Camera] = field(default_factory=dict)
    landmarks: Mapping[int, Landmark] = field(default_factory=dict)
    reference_landmarks: Mapping[int, Landmark] = field(default_factory=dict)
    reference_tracks: Mapping[int, Track] = field(default_factory=dict)


@dataclass(frozen=True, eq=False)
class AlignmentReport:
    transform: SimilarityTransform
    strategy: str
    num_correspondences: int = 0
    reprojection_rmse: Optional[float] = None
    residuals: Optional[pd.DataFrame] = None


class AlignmentStrategy(ABC):
    name: str = ""

    @abstractmethod
    def propose(self, inputs: AlignmentInputs) -> Optional[AlignmentReport]:
        """Returns a report, or None when this strategy is not viable for the inputs."""
        pass


class ReferenceStrategy(AlignmentStrategy):
    name = "reference"

    def __init__(
        self,
        triangulator: Triangulator,
        estimator: SimilarityEstimator,
        min_correspondences: int = MIN_CORRESPONDENCES,
        logger: Optional[logging.Logger] = None,
    ):
        self.triangulator = triangulator
        self.estimator = estimator
        self.min_correspondences = min_correspondences
        self.logger = logger or logging.getLogger(__name__)

    def propose(self, inputs):
        ref_lms = inputs.reference_landmarks
        ref_tracks = inputs.reference_tracks
        if not ref_lms or not ref_tracks:
            self.logger.debug("No reference landmarks/tracks")
            return None
        if not inputs.cameras:
            self.logger.warning("Reference points given but there are no cameras to triangulate them with")
            return None

        self.logger.info("Using reference landmarks/tracks")
        self.logger.info("Triangulating local-space reference landmarks from reference tracks and cameras")
        local_lms = self.triangulator.triangulate(inputs.cameras, ref_tracks, dict(ref_lms))
        if len(local_lms) < len(ref_lms):
            self.logger.warning(
                "Only %d out of %d reference points triangulated", len(local_lms), len(ref_lms)
            )

        rmse = reprojection_rmse(inputs.cameras, local_lms, ref_tracks)
        self.logger.debug("Post-triangulation RMSE: %s", rmse)

        ids = sorted(set(local_lms) & set(ref_lms))
        if len(ids) < self.min_correspondences:
            self.logger.warning(
                "%d reference correspondence(s) available, at least %d needed; skipping reference alignment",
                len(ids), self.min_correspondences,
            )
            return None

        self.logger.info("Estimating transform to reference landmarks (from local-space reference landmarks)")
        try:
            sim = self.estimator.estimate_transform(local_lms, ref_lms)
        except ValueError as e:
            self.logger.warning("Reference alignment failed: %s", e)
            return None

        src = np.array([local_lms[i].loc for i in ids])
        dst = np.array([ref_lms[i].loc for i in ids])
        d = sim.apply(src) - dst
        residuals = pd.DataFrame({"Point": ids, "dX": d[:, 0], "dY": d[:, 1], "dZ": d[:, 2]})

        return AlignmentReport(
            transform=sim,
            strategy=self.name,
            num_correspondences=len(ids),
            reprojection_rmse=rmse,
            residuals=residuals,
        )


class CanonicalStrategy(AlignmentStrategy):
    name = "canonical"

    def __init__(self, estimator: CanonicalEstimator, logger: Optional[logging.Logger] = None):
        self.estimator = estimator
        self.logger = logger or logging.getLogger(__name__)

    def propose(self, inputs):
        self.logger.info("Using canonical transform estimation")
        try:
            sim = self.estimator.estimate_transform(inputs.cameras, inputs.landmarks)
        except ValueError as e:
            self.logger.warning("Canonical transform estimation failed: %s", e)
            return None
        return AlignmentReport(transform=sim, strategy=self.name)


class AlignmentEstimator:
    def __init__(self, strategies: Sequence[AlignmentStrategy] = (), logger: Optional[logging.Logger] = None):
        self.strategies: List[AlignmentStrategy] = list(strategies)
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_components(
        cls,
        triangulator: Optional[Triangulator] = None,
        similarity_estimator: Optional[SimilarityEstimator] = None,
        canonical_estimator: Optional[CanonicalEstimator] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "AlignmentEstimator":
        strategies: List[AlignmentStrategy] = []
        if triangulator is not None and similarity_estimator is not None:
            strategies.append(ReferenceStrategy(triangulator, similarity_estimator, logger=logger))
        if canonical_estimator is not None:
            strategies.append(CanonicalStrategy(canonical_estimator, logger=logger))
        return cls(strategies, logger=logger)

    @property
    def strategy_names(self) -> List[str]:
        return [s.name for s in self.strategies]

    def estimate_with_report(
        self,
        cameras: Mapping[int, Camera],
        landmarks: Mapping[int, Landmark],
        reference_landmarks: Optional[Mapping[int, Landmark]] = None,
        reference_tracks: Optional[Mapping[int, Track]] = None,
    ) -> AlignmentReport:
        inputs = AlignmentInputs(
            cameras=cameras,
            landmarks=landmarks,
            reference_landmarks=reference_landmarks or {},
            reference_tracks=reference_tracks or {},
        )
        for strategy in self.strategies:
            report = strategy.propose(inputs)
            if report is not None:
                self.logger.debug("Estimated transformation (%s): %s", report.strategy, report.transform)
                return report

        if self.strategies:
            self.logger.warning("No alignment strategy was viable; using the identity transform")
        return AlignmentReport(transform=SimilarityTransform.identity(), strategy="identity")

    def estimate(self, cameras, landmarks, reference_landmarks=None, reference_tracks=None) -> SimilarityTransform:
        return self.estimate_with_report(cameras, landmarks, reference_landmarks, reference_tracks).transform
