from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np


def _frozen_array(values, shape: Tuple[int, ...], name: str) -> np.ndarray:
    arr = np.array(values, dtype=float).reshape(shape) if shape else np.array(values, dtype=float).ravel()
    if not np.all(np.isfinite(arr)):
        raise ValueError(f"{name} must be finite")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class Camera:
    """
    Pinhole camera.

    R rotates world vectors into the camera frame; the camera looks down its
    +z axis. A world point X maps to camera coordinates R @ (X - center).
    Distortion coefficients are carried through IO but not used by project().
    """
    K: np.ndarray
    R: np.ndarray
    center: np.ndarray
    distortion: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        object.__setattr__(self, "K", _frozen_array(self.K, (3, 3), "K"))
        object.__setattr__(self, "R", _frozen_array(self.R, (3, 3), "R"))
        object.__setattr__(self, "center", _frozen_array(self.center, (3,), "center"))
        object.__setattr__(self, "distortion", _frozen_array(self.distortion, (), "distortion"))

    @classmethod
    def from_krt(cls, K, R, t, distortion=None) -> "Camera":
        R = np.asarray(R, dtype=float)
        center = -R.T @ np.asarray(t, dtype=float).reshape(3)
        return cls(K=K, R=R, center=center,
                   distortion=np.zeros(0) if distortion is None else distortion)

    @property
    def translation(self) -> np.ndarray:
        return -self.R @ self.center

    @property
    def projection_matrix(self) -> np.ndarray:
        return self.K @ np.hstack([self.R, self.translation.reshape(3, 1)])

    def depth(self, points: np.ndarray) -> np.ndarray:
        """Signed depth along the optical axis for (N,3) or (3,) points."""
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        return (pts - self.center) @ self.R[2]

    def project(self, points: np.ndarray) -> np.ndarray:
        """Project (N,3) or (3,) world points to (N,2) pixels."""
        pts = np.atleast_2d(np.asarray(points, dtype=float))
        cam = (pts - self.center) @ self.R.T
        img = cam @ self.K.T
        return img[:, :2] / img[:, 2:3]


@dataclass(frozen=True, eq=False)
class Landmark:
    loc: np.ndarray
    color: Tuple[int, int, int] = (255, 255, 255)
    observations: int = 0

    def __post_init__(self):
        object.__setattr__(self, "loc", _frozen_array(self.loc, (3,), "loc"))
        object.__setattr__(self, "color", tuple(int(c) for c in self.color))


@dataclass(frozen=True)
class TrackState:
    frame_id: int
    u: float
    v: float

    @property
    def uv(self) -> np.ndarray:
        return np.array([self.u, self.v], dtype=float)


@dataclass(frozen=True)
class Track:
    """Observations of the landmark sharing this track's id, in input order."""
    track_id: int
    states: Tuple[TrackState, ...] = ()

    def __len__(self) -> int:
        return len(self.states)

    def state_for(self, frame_id: int) -> Optional[TrackState]:
        for s in self.states:
            if s.frame_id == frame_id:
                return s
        return None


CameraMap = Dict[int, Camera]
LandmarkMap = Dict[int, Landmark]
TrackMap = Dict[int, Track]
