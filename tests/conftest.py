"""
Shared fixtures: a synthetic aerial scene with a KNOWN similarity between the
local reconstruction frame and the geographic local (ENU) frame.

World (ENU, meters, relative to WORLD_ORIGIN):
    5 nadir cameras ~120 m above ground, 1000 px focal length
    5 ground control points, not coplanar
    a handful of extra landmarks

Local reconstruction frame:
    local = TRUE_SIM.inverse()(world)

Pixel observations are exact projections, so every estimator must recover
TRUE_SIM to numerical precision.
"""
import os
import sys

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from gcpalign.core.geo_map import UTM
from gcpalign.core.similarity import SimilarityTransform
from gcpalign.core.transform import transform_cameras, transform_landmarks
from gcpalign.domain.schemas import GeoPoint
from gcpalign.domain.types import Camera, Landmark, Track, TrackState

K = np.array([[1000.0, 0.0, 640.0], [0.0, 1000.0, 480.0], [0.0, 0.0, 1.0]])
# camera x = east, camera y = south, optical axis = down
R_NADIR = np.diag([1.0, -1.0, -1.0])

CAMERA_CENTERS = np.array([
    [-30.0, -20.0, 120.0],
    [30.0, -20.0, 118.0],
    [-30.0, 20.0, 122.0],
    [30.0, 20.0, 119.0],
    [0.0, 0.0, 121.0],
])

GCP_WORLD = np.array([
    [-20.0, -15.0, 2.0],
    [25.0, -10.0, 0.0],
    [-15.0, 18.0, 5.0],
    [20.0, 22.0, 3.0],
    [0.0, 5.0, 8.0],
])

EXTRA_WORLD = np.array([
    [-40.0, 0.0, 1.0],
    [40.0, 5.0, 4.0],
    [5.0, -30.0, 2.0],
    [-5.0, 35.0, 6.0],
    [10.0, 10.0, 0.5],
    [-12.0, -3.0, 7.0],
])

TRUE_SIM = SimilarityTransform(
    scale=2.5,
    rotation=Rotation.from_euler("xyz", [10.0, -5.0, 30.0], degrees=True).as_matrix(),
    translation=np.array([3.0, -7.0, 1.0]),
)

WORLD_ORIGIN = GeoPoint(latitude=40.0, longitude=-105.0, altitude=1600.0)
IMAGE_STEMS = [f"frame{i:04d}" for i in range(len(CAMERA_CENTERS))]


class Scene:
    def __init__(self):
        self.world_cameras = {i: Camera(K=K, R=R_NADIR, center=c) for i, c in enumerate(CAMERA_CENTERS)}
        self.world_gcps = {i: Landmark(loc=p) for i, p in enumerate(GCP_WORLD)}
        self.world_landmarks = {i: Landmark(loc=p, color=(10 * i, 20, 30)) for i, p in enumerate(EXTRA_WORLD)}

        inv = TRUE_SIM.inverse()
        self.local_cameras = transform_cameras(self.world_cameras, inv)
        self.local_landmarks = transform_landmarks(self.world_landmarks, inv)

        self.tracks = {}
        for lm_id, lm in self.world_gcps.items():
            states = []
            for fid, cam in self.world_cameras.items():
                u, v = cam.project(lm.loc)[0]
                states.append(TrackState(frame_id=fid, u=float(u), v=float(v)))
            self.tracks[lm_id] = Track(track_id=lm_id, states=tuple(states))

        self.mapper = UTM()
        e0, n0, zone, north = self.mapper.latlon_to_utm(WORLD_ORIGIN.latitude, WORLD_ORIGIN.longitude)
        self.origin_utm = np.array([e0, n0, WORLD_ORIGIN.altitude])
        self.zone = zone
        self.is_north = north

    def world_to_geo(self, p) -> GeoPoint:
        e, n, z = self.origin_utm + np.asarray(p, dtype=float)
        lat, lon = self.mapper.utm_to_latlon(e, n, self.zone, self.is_north)
        return GeoPoint(latitude=lat, longitude=lon, altitude=z)

    def reference_lines(self, n_points=None, n_states=None):
        """Reference file lines: lon lat alt frame u v ..."""
        ids = sorted(self.world_gcps)[:n_points]
        lines = []
        for lm_id in ids:
            geo = self.world_to_geo(self.world_gcps[lm_id].loc)
            states = self.tracks[lm_id].states[:n_states]
            obs = " ".join(f"{s.frame_id} {s.u!r} {s.v!r}" for s in states)
            lines.append(f"{geo.longitude!r} {geo.latitude!r} {geo.altitude!r} {obs}")
        return lines


@pytest.fixture(scope="session")
def scene():
    return Scene()
