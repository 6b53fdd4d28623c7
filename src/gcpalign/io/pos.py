from __future__ import annotations

import logging
from dataclasses import astuple, dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

import numpy as np
from scipy.spatial.transform import Rotation

from gcpalign.core.local_frame import LocalGeoCS
from gcpalign.domain.types import Camera

_logger = logging.getLogger(__name__)

# ENU vector -> NED vector
_NED_FROM_ENU = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, -1.0]])
# body (forward, right, down) -> camera (image right, image down, optical axis)
_CAM_FROM_BODY = np.array([[0.0, 1.0, 0.0], [-1.0, 0.0, 0.0], [0.0, 0.0, 1.0]])


@dataclass(frozen=True)
class INSData:
    """One POS record. Angles in degrees, position in WGS84 degrees/meters."""
    source_name: str
    yaw: float
    pitch: float
    roll: float
    lat: float
    lon: float
    alt: float
    gps_seconds: float = 0.0
    gps_week: int = 0
    north_vel: float = 0.0
    east_vel: float = 0.0
    up_vel: float = 0.0
    imu_status: int = 0
    local_adj: int = 0
    dst_flags: int = 0


POS_FIELDS = tuple(f.name for f in fields(INSData))


def camera_ypr(camera: Camera) -> np.ndarray:
    """Yaw, pitch, roll (degrees, ZYX) of the camera body in the local NED frame."""
    ned_from_body = _NED_FROM_ENU @ camera.R.T @ _CAM_FROM_BODY
    return Rotation.from_matrix(ned_from_body).as_euler("ZYX", degrees=True)


def ins_from_camera(camera: Camera, frame: LocalGeoCS, source_name: str = "") -> INSData:
    geo = frame.local_to_geo(camera.center)
    yaw, pitch, roll = camera_ypr(camera)
    return INSData(
        source_name=source_name,
        yaw=float(yaw), pitch=float(pitch), roll=float(roll),
        lat=geo.latitude, lon=geo.longitude, alt=geo.altitude,
    )


def update_ins_from_cameras(
    cameras: Mapping[int, Camera],
    frame: LocalGeoCS,
    frame2filename: Optional[Sequence[str]] = None,
    logger: Optional[logging.Logger] = None,
) -> Dict[int, INSData]:
    """POS records for every camera; empty when the frame has no geographic origin."""
    log = logger or _logger
    if not frame.is_anchored:
        log.warning("Local coordinate frame has no geographic origin; cannot derive POS data")
        return {}
    out: Dict[int, INSData] = {}
    for fid in sorted(cameras):
        name = frame2filename[fid] if frame2filename is not None and fid < len(frame2filename) else str(fid)
        out[fid] = ins_from_camera(cameras[fid], frame, source_name=name)
    return out


def write_pos_file(ins: INSData, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    values = [v if isinstance(v, str) else f"{v:.12g}" for v in astuple(ins)]
    path.write_text(",".join(values) + "\n", encoding="utf-8")


def read_pos_file(path: Union[str, Path]) -> INSData:
    path = Path(path)
    tokens = [t.strip() for t in path.read_text(encoding="utf-8").strip().split(",")]
    if len(tokens) != len(POS_FIELDS):
        raise ValueError(f"{path}: expected {len(POS_FIELDS)} comma-separated values, got {len(tokens)}")
    kwargs = {}
    for f, tok in zip(fields(INSData), tokens):
        kwargs[f.name] = tok if f.type == "str" else (int(float(tok)) if f.type == "int" else float(tok))
    return INSData(**kwargs)
