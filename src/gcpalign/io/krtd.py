from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np

from gcpalign.domain.types import Camera
from gcpalign.exceptions import ParseError


def read_krtd_file(path: Union[str, Path]) -> Camera:
    """
    KRTD layout: K (3x3), R (3x3), t (3) and optional distortion coefficients,
    whitespace separated. x_cam = R X + t.
    """
    path = Path(path)
    try:
        values = np.array(path.read_text(encoding="utf-8").split(), dtype=float)
    except ValueError as e:
        raise ParseError(path, f"non-numeric KRTD content: {e}")
    if values.size < 21:
        raise ParseError(path, f"expected at least 21 values (K, R, t), got {values.size}")

    K = values[0:9].reshape(3, 3)
    R = values[9:18].reshape(3, 3)
    t = values[18:21]
    try:
        return Camera.from_krt(K, R, t, distortion=values[21:])
    except ValueError as e:
        raise ParseError(path, str(e))


def _row(values) -> str:
    return " ".join(f"{v:.17g}" for v in values)


def write_krtd_file(camera: Camera, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    distortion = camera.distortion if camera.distortion.size else np.zeros(1)
    lines = [_row(r) for r in camera.K] + [""]
    lines += [_row(r) for r in camera.R] + [""]
    lines += [_row(camera.translation), "", _row(distortion)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
