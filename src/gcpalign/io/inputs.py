from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

from gcpalign.domain.types import CameraMap
from gcpalign.io.krtd import read_krtd_file

_logger = logging.getLogger(__name__)


def read_image_list(path: Union[str, Path]) -> Tuple[List[str], Dict[str, int]]:
    """
    Frame ids are the zero-based order of the list (no gaps). Returns the
    frame -> file stem list and the stem -> frame map.
    """
    frame2filename: List[str] = []
    filename2frame: Dict[str, int] = {}
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            stem = Path(line).stem
            filename2frame[stem] = len(frame2filename)
            frame2filename.append(stem)
    return frame2filename, filename2frame


def resolve_files(path: Union[str, Path]) -> List[Path]:
    """Files of a directory (sorted), or the paths listed one per line in a text file."""
    p = Path(path)
    if p.is_dir():
        return sorted(f for f in p.iterdir() if f.is_file())
    with p.open("r", encoding="utf-8") as f:
        return [Path(line.strip()) for line in f if line.strip()]


def load_input_cameras_krtd(
    krtd_files: Union[str, Path],
    filename2frame: Mapping[str, int],
    logger: Optional[logging.Logger] = None,
) -> CameraMap:
    """
    Reads KRTD cameras and keys them by the frame whose image shares the file
    stem. Files with no matching image are ignored.
    """
    log = logger or _logger
    log.info("loading KRTD input camera files")

    cameras: CameraMap = {}
    for fpath in resolve_files(krtd_files):
        frame = filename2frame.get(fpath.stem)
        if frame is not None:
            cameras[frame] = read_krtd_file(fpath)

    if not cameras:
        raise ValueError("No KRTD files from input set match input image frames. Check KRTD input files!")
    if len(cameras) != len(filename2frame):
        log.warning(
            "Input KRTD camera set is sparse compared to input imagery (%d cameras for %d images)",
            len(cameras), len(filename2frame),
        )
    return cameras
