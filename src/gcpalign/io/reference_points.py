from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
from pydantic import ValidationError

from gcpalign.core.local_frame import ORIGIN_FROM_FILE, ORIGIN_FROM_REFERENCE, LocalGeoCS
from gcpalign.domain.schemas import GeoPoint
from gcpalign.domain.types import Landmark, LandmarkMap, Track, TrackMap, TrackState
from gcpalign.exceptions import ParseError

_logger = logging.getLogger(__name__)


def _parse_line(path: Path, lineno: int, line: str) -> Tuple[GeoPoint, List[TrackState]]:
    tokens = line.split()
    if len(tokens) < 6 or (len(tokens) - 3) % 3 != 0:
        raise ParseError(path, "expected 'lon lat alt' followed by one or more 'frame u v' triples", line=lineno)
    try:
        lon, lat, alt = (float(t) for t in tokens[:3])
        geo = GeoPoint(latitude=lat, longitude=lon, altitude=alt)
        states = [
            TrackState(frame_id=int(tokens[i]), u=float(tokens[i + 1]), v=float(tokens[i + 2]))
            for i in range(3, len(tokens), 3)
        ]
        values = [lon, lat, alt] + [c for s in states for c in (s.u, s.v)]
        if not np.all(np.isfinite(values)):
            raise ValueError("coordinates must be finite")
    except (ValueError, ValidationError) as e:
        raise ParseError(path, str(e), line=lineno)
    return geo, states


def load_reference_file(
    path: Union[str, Path],
    frame: LocalGeoCS,
    logger: Optional[logging.Logger] = None,
) -> Tuple[LandmarkMap, TrackMap]:
    """
    Reads reference landmarks and their tracks.

    Each data line is:
        lon lat alt frame u v [frame u v ...]
    Landmark/track ids are the zero-based index of the data line. Unless the
    frame was anchored from a persisted origin file, it is (re)anchored at the
    mean geographic position of the reference points. Landmarks are returned in
    the frame's local coordinates.
    """
    log = logger or _logger
    path = Path(path)

    geos: List[GeoPoint] = []
    linenos: List[int] = []
    tracks: TrackMap = {}
    with path.open("r", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            geo, states = _parse_line(path, lineno, line)
            lm_id = len(geos)
            geos.append(geo)
            linenos.append(lineno)
            tracks[lm_id] = Track(track_id=lm_id, states=tuple(states))

    if not geos:
        log.warning("Reference file %s contains no reference points", path)
        return {}, {}

    if frame.origin_source != ORIGIN_FROM_FILE:
        mean = GeoPoint(
            latitude=float(np.mean([g.latitude for g in geos])),
            longitude=float(np.mean([g.longitude for g in geos])),
            altitude=float(np.mean([g.altitude for g in geos])),
        )
        try:
            frame.anchor_from_geo(mean, source=ORIGIN_FROM_REFERENCE)
        except ValueError as e:
            raise ParseError(path, f"cannot anchor the local frame at the reference centroid: {e}")

    landmarks: LandmarkMap = {}
    for i, (lineno, g) in enumerate(zip(linenos, geos)):
        try:
            landmarks[i] = Landmark(loc=frame.geo_to_local(g))
        except ValueError as e:
            raise ParseError(path, str(e), line=lineno)
    log.info("Loaded %d reference landmarks from %s", len(landmarks), path)
    return landmarks, tracks
