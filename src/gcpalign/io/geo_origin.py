from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import ValidationError

from gcpalign.core.local_frame import ORIGIN_FROM_FILE, LocalGeoCS
from gcpalign.domain.schemas import GeoPoint
from gcpalign.exceptions import ParseError


class GeoOriginStore:
    """
    Persisted geographic anchor of the local frame.

    File format (ASCII, degrees, degrees, meters):
        latitude longitude altitude
    An origin that was loaded from the file is never written back.
    """

    def __init__(self, path: Union[str, Path, None], logger: Optional[logging.Logger] = None):
        self.path = Path(path) if path else None
        self.logger = logger or logging.getLogger(__name__)

    def exists(self) -> bool:
        return self.path is not None and self.path.is_file()

    def load(self) -> Optional[GeoPoint]:
        if not self.exists():
            return None

        with self.path.open("r", encoding="utf-8") as f:
            first = f.readline()
        tokens = first.split()
        if len(tokens) != 3:
            raise ParseError(self.path, f"expected 'latitude longitude altitude', got {first.strip()!r}", line=1)
        try:
            lat, lon, alt = (float(t) for t in tokens)
            return GeoPoint(latitude=lat, longitude=lon, altitude=alt)
        except (ValueError, ValidationError) as e:
            raise ParseError(self.path, f"bad origin record {first.strip()!r}: {e}", line=1)

    def save(self, geo: GeoPoint) -> None:
        if self.path is None:
            raise ValueError("No geo origin file configured")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            f.write(f"{geo.latitude:.15g} {geo.longitude:.15g} {geo.altitude:.15g}\n")

    def load_into(self, frame: LocalGeoCS) -> bool:
        """Anchor `frame` from the file. Returns False when there is no file."""
        geo = self.load()
        if geo is None:
            return False
        self.logger.info("Loaded origin point: %s, %s, %s", geo.latitude, geo.longitude, geo.altitude)
        try:
            frame.anchor_from_geo(geo, source=ORIGIN_FROM_FILE)
        except ValueError as e:
            raise ParseError(self.path, str(e), line=1)
        return True

    def persist(self, frame: LocalGeoCS) -> bool:
        """
        Write the frame's origin unless it came from this file or the frame is
        unanchored. Returns True when the file was written.
        """
        if not frame.is_anchored or frame.origin_source == ORIGIN_FROM_FILE:
            return False
        geo = frame.to_geo()
        self.logger.info(
            "Local coordinate origin: %.12g, %.12g, %.12g", geo.latitude, geo.longitude, geo.altitude
        )
        if self.path is None:
            return False
        self.logger.info("Saving local coordinate origin to %s", self.path)
        self.save(geo)
        return True
