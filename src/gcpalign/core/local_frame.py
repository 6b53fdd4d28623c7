from __future__ import annotations

import logging
from typing import Optional

import numpy as np

from gcpalign.core.geo_map import GeoMapper
from gcpalign.domain.schemas import GeoPoint, LocalOrigin

ORIGIN_FROM_FILE = "file"
ORIGIN_FROM_REFERENCE = "reference"
ORIGIN_COMPUTED = "computed"


class LocalGeoCS:
    """
    Local Cartesian (east, north, up) frame anchored at a UTM origin.

    The frame starts Unanchored. anchor_from_geo() moves it to Anchored and it
    never goes back. Re-anchoring replaces the origin (last call wins) until
    lock() is called; after that the frame is read-only.
    """

    def __init__(self, geo_mapper: GeoMapper, logger: Optional[logging.Logger] = None):
        self.geo_mapper = geo_mapper
        self.logger = logger or logging.getLogger(__name__)
        self._origin: Optional[LocalOrigin] = None
        self._origin_source: Optional[str] = None
        self._locked = False

    @property
    def origin(self) -> Optional[LocalOrigin]:
        return self._origin

    @property
    def origin_source(self) -> Optional[str]:
        return self._origin_source

    @property
    def is_anchored(self) -> bool:
        return self._origin is not None

    @property
    def is_locked(self) -> bool:
        return self._locked

    @property
    def utm_zone(self) -> Optional[int]:
        return None if self._origin is None else self._origin.utm_zone

    @property
    def is_north_hemisphere(self) -> Optional[bool]:
        return None if self._origin is None else self._origin.is_north_hemisphere

    def lock(self) -> None:
        self._locked = True

    def anchor_from_geo(self, geo: GeoPoint, source: str = ORIGIN_COMPUTED) -> LocalOrigin:
        if self._locked:
            raise RuntimeError("The local coordinate frame is locked and cannot be re-anchored.")
        easting, northing, zone, is_north = self.geo_mapper.latlon_to_utm(geo.latitude, geo.longitude)
        origin = LocalOrigin(
            utm_easting=easting,
            utm_northing=northing,
            altitude=geo.altitude,
            utm_zone=zone,
            is_north_hemisphere=is_north,
        )
        if self._origin is not None:
            self.logger.info("Re-anchoring local frame (%s -> %s)", self._origin_source, source)
        self._origin = origin
        self._origin_source = source
        return origin

    def _require_anchor(self) -> LocalOrigin:
        if self._origin is None:
            raise RuntimeError("The local coordinate frame has no origin.")
        return self._origin

    def to_geo(self, origin: Optional[LocalOrigin] = None) -> GeoPoint:
        """Geographic position of `origin` (the frame's own origin by default)."""
        current = self._require_anchor()
        o = origin or current
        lat, lon = self.geo_mapper.utm_to_latlon(o.utm_easting, o.utm_northing, o.utm_zone, o.is_north_hemisphere)
        return GeoPoint(latitude=lat, longitude=lon, altitude=o.altitude)

    def geo_to_local(self, geo: GeoPoint) -> np.ndarray:
        """Project a geographic point in the frame's zone and hemisphere, relative to the origin."""
        o = self._require_anchor()
        easting, northing, _, _ = self.geo_mapper.latlon_to_utm(
            geo.latitude, geo.longitude, zone=o.utm_zone, is_north=o.is_north_hemisphere
        )
        return np.array([easting - o.utm_easting, northing - o.utm_northing, geo.altitude - o.altitude])

    def local_to_geo(self, point) -> GeoPoint:
        o = self._require_anchor()
        x, y, z = np.asarray(point, dtype=float).reshape(3)
        lat, lon = self.geo_mapper.utm_to_latlon(
            o.utm_easting + x, o.utm_northing + y, o.utm_zone, o.is_north_hemisphere
        )
        return GeoPoint(latitude=lat, longitude=lon, altitude=o.altitude + z)
