from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Optional, Tuple

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import ProjError

UTM_MIN_LAT = -80.0
UTM_MAX_LAT = 84.0


class GeoMapper(ABC):
    """Conversion between WGS84 lat/lon and UTM easting/northing."""

    @abstractmethod
    def latlon_to_utm(
        self, lat: float, lon: float,
        zone: Optional[int] = None, is_north: Optional[bool] = None,
    ) -> Tuple[float, float, int, bool]:
        """Returns (easting, northing, zone, is_north). zone/is_north force the projection."""
        pass

    @abstractmethod
    def utm_to_latlon(self, easting: float, northing: float, zone: int, is_north: bool) -> Tuple[float, float]:
        """Returns (lat, lon) in degrees."""
        pass


def utm_zone_for(lon: float) -> int:
    """Standard 6-degree UTM zone for a longitude, clamped to 1..60."""
    return min(max(int((lon + 180.0) / 6.0) + 1, 1), 60)


def utm_epsg(zone: int, is_north: bool) -> int:
    if not 1 <= zone <= 60:
        raise ValueError(f"UTM zone must be in 1..60, got {zone}")
    return (32600 if is_north else 32700) + zone


@lru_cache(maxsize=None)
def _transformers(zone: int, is_north: bool) -> Tuple[Transformer, Transformer]:
    src_crs = CRS("EPSG:4326")  # WGS84
    dst_crs = CRS(f"EPSG:{utm_epsg(zone, is_north)}")
    to_utm = Transformer.from_crs(src_crs, dst_crs, always_xy=True)
    to_geo = Transformer.from_crs(dst_crs, src_crs, always_xy=True)
    return to_utm, to_geo


class UTM(GeoMapper):
    """WGS84 <-> UTM through pyproj. Special zones (Norway, Svalbard) are not applied."""

    def latlon_to_utm(self, lat, lon, zone=None, is_north=None):
        if not UTM_MIN_LAT <= lat <= UTM_MAX_LAT:
            raise ValueError(f"Latitude {lat} is outside the UTM domain [{UTM_MIN_LAT}, {UTM_MAX_LAT}]")
        zone = utm_zone_for(lon) if zone is None else int(zone)
        is_north = (lat >= 0.0) if is_north is None else bool(is_north)
        to_utm, _ = _transformers(zone, is_north)
        try:
            easting, northing = to_utm.transform(lon, lat, errcheck=True)
        except ProjError as e:
            raise RuntimeError(f"UTM Projection failed: {e}")
        return float(easting), float(northing), zone, is_north

    def utm_to_latlon(self, easting, northing, zone, is_north):
        _, to_geo = _transformers(int(zone), bool(is_north))
        try:
            lon, lat = to_geo.transform(easting, northing, errcheck=True)
        except ProjError as e:
            raise RuntimeError(f"UTM inverse projection failed: {e}")
        if not (np.isfinite(lat) and np.isfinite(lon)):
            raise RuntimeError(f"UTM inverse projection failed for ({easting}, {northing}) zone {zone}")
        return float(lat), float(lon)


class GeoMapperFactory:
    available = ("utm",)

    @staticmethod
    def create(method: str) -> GeoMapper:
        if method == "utm":
            return UTM()
        else:
            raise ValueError(f"Unknown geo mapper: {method}")
