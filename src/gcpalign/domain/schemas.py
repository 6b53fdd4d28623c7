from pydantic import BaseModel, Field


class GeoPoint(BaseModel):
    """WGS84 geographic position (degrees, degrees, meters)."""
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    altitude: float = 0.0

    model_config = {"frozen": True}


class LocalOrigin(BaseModel):
    """Origin of the local Cartesian frame, expressed in UTM."""
    utm_easting: float
    utm_northing: float
    altitude: float = 0.0
    utm_zone: int = Field(ge=1, le=60)
    is_north_hemisphere: bool = True

    model_config = {"frozen": True}
