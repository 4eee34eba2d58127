"""GPS geofence verification service."""
import math
from dataclasses import dataclass
from typing import Optional

from smart_attendance.utils.exceptions import GeofenceNotConfigured
from smart_attendance.utils.validators import Validator

EARTH_RADIUS_METERS = 6371000

@dataclass(frozen=True)
class Geofence:
    """Circular region around a class anchor point."""
    latitude: float
    longitude: float
    radius_meters: float = 50.0

@dataclass
class GeofenceResult:
    """Geofence verification result."""
    is_inside: bool
    distance: float
    radius: float
    accuracy: Optional[float] = None

    def to_dict(self):
        return {
            'is_inside': self.is_inside,
            'distance_meters': round(self.distance, 2),
            'radius_meters': self.radius,
            'accuracy_meters': self.accuracy
        }

class GPSService:
    """Service for GPS and location verification."""

    @staticmethod
    def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Calculate great-circle distance between two GPS points in meters."""
        R = EARTH_RADIUS_METERS

        lat1_rad = math.radians(lat1)
        lat2_rad = math.radians(lat2)
        delta_lat = math.radians(lat2 - lat1)
        delta_lon = math.radians(lon2 - lon1)

        a = (math.sin(delta_lat/2) ** 2 +
             math.cos(lat1_rad) * math.cos(lat2_rad) *
             math.sin(delta_lon/2) ** 2)
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

        return R * c

    @staticmethod
    def verify_location(
        latitude: float,
        longitude: float,
        geofence: Optional[Geofence],
        accuracy: Optional[float] = None
    ) -> GeofenceResult:
        """Verify if a claimed location is within the class geofence.

        The boundary is inclusive. ``accuracy`` is carried through for
        diagnostics only and never widens the radius; callers that want
        tolerance must pass a wider geofence.
        """
        if geofence is None:
            raise GeofenceNotConfigured()

        Validator.validate_coordinates(latitude, longitude)
        Validator.validate_coordinates(geofence.latitude, geofence.longitude)
        Validator.validate_radius(geofence.radius_meters)

        distance = GPSService.calculate_distance(
            float(latitude), float(longitude),
            geofence.latitude, geofence.longitude
        )

        return GeofenceResult(
            is_inside=distance <= geofence.radius_meters,
            distance=distance,
            radius=geofence.radius_meters,
            accuracy=accuracy
        )
