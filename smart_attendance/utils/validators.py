"""Validation utilities for engine inputs."""
import math
from typing import Dict, List, Any, Sequence, Optional

import numpy as np

from smart_attendance.utils.exceptions import InvalidInput, DimensionMismatch

class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_coordinates(latitude: float, longitude: float) -> None:
        """Raise InvalidInput unless the pair is a finite WGS84 coordinate."""
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError):
            raise InvalidInput(f"Coordinates must be numeric: ({latitude!r}, {longitude!r})")

        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidInput("Coordinates must be finite")
        if abs(lat) > 90:
            raise InvalidInput(f"Latitude out of range: {lat}")
        if abs(lon) > 180:
            raise InvalidInput(f"Longitude out of range: {lon}")

    @staticmethod
    def validate_radius(radius_meters: float) -> None:
        """Raise InvalidInput unless the radius is a positive finite number."""
        try:
            radius = float(radius_meters)
        except (TypeError, ValueError):
            raise InvalidInput(f"Radius must be numeric: {radius_meters!r}")

        if not math.isfinite(radius) or radius <= 0:
            raise InvalidInput(f"Radius must be positive: {radius}")

    @staticmethod
    def validate_descriptor(descriptor: Sequence[float]) -> np.ndarray:
        """Convert a descriptor to a float vector, rejecting empty or non-finite input."""
        try:
            vector = np.asarray(descriptor, dtype=np.float64)
        except (TypeError, ValueError):
            raise InvalidInput("Descriptor must be a sequence of numbers")

        if vector.ndim != 1 or vector.size == 0:
            raise InvalidInput("Descriptor must be a non-empty flat vector")
        if not np.all(np.isfinite(vector)):
            raise InvalidInput("Descriptor contains non-finite values")
        return vector

    @staticmethod
    def validate_descriptor_set(
        descriptors: Sequence[Sequence[float]],
        expected_length: Optional[int] = None
    ) -> List[np.ndarray]:
        """Validate a reference set: non-empty and all vectors the same length."""
        if descriptors is None or len(descriptors) == 0:
            raise InvalidInput("At least one descriptor is required")

        vectors = [Validator.validate_descriptor(d) for d in descriptors]
        length = expected_length or vectors[0].size
        for vector in vectors:
            if vector.size != length:
                raise DimensionMismatch(
                    f"Descriptor length {vector.size} does not match expected {length}"
                )
        return vectors

    @staticmethod
    def validate_required_fields(data: Dict, required_fields: List[str]) -> Dict[str, Any]:
        """Validate required fields in data."""
        errors = []

        for field in required_fields:
            if field not in data or data[field] is None:
                errors.append(f"{field} is required")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }
