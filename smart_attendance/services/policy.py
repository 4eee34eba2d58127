"""Tunable verification policy."""
from dataclasses import dataclass
from typing import Any, Mapping, Optional

@dataclass(frozen=True)
class VerificationPolicy:
    """Policy constants institutions can tune without code changes."""
    quorum: int = 2
    face_match_threshold: float = 0.6
    liveness_threshold: float = 0.4
    liveness_variation_floor: float = 0.1
    blink_threshold: float = 0.5
    liveness_required: bool = True
    descriptor_length: Optional[int] = None
    default_geofence_radius: float = 50.0
    optional_unconfigured_checks: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'VerificationPolicy':
        """Build the policy from a Flask config mapping."""
        defaults = cls()
        return cls(
            quorum=int(config.get('ATTENDANCE_QUORUM', defaults.quorum)),
            face_match_threshold=float(config.get('FACE_MATCH_THRESHOLD', defaults.face_match_threshold)),
            liveness_threshold=float(config.get('LIVENESS_THRESHOLD', defaults.liveness_threshold)),
            liveness_variation_floor=float(
                config.get('LIVENESS_VARIATION_FLOOR', defaults.liveness_variation_floor)
            ),
            blink_threshold=float(config.get('BLINK_THRESHOLD', defaults.blink_threshold)),
            liveness_required=bool(config.get('LIVENESS_REQUIRED', defaults.liveness_required)),
            descriptor_length=config.get('DESCRIPTOR_LENGTH', defaults.descriptor_length),
            default_geofence_radius=float(
                config.get('DEFAULT_GEOFENCE_RADIUS', defaults.default_geofence_radius)
            ),
            optional_unconfigured_checks=bool(
                config.get('OPTIONAL_UNCONFIGURED_CHECKS', defaults.optional_unconfigured_checks)
            )
        )
