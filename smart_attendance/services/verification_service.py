"""Triple verification: QR token, geofence and face checks fused into attendance."""
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from flask import current_app

from smart_attendance.services.attendance_service import (
    AttendanceDecision, AttendanceDecisionEngine, VerificationAttempt
)
from smart_attendance.services.face_recognition_service import FaceRecognitionService
from smart_attendance.services.gps_service import GPSService
from smart_attendance.services.liveness_service import FrameSample, LivenessScreener
from smart_attendance.services.policy import VerificationPolicy
from smart_attendance.services.qr_service import QRService
from smart_attendance.utils.exceptions import ClassNotFound, InvalidInput, NotConfigured

logger = logging.getLogger(__name__)

class VerificationStep(Enum):
    """Verification step enumeration."""
    QR_CODE = "qr_code"
    GPS_LOCATION = "gps_location"
    FACE_RECOGNITION = "face_recognition"

@dataclass
class LocationEvidence:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

@dataclass
class FaceEvidence:
    descriptor: Sequence[float]
    frames: List[FrameSample] = field(default_factory=list)

@dataclass
class VerificationEvidence:
    """Already-captured inputs from the capture layer; any part may be missing."""
    qr_payload: Optional[Union[str, Dict]] = None
    location: Optional[LocationEvidence] = None
    face: Optional[FaceEvidence] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VerificationEvidence':
        """Build evidence from a request body."""
        data = data or {}
        if not isinstance(data, dict):
            raise InvalidInput("Request body must be an object")

        location = None
        if data.get('location') is not None:
            raw = data['location']
            if not isinstance(raw, dict):
                raise InvalidInput("Location must be an object")
            if raw.get('latitude') is None or raw.get('longitude') is None:
                raise InvalidInput("Location requires latitude and longitude")
            location = LocationEvidence(
                latitude=raw['latitude'],
                longitude=raw['longitude'],
                accuracy=_optional_float(raw.get('accuracy'), 'accuracy')
            )

        face = None
        if data.get('face') is not None:
            raw = data['face']
            if not isinstance(raw, dict):
                raise InvalidInput("Face evidence must be an object")
            if not raw.get('descriptor'):
                raise InvalidInput("Face evidence requires a descriptor")
            frames = raw.get('frames') or []
            if not isinstance(frames, list):
                raise InvalidInput("Face frames must be a list")
            face = FaceEvidence(
                descriptor=raw['descriptor'],
                frames=[FrameSample.from_dict(f) for f in frames]
            )

        return cls(qr_payload=data.get('qr'), location=location, face=face)

def _optional_float(value, name: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{name} must be numeric: {value!r}")

@dataclass
class VerificationStepResult:
    """Result of a single verification step.

    ``passed`` is None when the check was not applicable.
    """
    step: VerificationStep
    passed: Optional[bool]
    data: Dict[str, Any]
    processing_time_ms: int = 0

    def to_dict(self):
        return {
            'step': self.step.value,
            'passed': self.passed,
            'data': self.data,
            'processing_time_ms': self.processing_time_ms
        }

@dataclass
class VerificationOutcome:
    decision: AttendanceDecision
    steps: List[VerificationStepResult]

    def to_dict(self):
        return {
            'decision': self.decision.to_dict(),
            'steps': [step.to_dict() for step in self.steps]
        }

def _timed(check: Callable[[], VerificationStepResult]) -> VerificationStepResult:
    started = time.perf_counter()
    result = check()
    result.processing_time_ms = int((time.perf_counter() - started) * 1000)
    return result

class VerificationService:
    """
    Runs the three independent checks and hands the verdicts to the engine.

    Store reads happen on the calling thread; the checks themselves are pure
    and run in parallel. Validator errors propagate to the caller. With
    ``optional_unconfigured`` a missing geofence or QR session turns that
    signal into None ("not applicable") instead of raising NotConfigured.
    """

    def __init__(
        self,
        courses,
        enrollments,
        records,
        policy: Optional[VerificationPolicy] = None,
        screener: Optional[LivenessScreener] = None,
        engine: Optional[AttendanceDecisionEngine] = None,
        max_workers: int = 3
    ):
        self.policy = policy or VerificationPolicy()
        self.courses = courses
        self.enrollments = enrollments
        self.records = records
        self.screener = screener or LivenessScreener(
            general_threshold=self.policy.liveness_threshold,
            variation_floor=self.policy.liveness_variation_floor,
            blink_threshold=self.policy.blink_threshold
        )
        self.engine = engine or AttendanceDecisionEngine(courses, records, quorum=self.policy.quorum)
        self.max_workers = max_workers

    # =================== SINGLE CHECKS ===================

    def check_qr(self, class_id: str, qr_payload, active_session, now: Optional[datetime] = None) -> VerificationStepResult:
        if qr_payload is None:
            return VerificationStepResult(VerificationStep.QR_CODE, False, {'reason': 'QR code not scanned'})

        payload = QRService.parse_payload(qr_payload)
        result = QRService.validate_session_token(payload, active_session, class_id, now=now)
        return VerificationStepResult(VerificationStep.QR_CODE, result.is_valid, result.to_dict())

    def check_location(self, location: Optional[LocationEvidence], geofence) -> VerificationStepResult:
        if location is None:
            return VerificationStepResult(VerificationStep.GPS_LOCATION, False, {'reason': 'Location not provided'})

        result = GPSService.verify_location(
            location.latitude, location.longitude, geofence, accuracy=location.accuracy
        )
        data = result.to_dict()
        data['latitude'] = location.latitude
        data['longitude'] = location.longitude
        return VerificationStepResult(VerificationStep.GPS_LOCATION, result.is_inside, data)

    def check_face(self, face: Optional[FaceEvidence], references) -> VerificationStepResult:
        if face is None:
            return VerificationStepResult(VerificationStep.FACE_RECOGNITION, False, {'reason': 'Face not captured'})

        match = FaceRecognitionService.verify_face(
            face.descriptor, references, threshold=self.policy.face_match_threshold
        )
        liveness = self.screener.check_blink(face.frames)
        passed = match.matched and (liveness.passed or not self.policy.liveness_required)

        data = match.to_dict()
        data['liveness'] = liveness.to_dict()
        return VerificationStepResult(VerificationStep.FACE_RECOGNITION, passed, data)

    # =================== FULL FLOW ===================

    def evaluate(
        self,
        student_id: str,
        class_id: str,
        evidence: VerificationEvidence,
        optional_unconfigured: Optional[bool] = None,
        now: Optional[datetime] = None
    ) -> List[VerificationStepResult]:
        """Run the three checks; results come back in QR, GPS, face order."""
        if optional_unconfigured is None:
            optional_unconfigured = self.policy.optional_unconfigured_checks

        # I/O first, on this thread
        active_session = self.courses.get_active_session(class_id) if evidence.qr_payload is not None else None
        geofence = self.courses.get_geofence(class_id) if evidence.location is not None else None
        references = self.enrollments.get_references(student_id) if evidence.face is not None else None

        checks = [
            (VerificationStep.QR_CODE,
             lambda: self.check_qr(class_id, evidence.qr_payload, active_session, now)),
            (VerificationStep.GPS_LOCATION,
             lambda: self.check_location(evidence.location, geofence)),
            (VerificationStep.FACE_RECOGNITION,
             lambda: self.check_face(evidence.face, references)),
        ]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [(step, executor.submit(_timed, check)) for step, check in checks]

        results = []
        for step, future in futures:
            try:
                results.append(future.result())
            except NotConfigured as e:
                if not optional_unconfigured:
                    raise
                logger.info("%s not applicable for class %s: %s", step.value, class_id, e.message)
                results.append(VerificationStepResult(
                    step, None, {'reason': e.message, 'error_code': e.error_code}
                ))
        return results

    def verify_and_mark(
        self,
        student_id: str,
        class_id: str,
        evidence: VerificationEvidence,
        optional_unconfigured: Optional[bool] = None,
        now: Optional[datetime] = None
    ) -> VerificationOutcome:
        """Verify the evidence and record the resulting attendance."""
        if not self.courses.is_enrolled(student_id, class_id):
            raise ClassNotFound(f"Class {class_id} not found for student {student_id}")

        steps = self.evaluate(student_id, class_id, evidence, optional_unconfigured, now)
        qr, gps, face = steps

        attempt = VerificationAttempt(
            student_id=str(student_id),
            class_id=str(class_id),
            qr_valid=qr.passed,
            gps_match=gps.passed,
            face_match=face.passed,
            face_confidence=face.data.get('confidence'),
            gps_latitude=gps.data.get('latitude'),
            gps_longitude=gps.data.get('longitude'),
            gps_distance=gps.data.get('distance_meters'),
            gps_accuracy=gps.data.get('accuracy_meters'),
            attempted_at=now or datetime.utcnow()
        )
        decision = self.engine.record_attempt(attempt)
        return VerificationOutcome(decision=decision, steps=steps)

# =================== APP WIRING ===================

EXTENSION_KEY = 'smart_attendance'

def init_verification(app) -> None:
    """Attach database-backed services to the app."""
    from smart_attendance.services.enrollment_service import EnrollmentService
    from smart_attendance.stores.database import (
        SqlAttendanceStore, SqlCourseStore, SqlEnrollmentStore
    )

    policy = VerificationPolicy.from_config(app.config)
    courses = SqlCourseStore()
    enrollments = SqlEnrollmentStore(secret=app.config['FACE_DATA_SECRET'])
    records = SqlAttendanceStore()
    screener = LivenessScreener(
        general_threshold=policy.liveness_threshold,
        variation_floor=policy.liveness_variation_floor,
        blink_threshold=policy.blink_threshold
    )

    app.extensions[EXTENSION_KEY] = {
        'policy': policy,
        'courses': courses,
        'enrollments': enrollments,
        'records': records,
        'verification': VerificationService(courses, enrollments, records, policy, screener),
        'enrollment': EnrollmentService(enrollments, policy, screener),
    }

def get_service(name: str):
    """Look up a wired service on the current app."""
    return current_app.extensions[EXTENSION_KEY][name]
