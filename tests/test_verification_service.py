"""Test the triple verification flow on in-memory stores."""
from datetime import timedelta

import pytest

from smart_attendance.services.attendance_service import AttendanceStatus
from smart_attendance.services.gps_service import Geofence
from smart_attendance.services.liveness_service import FrameSample
from smart_attendance.services.policy import VerificationPolicy
from smart_attendance.services.qr_service import QRService
from smart_attendance.services.verification_service import (
    FaceEvidence, LocationEvidence, VerificationEvidence, VerificationService
)
from smart_attendance.stores.memory import (
    InMemoryAttendanceStore, InMemoryCourseStore, InMemoryEnrollmentStore
)
from smart_attendance.utils.exceptions import (
    ClassNotFound, DimensionMismatch, GeofenceNotConfigured, InvalidInput, NoEnrollment
)

LAT, LON = 33.3152, 44.3661
REFERENCE = [0.1, 0.2, 0.3, 0.4]
FRAMES = [FrameSample({'neutral': 1.0}, offset_ms=i * 50) for i in range(5)]

@pytest.fixture
def courses():
    store = InMemoryCourseStore()
    store.add_class('c1', students=['s1'], geofence=Geofence(LAT, LON, 50))
    store.add_class('c2', students=['s1'])
    return store

@pytest.fixture
def enrollments():
    store = InMemoryEnrollmentStore()
    store.set_references('s1', [REFERENCE])
    return store

@pytest.fixture
def records():
    return InMemoryAttendanceStore()

@pytest.fixture
def service(courses, enrollments, records):
    return VerificationService(courses, enrollments, records)

@pytest.fixture
def issued(courses):
    token = QRService.issue_session_token('c1', expires_in_seconds=300)
    courses.activate_session(token)
    return token

def evidence(qr=None, at_anchor=True, face=True, frames=FRAMES, descriptor=REFERENCE):
    return VerificationEvidence(
        qr_payload=qr,
        location=LocationEvidence(LAT, LON, accuracy=8.0) if at_anchor else None,
        face=FaceEvidence(descriptor, list(frames)) if face else None
    )

def test_all_checks_pass(service, records, issued):
    """Valid QR, inside the fence and a live matching face mean present."""
    now = issued.issued_at + timedelta(seconds=30)
    outcome = service.verify_and_mark('s1', 'c1', evidence(qr=issued.payload), now=now)

    assert outcome.decision.status == AttendanceStatus.PRESENT
    assert outcome.decision.validations_passed == 3
    assert [step.passed for step in outcome.steps] == [True, True, True]

    record = records.get_record('s1', 'c1', now.date())
    assert record.face_confidence == pytest.approx(1.0)
    assert record.gps_distance == pytest.approx(0.0)
    assert record.gps_accuracy == 8.0
    assert record.gps_latitude == LAT

def test_qr_only_is_late(service, issued):
    """A valid QR without a second check marks late."""
    now = issued.issued_at + timedelta(seconds=30)
    outcome = service.verify_and_mark(
        's1', 'c1', evidence(qr=issued.payload, at_anchor=False, face=False), now=now
    )

    assert outcome.decision.status == AttendanceStatus.LATE
    assert outcome.steps[1].data['reason'] == 'Location not provided'

def test_no_evidence_is_absent(service, records):
    """Missing evidence is a failed check, not an error."""
    outcome = service.verify_and_mark('s1', 'c1', VerificationEvidence())

    assert outcome.decision.status == AttendanceStatus.ABSENT
    assert outcome.decision.created is True
    assert len(records) == 1

def test_outside_geofence(service, records, issued):
    """About a kilometre away fails GPS but keeps the distance for diagnostics."""
    far = VerificationEvidence(
        qr_payload=issued.payload,
        location=LocationEvidence(LAT + 0.01, LON)
    )
    now = issued.issued_at + timedelta(seconds=30)
    outcome = service.verify_and_mark('s1', 'c1', far, now=now)

    gps = outcome.steps[1]
    assert gps.passed is False
    assert gps.data['distance_meters'] > 1000
    assert outcome.decision.status == AttendanceStatus.LATE
    assert records.get_record('s1', 'c1', now.date()).gps_distance > 1000

def test_missing_geofence_raises_when_strict(service, records):
    """Without a geofence the GPS check cannot run."""
    with pytest.raises(GeofenceNotConfigured):
        service.verify_and_mark('s1', 'c2', evidence(face=False), optional_unconfigured=False)
    assert len(records) == 0

def test_missing_geofence_is_not_applicable_when_optional(service, records):
    """Optional mode turns the missing geofence into a NULL signal."""
    outcome = service.verify_and_mark('s1', 'c2', evidence(), optional_unconfigured=True)

    gps = outcome.steps[1]
    assert gps.passed is None
    assert gps.data['error_code'] == 'geofence_not_configured'
    # QR fails, face passes: one of three
    assert outcome.decision.status == AttendanceStatus.ABSENT
    assert outcome.decision.record.gps_matched is None

def test_policy_default_for_unconfigured_checks(courses, enrollments, records):
    """The policy decides when the caller does not."""
    lenient = VerificationService(
        courses, enrollments, records,
        policy=VerificationPolicy(optional_unconfigured_checks=True)
    )
    outcome = lenient.verify_and_mark('s1', 'c2', evidence(face=False))
    assert outcome.steps[1].passed is None

def test_missing_session_when_qr_scanned(service):
    """Scanning for a class that never issued a token is a configuration error."""
    payload = QRService.issue_session_token('c2').payload
    outcome = service.verify_and_mark(
        's1', 'c2', evidence(qr=payload, at_anchor=False), optional_unconfigured=True
    )
    assert outcome.steps[0].passed is None

def test_not_enrolled_face_raises(service, records, enrollments):
    """Face evidence without a reference set is an error."""
    enrollments.set_references('s1', [])

    with pytest.raises(NoEnrollment):
        service.verify_and_mark('s1', 'c1', evidence())
    assert len(records) == 0

def test_descriptor_length_mismatch_writes_nothing(service, records):
    """Malformed input never reaches the store."""
    with pytest.raises(DimensionMismatch):
        service.verify_and_mark('s1', 'c1', evidence(descriptor=[0.1, 0.2]))
    assert len(records) == 0

def test_failed_liveness_fails_face(service, issued):
    """A matching face without live frames does not count."""
    now = issued.issued_at + timedelta(seconds=30)
    outcome = service.verify_and_mark(
        's1', 'c1', evidence(qr=issued.payload, at_anchor=False, frames=[]), now=now
    )

    face = outcome.steps[2]
    assert face.passed is False
    assert face.data['matched'] is True
    assert face.data['liveness']['passed'] is False
    assert outcome.decision.status == AttendanceStatus.LATE

def test_liveness_can_be_disabled(courses, enrollments, records):
    """Institutions without a capture layer may skip the liveness gate."""
    service = VerificationService(
        courses, enrollments, records,
        policy=VerificationPolicy(liveness_required=False)
    )
    outcome = service.verify_and_mark('s1', 'c1', evidence(frames=[]))
    assert outcome.decision.status == AttendanceStatus.PRESENT

def test_student_not_in_class(service, records):
    """Strangers are rejected before any check runs."""
    with pytest.raises(ClassNotFound):
        service.verify_and_mark('stranger', 'c1', evidence())
    assert len(records) == 0

def test_evidence_from_request_body(issued):
    """Request bodies map onto evidence objects."""
    parsed = VerificationEvidence.from_dict({
        'qr': issued.payload,
        'location': {'latitude': LAT, 'longitude': LON, 'accuracy': 12},
        'face': {
            'descriptor': REFERENCE,
            'frames': [{'expressions': {'neutral': 1}, 'offset_ms': 0}]
        }
    })

    assert parsed.qr_payload == issued.payload
    assert parsed.location.accuracy == 12
    assert parsed.face.frames[0].expressions == {'neutral': 1.0}

def test_evidence_requires_both_coordinates():
    """Half a coordinate pair is malformed."""
    with pytest.raises(InvalidInput):
        VerificationEvidence.from_dict({'location': {'latitude': LAT}})

@pytest.mark.parametrize('body', [
    {'location': 'here'},
    {'location': {'latitude': LAT, 'longitude': LON, 'accuracy': 'good'}},
    {'face': [0.1, 0.2]},
    {'face': {'descriptor': REFERENCE, 'frames': 5}},
    {'face': {'descriptor': REFERENCE, 'frames': [{'expressions': {'neutral': 'x'}}]}},
    ['qr'],
])
def test_malformed_body_is_invalid_input(body):
    with pytest.raises(InvalidInput):
        VerificationEvidence.from_dict(body)

def test_geofence_set_later_enables_gps(service, courses):
    courses.set_geofence('c2', Geofence(LAT, LON, 30))
    outcome = service.verify_and_mark('s1', 'c2', evidence(), optional_unconfigured=False)

    assert outcome.steps[1].passed is True
    assert outcome.decision.status == AttendanceStatus.PRESENT
