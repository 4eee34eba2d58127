"""Test face enrollment."""
import pytest

from smart_attendance.services.enrollment_service import EnrollmentService
from smart_attendance.services.liveness_service import FrameSample
from smart_attendance.services.policy import VerificationPolicy
from smart_attendance.stores.memory import InMemoryEnrollmentStore
from smart_attendance.utils.exceptions import DimensionMismatch, InvalidInput

DESCRIPTORS = [[0.1, 0.2, 0.3, 0.4], [0.11, 0.19, 0.31, 0.41]]

@pytest.fixture
def store():
    return InMemoryEnrollmentStore()

@pytest.fixture
def live_frames(varied_frames):
    return [FrameSample.from_dict(f) for f in varied_frames]

def test_enroll_success(store, live_frames):
    """Varied expressions pass and the set is stored."""
    result = EnrollmentService(store).enroll('s1', DESCRIPTORS, live_frames)

    assert result.success is True
    assert result.descriptor_count == 2
    assert result.liveness_score == pytest.approx(0.45)
    assert store.get_references('s1') == DESCRIPTORS

def test_re_enrollment_replaces_set(store, live_frames):
    """A new enrollment replaces the whole reference set."""
    service = EnrollmentService(store)
    service.enroll('s1', DESCRIPTORS, live_frames)
    service.enroll('s1', [[0.9, 0.8, 0.7, 0.6]], live_frames)

    assert store.get_references('s1') == [[0.9, 0.8, 0.7, 0.6]]

def test_failed_liveness_keeps_previous_set(store, live_frames):
    """A still image is rejected without touching stored references."""
    service = EnrollmentService(store)
    service.enroll('s1', DESCRIPTORS, live_frames)

    still = [FrameSample({'neutral': 1.0}, offset_ms=i * 100) for i in range(10)]
    result = service.enroll('s1', [[0.9, 0.8, 0.7, 0.6]], still)

    assert result.success is False
    assert result.liveness_score == 0.0
    assert 'Liveness check failed' in result.error_message
    assert store.get_references('s1') == DESCRIPTORS

def test_liveness_not_required(store):
    """Without the liveness gate an enrollment needs no frames."""
    service = EnrollmentService(store, policy=VerificationPolicy(liveness_required=False))
    assert service.enroll('s1', DESCRIPTORS).success is True

def test_mixed_lengths_rejected(store, live_frames):
    """All descriptors in a set must share a length."""
    with pytest.raises(DimensionMismatch):
        EnrollmentService(store).enroll('s1', [[0.1, 0.2], [0.1, 0.2, 0.3]], live_frames)
    assert store.get_references('s1') == []

def test_configured_descriptor_length(store, live_frames):
    """A model-specific length is enforced when configured."""
    service = EnrollmentService(store, policy=VerificationPolicy(descriptor_length=128))
    with pytest.raises(DimensionMismatch):
        service.enroll('s1', DESCRIPTORS, live_frames)

def test_empty_set_rejected(store, live_frames):
    with pytest.raises(InvalidInput):
        EnrollmentService(store).enroll('s1', [], live_frames)
