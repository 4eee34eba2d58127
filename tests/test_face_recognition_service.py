"""Test face descriptor matching and template encryption."""
import pytest
from cryptography.fernet import InvalidToken

from smart_attendance.services.face_recognition_service import FaceRecognitionService
from smart_attendance.utils.exceptions import DimensionMismatch, InvalidInput, NoEnrollment

CANDIDATE = [0.1, 0.2, 0.3, 0.4]

def test_similarity_with_itself_is_one():
    """Identical descriptors are a perfect match."""
    assert FaceRecognitionService.calculate_similarity(CANDIDATE, CANDIDATE) == 1.0

def test_similarity_is_symmetric():
    """Order of descriptors does not matter."""
    other = [0.15, 0.1, 0.35, 0.4]
    assert FaceRecognitionService.calculate_similarity(CANDIDATE, other) == pytest.approx(
        FaceRecognitionService.calculate_similarity(other, CANDIDATE)
    )

def test_similarity_decreases_with_distance():
    """Moving the candidate further away never raises similarity."""
    similarities = [
        FaceRecognitionService.calculate_similarity(CANDIDATE, [v + step for v in CANDIDATE])
        for step in (0.0, 0.05, 0.1, 0.2, 0.4)
    ]
    assert similarities == sorted(similarities, reverse=True)
    assert similarities[0] > similarities[-1]

def test_similarity_is_clamped_at_zero():
    """Distances beyond 1 give zero, never a negative similarity."""
    assert FaceRecognitionService.calculate_similarity(CANDIDATE, [5.0, 5.0, 5.0, 5.0]) == 0.0

def test_similarity_dimension_mismatch():
    """Different lengths fail loudly."""
    with pytest.raises(DimensionMismatch):
        FaceRecognitionService.calculate_similarity(CANDIDATE, CANDIDATE[:3])

def test_verify_face_picks_best_reference():
    """A student with several captures matches on the closest one."""
    references = [[0.9, 0.9, 0.9, 0.9], [0.1, 0.2, 0.3, 0.45]]

    result = FaceRecognitionService.verify_face(CANDIDATE, references)

    assert result.matched is True
    assert result.best_index == 1
    assert result.confidence == pytest.approx(0.95)
    assert result.reference_count == 2

def test_verify_face_below_threshold():
    """Similarity under the threshold is not a match."""
    result = FaceRecognitionService.verify_face(CANDIDATE, [[0.6, 0.2, 0.3, 0.4]], threshold=0.6)

    assert result.confidence == pytest.approx(0.5)
    assert result.matched is False

def test_verify_face_threshold_is_inclusive():
    """A similarity equal to the threshold matches."""
    result = FaceRecognitionService.verify_face(CANDIDATE, [[0.6, 0.2, 0.3, 0.4]], threshold=0.5)
    assert result.matched is True

def test_verify_face_dimension_mismatch_never_matches():
    """A reference of another length raises instead of producing a verdict."""
    with pytest.raises(DimensionMismatch):
        FaceRecognitionService.verify_face(CANDIDATE, [CANDIDATE, CANDIDATE + [0.5]])

def test_verify_face_without_references():
    """No enrolled references is its own error."""
    with pytest.raises(NoEnrollment):
        FaceRecognitionService.verify_face(CANDIDATE, [])

@pytest.mark.parametrize('candidate', [[], [0.1, float('inf')], [[0.1], [0.2]], ['a', 'b']])
def test_verify_face_rejects_malformed_candidate(candidate):
    """Empty, non-finite, nested or non-numeric candidates are invalid."""
    with pytest.raises(InvalidInput):
        FaceRecognitionService.verify_face(candidate, [CANDIDATE])

def test_encrypted_template_roundtrip():
    """Stored descriptors come back intact with the right secret."""
    token = FaceRecognitionService.encrypt_descriptors('student-1', [CANDIDATE], 'secret')

    assert b'0.1' not in token
    assert FaceRecognitionService.decrypt_descriptors('student-1', token, 'secret') == [CANDIDATE]

def test_encrypted_template_is_bound_to_student():
    """Another student's key cannot read the template."""
    token = FaceRecognitionService.encrypt_descriptors('student-1', [CANDIDATE], 'secret')

    with pytest.raises(InvalidToken):
        FaceRecognitionService.decrypt_descriptors('student-2', token, 'secret')
