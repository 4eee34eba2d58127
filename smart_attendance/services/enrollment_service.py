"""Face enrollment with enrollment-time liveness screening."""
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from smart_attendance.services.liveness_service import FrameSample, LivenessScreener
from smart_attendance.services.policy import VerificationPolicy
from smart_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

@dataclass
class EnrollmentResult:
    """Face registration result data structure."""
    success: bool
    student_id: str
    descriptor_count: int
    liveness_score: float
    error_message: Optional[str] = None

    def to_dict(self):
        return {
            'success': self.success,
            'student_id': self.student_id,
            'descriptor_count': self.descriptor_count,
            'liveness_score': round(self.liveness_score, 4),
            'error_message': self.error_message
        }

class EnrollmentService:
    """Registers (or fully replaces) a student's reference descriptors."""

    def __init__(self, enrollments, policy: Optional[VerificationPolicy] = None,
                 screener: Optional[LivenessScreener] = None):
        self.enrollments = enrollments
        self.policy = policy or VerificationPolicy()
        self.screener = screener or LivenessScreener(
            general_threshold=self.policy.liveness_threshold,
            variation_floor=self.policy.liveness_variation_floor,
            blink_threshold=self.policy.blink_threshold
        )

    def enroll(
        self,
        student_id: str,
        descriptors: Sequence[Sequence[float]],
        frames: Sequence[FrameSample] = ()
    ) -> EnrollmentResult:
        """
        Validate and store a reference set.

        Malformed descriptors raise InvalidInput / DimensionMismatch. A
        failed liveness screen is a normal, unsuccessful result and leaves
        the previous reference set in place.
        """
        vectors = Validator.validate_descriptor_set(descriptors, self.policy.descriptor_length)
        liveness = self.screener.check_general(list(frames))

        if self.policy.liveness_required and not liveness.passed:
            logger.warning(
                "Enrollment for %s rejected: liveness %.3f below %.2f",
                student_id, liveness.score, liveness.threshold
            )
            return EnrollmentResult(
                success=False,
                student_id=str(student_id),
                descriptor_count=len(vectors),
                liveness_score=liveness.score,
                error_message=(
                    f"Liveness check failed: {liveness.score:.2f} < {liveness.threshold}"
                )
            )

        self.enrollments.set_references(
            str(student_id),
            [vector.tolist() for vector in vectors],
            liveness_score=liveness.score
        )
        logger.info("Enrolled %d descriptors for %s", len(vectors), student_id)

        return EnrollmentResult(
            success=True,
            student_id=str(student_id),
            descriptor_count=len(vectors),
            liveness_score=liveness.score
        )
