"""Attendance decision engine: quorum fusion with per-day idempotency."""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from smart_attendance.utils.exceptions import AlreadyMarked, ClassNotFound
from smart_attendance.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

class AttendanceStatus(Enum):
    """Attendance status enumeration."""
    ABSENT = "absent"
    LATE = "late"
    PRESENT = "present"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

_STATUS_RANK = {
    AttendanceStatus.ABSENT: 0,
    AttendanceStatus.LATE: 1,
    AttendanceStatus.PRESENT: 2,
}

@dataclass(frozen=True)
class AttendanceKey:
    """Idempotency key: one authoritative record per student, class and UTC day."""
    student_id: str
    class_id: str
    day: date

@dataclass
class VerificationAttempt:
    """
    The three raw signals of one check-in, consumed once by the engine.

    A signal of ``None`` means the check was not applicable (its
    configuration is missing). It does not count toward the quorum but is
    stored as NULL so it stays distinguishable from a failed check.
    """
    student_id: str
    class_id: str
    qr_valid: Optional[bool] = False
    gps_match: Optional[bool] = False
    face_match: Optional[bool] = False
    face_confidence: Optional[float] = None
    gps_latitude: Optional[float] = None
    gps_longitude: Optional[float] = None
    gps_distance: Optional[float] = None
    gps_accuracy: Optional[float] = None
    attempted_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def key(self) -> AttendanceKey:
        return AttendanceKey(str(self.student_id), str(self.class_id), self.attempted_at.date())

    @property
    def validations_passed(self) -> int:
        return sum(1 for signal in (self.qr_valid, self.gps_match, self.face_match) if signal is True)

    def record_fields(self, status: AttendanceStatus) -> Dict[str, Any]:
        """Every field written for this attempt, as one unit."""
        return {
            'status': status,
            'qr_scanned': self.qr_valid,
            'gps_matched': self.gps_match,
            'face_matched': self.face_match,
            'face_confidence': self.face_confidence,
            'gps_latitude': self.gps_latitude,
            'gps_longitude': self.gps_longitude,
            'gps_distance': self.gps_distance,
            'gps_accuracy': self.gps_accuracy,
            'marked_at': self.attempted_at,
        }

@dataclass
class AttendanceSnapshot:
    """Store-independent view of an attendance record."""
    student_id: str
    class_id: str
    day: date
    status: AttendanceStatus
    qr_scanned: Optional[bool]
    gps_matched: Optional[bool]
    face_matched: Optional[bool]
    face_confidence: Optional[float]
    gps_latitude: Optional[float]
    gps_longitude: Optional[float]
    gps_distance: Optional[float]
    gps_accuracy: Optional[float]
    marked_at: datetime
    first_marked_at: datetime

    @property
    def key(self) -> AttendanceKey:
        return AttendanceKey(self.student_id, self.class_id, self.day)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'student_id': self.student_id,
            'class_id': self.class_id,
            'date': self.day.isoformat(),
            'status': self.status.value,
            'qr_scanned': self.qr_scanned,
            'gps_matched': self.gps_matched,
            'face_matched': self.face_matched,
            'face_confidence': self.face_confidence,
            'gps_latitude': self.gps_latitude,
            'gps_longitude': self.gps_longitude,
            'gps_distance': self.gps_distance,
            'gps_accuracy': self.gps_accuracy,
            'marked_at': self.marked_at.isoformat(),
            'first_marked_at': self.first_marked_at.isoformat()
        }

@dataclass
class AttendanceDecision:
    """What the engine did with one attempt."""
    record: AttendanceSnapshot
    target_status: AttendanceStatus
    previous_status: Optional[AttendanceStatus]
    validations_passed: int
    created: bool
    applied: bool

    @property
    def status(self) -> AttendanceStatus:
        return self.record.status

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status.value,
            'target_status': self.target_status.value,
            'previous_status': self.previous_status.value if self.previous_status else None,
            'validations_passed': self.validations_passed,
            'created': self.created,
            'applied': self.applied,
            'record': self.record.to_dict()
        }

def decide_status(
    qr_valid: Optional[bool],
    gps_match: Optional[bool],
    face_match: Optional[bool],
    quorum: int = 2
) -> AttendanceStatus:
    """Fuse three signals: a quorum means present, a valid QR alone means late."""
    validations_passed = sum(1 for signal in (qr_valid, gps_match, face_match) if signal is True)

    if validations_passed >= quorum:
        return AttendanceStatus.PRESENT
    if qr_valid is True:
        return AttendanceStatus.LATE
    return AttendanceStatus.ABSENT

def overwritable_statuses(target: AttendanceStatus) -> List[AttendanceStatus]:
    """Stored statuses an attempt reaching target may replace."""
    return [
        status for status in AttendanceStatus
        if status != AttendanceStatus.PRESENT and status.rank <= target.rank
    ]

class AttendanceDecisionEngine:
    """
    Turns verification attempts into the single attendance record per day.

    Rules, per (student, class, UTC day):
    - an existing ``present`` record rejects further attempts with AlreadyMarked
    - a higher or equal target status replaces the record's fields in place
      and refreshes ``marked_at``; ``first_marked_at`` is kept
    - a lower target status leaves the record untouched (``applied=False``)

    The read-modify-write runs under a per-key lock; different keys never
    contend. The lock only covers this process, so stores repeat the
    present and rank checks atomically in their own write (see
    ``AttendanceStore.upsert_record``).
    """

    def __init__(self, courses, records, quorum: int = 2, locks: Optional[KeyedLock] = None):
        self.courses = courses
        self.records = records
        self.quorum = quorum
        self.locks = locks or KeyedLock()

    def record_attempt(self, attempt: VerificationAttempt) -> AttendanceDecision:
        """Apply one attempt. Raises ClassNotFound or AlreadyMarked."""
        if not self.courses.is_enrolled(attempt.student_id, attempt.class_id):
            raise ClassNotFound(
                f"Class {attempt.class_id} not found for student {attempt.student_id}"
            )

        key = attempt.key
        target = decide_status(attempt.qr_valid, attempt.gps_match, attempt.face_match, self.quorum)

        with self.locks.hold(key):
            existing = self.records.get_record(key.student_id, key.class_id, key.day)

            if existing is not None and existing.status == AttendanceStatus.PRESENT:
                logger.warning(
                    "Rejected attempt for %s/%s on %s: already present",
                    key.student_id, key.class_id, key.day
                )
                raise AlreadyMarked(record=existing)

            previous = existing.status if existing is not None else None

            if existing is not None and target.rank < existing.status.rank:
                logger.info(
                    "Kept %s for %s/%s on %s; attempt only reached %s",
                    existing.status.value, key.student_id, key.class_id, key.day, target.value
                )
                return AttendanceDecision(
                    record=existing,
                    target_status=target,
                    previous_status=previous,
                    validations_passed=attempt.validations_passed,
                    created=False,
                    applied=False
                )

            record = self.records.upsert_record(key, attempt.record_fields(target))

        if record.status != target:
            # Another worker wrote a higher status between our read and write
            logger.info(
                "Kept %s for %s/%s on %s written concurrently; attempt only reached %s",
                record.status.value, key.student_id, key.class_id, key.day, target.value
            )
            return AttendanceDecision(
                record=record,
                target_status=target,
                previous_status=record.status,
                validations_passed=attempt.validations_passed,
                created=False,
                applied=False
            )

        logger.info(
            "Marked %s/%s on %s as %s (%d/3 checks passed)",
            key.student_id, key.class_id, key.day, target.value, attempt.validations_passed
        )
        return AttendanceDecision(
            record=record,
            target_status=target,
            previous_status=previous,
            validations_passed=attempt.validations_passed,
            created=existing is None and record.first_marked_at == attempt.attempted_at,
            applied=True
        )
