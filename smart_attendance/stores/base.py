"""Interfaces the engine needs from its persistence collaborators."""
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from smart_attendance.services.attendance_service import AttendanceKey, AttendanceSnapshot
from smart_attendance.services.gps_service import Geofence
from smart_attendance.services.qr_service import ActiveSession


class EnrollmentStore(ABC):
    """Enrolled face reference sets, one per student."""

    @abstractmethod
    def get_references(self, student_id: str) -> List[List[float]]:
        """Reference descriptors, empty when the student never enrolled."""

    @abstractmethod
    def set_references(
        self,
        student_id: str,
        descriptors: Sequence[Sequence[float]],
        liveness_score: Optional[float] = None
    ) -> None:
        """Replace the student's whole reference set."""


class CourseStore(ABC):
    """Class configuration and roster lookups."""

    @abstractmethod
    def get_active_session(self, class_id: str) -> Optional[ActiveSession]:
        pass

    @abstractmethod
    def get_geofence(self, class_id: str) -> Optional[Geofence]:
        pass

    @abstractmethod
    def is_enrolled(self, student_id: str, class_id: str) -> bool:
        pass


class AttendanceStore(ABC):
    """The authoritative attendance records."""

    @abstractmethod
    def get_record(self, student_id: str, class_id: str, day: date) -> Optional[AttendanceSnapshot]:
        pass

    @abstractmethod
    def upsert_record(self, key: AttendanceKey, fields: Dict[str, Any]) -> AttendanceSnapshot:
        """
        Create or update the record for key; ``first_marked_at`` is set once.

        The write is guarded as one atomic step: a stored ``present`` record
        raises AlreadyMarked, and a stored status ranked above
        ``fields["status"]`` is returned unchanged.
        """

    @abstractmethod
    def list_records(
        self,
        student_id: str,
        class_id: Optional[str] = None,
        since: Optional[date] = None
    ) -> List[AttendanceSnapshot]:
        """Records for a student, newest day first."""

    @abstractmethod
    def list_class_records(self, class_id: str, since: Optional[date] = None) -> List[AttendanceSnapshot]:
        """Every student's records for a class, newest day first."""
