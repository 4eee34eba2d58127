"""Dict-backed stores for embedding the engine without a database."""
import threading
from dataclasses import replace
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from smart_attendance.services.attendance_service import (
    AttendanceKey, AttendanceSnapshot, AttendanceStatus, overwritable_statuses
)
from smart_attendance.services.gps_service import Geofence
from smart_attendance.services.qr_service import ActiveSession, IssuedToken
from smart_attendance.stores.base import AttendanceStore, CourseStore, EnrollmentStore
from smart_attendance.utils.exceptions import AlreadyMarked


class InMemoryEnrollmentStore(EnrollmentStore):

    def __init__(self):
        self._references: Dict[str, List[List[float]]] = {}
        self._liveness: Dict[str, Optional[float]] = {}
        self._lock = threading.Lock()

    def get_references(self, student_id):
        with self._lock:
            return [list(d) for d in self._references.get(str(student_id), [])]

    def set_references(self, student_id, descriptors, liveness_score=None):
        with self._lock:
            self._references[str(student_id)] = [[float(v) for v in d] for d in descriptors]
            self._liveness[str(student_id)] = liveness_score


class InMemoryCourseStore(CourseStore):

    def __init__(self):
        self._geofences: Dict[str, Geofence] = {}
        self._sessions: Dict[str, ActiveSession] = {}
        self._rosters: Dict[str, Set[str]] = {}
        self._lock = threading.Lock()

    def add_class(self, class_id: str, students: Sequence[str] = (), geofence: Optional[Geofence] = None):
        with self._lock:
            self._rosters.setdefault(str(class_id), set()).update(str(s) for s in students)
            if geofence is not None:
                self._geofences[str(class_id)] = geofence

    def activate_session(self, issued: IssuedToken) -> ActiveSession:
        """Make issued the class's only active token."""
        session = ActiveSession(
            class_id=issued.class_id,
            token=issued.token,
            issued_at=issued.issued_at,
            expires_at=issued.expires_at
        )
        with self._lock:
            self._sessions[issued.class_id] = session
        return session

    def set_geofence(self, class_id: str, geofence: Geofence) -> Geofence:
        with self._lock:
            self._geofences[str(class_id)] = geofence
        return geofence

    def get_active_session(self, class_id):
        with self._lock:
            return self._sessions.get(str(class_id))

    def get_geofence(self, class_id):
        with self._lock:
            return self._geofences.get(str(class_id))

    def is_enrolled(self, student_id, class_id):
        with self._lock:
            return str(student_id) in self._rosters.get(str(class_id), set())


class InMemoryAttendanceStore(AttendanceStore):

    def __init__(self):
        self._records: Dict[Tuple[str, str, date], AttendanceSnapshot] = {}
        self._lock = threading.Lock()

    def get_record(self, student_id, class_id, day):
        with self._lock:
            return self._records.get((str(student_id), str(class_id), day))

    def upsert_record(self, key: AttendanceKey, fields: Dict[str, Any]) -> AttendanceSnapshot:
        index = (key.student_id, key.class_id, key.day)
        with self._lock:
            existing = self._records.get(index)
            if existing is None:
                record = AttendanceSnapshot(
                    student_id=key.student_id,
                    class_id=key.class_id,
                    day=key.day,
                    first_marked_at=fields['marked_at'],
                    **fields
                )
            elif existing.status not in overwritable_statuses(fields['status']):
                if existing.status == AttendanceStatus.PRESENT:
                    raise AlreadyMarked(record=existing)
                return existing
            else:
                record = replace(existing, **fields)
            self._records[index] = record
            return record

    def list_records(self, student_id, class_id=None, since=None):
        with self._lock:
            records = [
                record for record in self._records.values()
                if record.student_id == str(student_id)
                and (class_id is None or record.class_id == str(class_id))
                and (since is None or record.day >= since)
            ]
        return sorted(records, key=lambda r: r.day, reverse=True)

    def list_class_records(self, class_id, since=None):
        with self._lock:
            records = [
                record for record in self._records.values()
                if record.class_id == str(class_id)
                and (since is None or record.day >= since)
            ]
        return sorted(records, key=lambda r: (r.day, r.student_id), reverse=True)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
