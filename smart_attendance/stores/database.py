"""Flask-SQLAlchemy implementations of the store interfaces."""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from smart_attendance import db
from smart_attendance.models import (
    AttendanceRecord, AttendanceSession, Course, CourseStudent, FaceData
)
from smart_attendance.services.attendance_service import (
    AttendanceKey, AttendanceSnapshot, AttendanceStatus, overwritable_statuses
)
from smart_attendance.services.face_recognition_service import FaceRecognitionService
from smart_attendance.services.gps_service import Geofence
from smart_attendance.services.qr_service import IssuedToken
from smart_attendance.stores.base import AttendanceStore, CourseStore, EnrollmentStore
from smart_attendance.utils.exceptions import AlreadyMarked

logger = logging.getLogger(__name__)

def _course_pk(class_id) -> Optional[int]:
    try:
        return int(class_id)
    except (TypeError, ValueError):
        return None

class SqlEnrollmentStore(EnrollmentStore):
    """Reference sets in ``face_data``, Fernet-encrypted per student."""

    def __init__(self, secret: str):
        self.secret = secret

    def get_references(self, student_id):
        face_data = FaceData.query.filter_by(student_id=str(student_id)).first()
        if face_data is None:
            return []
        return FaceRecognitionService.decrypt_descriptors(
            str(student_id), face_data.encrypted_descriptors, self.secret
        )

    def set_references(self, student_id, descriptors, liveness_score=None):
        encrypted = FaceRecognitionService.encrypt_descriptors(
            str(student_id), descriptors, self.secret
        )
        face_data = FaceData.query.filter_by(student_id=str(student_id)).first()
        if face_data is None:
            face_data = FaceData(student_id=str(student_id))
            db.session.add(face_data)

        # Re-enrollment replaces the whole set
        face_data.encrypted_descriptors = encrypted
        face_data.template_hash = FaceRecognitionService.template_hash(encrypted)
        face_data.descriptor_count = len(descriptors)
        face_data.descriptor_length = len(descriptors[0])
        face_data.liveness_score = liveness_score
        db.session.commit()

    def get_status(self, student_id) -> Optional[Dict[str, Any]]:
        face_data = FaceData.query.filter_by(student_id=str(student_id)).first()
        return face_data.to_dict() if face_data else None

class SqlCourseStore(CourseStore):

    def get_course(self, class_id) -> Optional[Course]:
        pk = _course_pk(class_id)
        return Course.get_by_id(pk) if pk is not None else None

    def get_active_session(self, class_id):
        pk = _course_pk(class_id)
        if pk is None:
            return None
        session = AttendanceSession.query.filter_by(course_id=pk, is_active=True) \
            .order_by(AttendanceSession.issued_at.desc()).first()
        return session.to_active_session() if session else None

    def get_geofence(self, class_id):
        course = self.get_course(class_id)
        return course.geofence if course else None

    def is_enrolled(self, student_id, class_id):
        pk = _course_pk(class_id)
        if pk is None:
            return False
        return CourseStudent.query.filter_by(
            course_id=pk, student_id=str(student_id)
        ).first() is not None

    def set_geofence(self, class_id, geofence: Geofence) -> Optional[Course]:
        """Move the class's geofence anchor; None when the class is unknown."""
        course = self.get_course(class_id)
        if course is None:
            return None
        course.latitude = geofence.latitude
        course.longitude = geofence.longitude
        course.radius_meters = geofence.radius_meters
        db.session.commit()
        return course

    def activate_session(self, issued: IssuedToken) -> AttendanceSession:
        """Persist a new token and deactivate the previous ones in one commit."""
        pk = _course_pk(issued.class_id)
        AttendanceSession.query.filter_by(course_id=pk, is_active=True) \
            .update({'is_active': False})
        session = AttendanceSession(
            course_id=pk,
            token=issued.token,
            issued_at=issued.issued_at,
            expires_at=issued.expires_at,
            is_active=True
        )
        db.session.add(session)
        db.session.commit()
        return session

class SqlAttendanceStore(AttendanceStore):

    def _find(self, student_id, class_id, day) -> Optional[AttendanceRecord]:
        pk = _course_pk(class_id)
        if pk is None:
            return None
        return AttendanceRecord.query.filter_by(
            student_id=str(student_id), course_id=pk, date=day
        ).first()

    def get_record(self, student_id, class_id, day):
        record = self._find(student_id, class_id, day)
        return record.to_snapshot() if record else None

    def upsert_record(self, key: AttendanceKey, fields: Dict[str, Any]) -> AttendanceSnapshot:
        if self._find(key.student_id, key.class_id, key.day) is None:
            record = AttendanceRecord(
                student_id=key.student_id,
                course_id=_course_pk(key.class_id),
                date=key.day,
                first_marked_at=fields['marked_at'],
                **fields
            )
            db.session.add(record)
            try:
                db.session.commit()
                return record.to_snapshot()
            except IntegrityError:
                # Another process created the row first
                db.session.rollback()
                logger.warning("Concurrent insert for %s; updating instead", key)

        # Conditional UPDATE: never touches a present or higher-ranked row,
        # whichever process wrote it
        updated = AttendanceRecord.query.filter(
            AttendanceRecord.student_id == key.student_id,
            AttendanceRecord.course_id == _course_pk(key.class_id),
            AttendanceRecord.date == key.day,
            AttendanceRecord.status.in_(overwritable_statuses(fields['status']))
        ).update(fields, synchronize_session=False)
        db.session.commit()

        record = self._find(key.student_id, key.class_id, key.day)
        if updated == 0 and record.status == AttendanceStatus.PRESENT:
            logger.warning("Refused to overwrite present record for %s", key)
            raise AlreadyMarked(record=record.to_snapshot())
        return record.to_snapshot()

    def list_records(self, student_id, class_id=None, since=None) -> List[AttendanceSnapshot]:
        query = AttendanceRecord.query.filter_by(student_id=str(student_id))
        if class_id is not None:
            pk = _course_pk(class_id)
            if pk is None:
                return []
            query = query.filter_by(course_id=pk)
        if since is not None:
            query = query.filter(AttendanceRecord.date >= since)
        return [r.to_snapshot() for r in query.order_by(AttendanceRecord.date.desc()).all()]

    def list_class_records(self, class_id, since=None) -> List[AttendanceSnapshot]:
        pk = _course_pk(class_id)
        if pk is None:
            return []
        query = AttendanceRecord.query.filter_by(course_id=pk)
        if since is not None:
            query = query.filter(AttendanceRecord.date >= since)
        query = query.order_by(AttendanceRecord.date.desc(), AttendanceRecord.student_id)
        return [r.to_snapshot() for r in query.all()]
