"""Attendance model with verification details."""
from datetime import datetime
from smart_attendance import db
from smart_attendance.models.base import BaseModel
from smart_attendance.services.attendance_service import AttendanceSnapshot, AttendanceStatus

class AttendanceRecord(BaseModel):
    """Attendance record model; one row per student, course and day."""

    __tablename__ = 'attendance_records'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'course_id', 'date', name='uq_attendance_day'),
        db.Index('ix_attendance_course_date', 'course_id', 'date'),
    )

    student_id = db.Column(db.String(64), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    status = db.Column(db.Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.ABSENT)

    # Raw signals; NULL means the check was not applicable
    qr_scanned = db.Column(db.Boolean, nullable=True)
    gps_matched = db.Column(db.Boolean, nullable=True)
    face_matched = db.Column(db.Boolean, nullable=True)

    # Diagnostics
    face_confidence = db.Column(db.Float, nullable=True)
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)
    gps_distance = db.Column(db.Float, nullable=True)
    gps_accuracy = db.Column(db.Float, nullable=True)

    marked_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    first_marked_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)

    def to_snapshot(self) -> AttendanceSnapshot:
        return AttendanceSnapshot(
            student_id=self.student_id,
            class_id=str(self.course_id),
            day=self.date,
            status=self.status,
            qr_scanned=self.qr_scanned,
            gps_matched=self.gps_matched,
            face_matched=self.face_matched,
            face_confidence=self.face_confidence,
            gps_latitude=self.gps_latitude,
            gps_longitude=self.gps_longitude,
            gps_distance=self.gps_distance,
            gps_accuracy=self.gps_accuracy,
            marked_at=self.marked_at,
            first_marked_at=self.first_marked_at
        )

    def __repr__(self):
        return f'<AttendanceRecord {self.student_id}-{self.course_id}-{self.date}>'
