"""Attendance session with QR tokens."""
from datetime import datetime
from smart_attendance import db
from smart_attendance.models.base import BaseModel
from smart_attendance.services.qr_service import ActiveSession

class AttendanceSession(BaseModel):
    """One issued QR token; at most one per course is active."""

    __tablename__ = 'attendance_sessions'

    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False)
    issued_at = db.Column(db.DateTime, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def is_expired(self) -> bool:
        """Check if session is expired."""
        return self.expires_at is not None and datetime.utcnow() > self.expires_at

    def to_active_session(self) -> ActiveSession:
        return ActiveSession(
            class_id=str(self.course_id),
            token=self.token,
            issued_at=self.issued_at,
            expires_at=self.expires_at
        )

    def to_dict(self):
        """Convert to dictionary."""
        return {
            'id': self.id,
            'class_id': str(self.course_id),
            'issued_at': self.issued_at.isoformat(),
            'expires_at': self.expires_at.isoformat() if self.expires_at else None,
            'is_active': self.is_active and not self.is_expired()
        }
