"""Course model with geofence anchor and roster."""
from typing import Optional
from smart_attendance import db
from smart_attendance.models.base import BaseModel
from smart_attendance.services.gps_service import Geofence

class Course(BaseModel):
    """A class students attend; ``Class`` in the attendance vocabulary."""

    __tablename__ = 'courses'

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    teacher_id = db.Column(db.String(64), nullable=False, index=True)

    # Geofence anchor; unset means GPS is not configured for this class
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    radius_meters = db.Column(db.Float, nullable=False, default=50.0)

    # Relationships
    students = db.relationship('CourseStudent', backref='course', lazy='dynamic',
                               cascade='all, delete-orphan')
    sessions = db.relationship('AttendanceSession', backref='course', lazy='dynamic',
                               cascade='all, delete-orphan')

    @property
    def geofence(self) -> Optional[Geofence]:
        if self.latitude is None or self.longitude is None:
            return None
        return Geofence(self.latitude, self.longitude, self.radius_meters)

    def has_student(self, student_id: str) -> bool:
        return self.students.filter_by(student_id=str(student_id)).first() is not None

    def to_dict(self):
        """Convert to dictionary."""
        data = super().to_dict(exclude=['latitude', 'longitude', 'radius_meters'])
        geofence = self.geofence
        data['geofence'] = {
            'latitude': geofence.latitude,
            'longitude': geofence.longitude,
            'radius_meters': geofence.radius_meters
        } if geofence else None
        return data

    def __repr__(self):
        return f'<Course {self.name}>'

class CourseStudent(BaseModel):
    """Roster entry."""

    __tablename__ = 'course_students'
    __table_args__ = (
        db.UniqueConstraint('course_id', 'student_id', name='uq_course_student'),
    )

    course_id = db.Column(db.Integer, db.ForeignKey('courses.id'), nullable=False)
    student_id = db.Column(db.String(64), nullable=False, index=True)
