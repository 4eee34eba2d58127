"""Models package with all models."""
from .base import BaseModel
from .course import Course, CourseStudent
from .attendance_session import AttendanceSession
from .face_data import FaceData
from .attendance import AttendanceRecord

__all__ = [
    'BaseModel', 'Course', 'CourseStudent',
    'AttendanceSession', 'FaceData', 'AttendanceRecord'
]
