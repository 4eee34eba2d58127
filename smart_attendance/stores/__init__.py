"""Persistence collaborators of the verification engine."""
from .base import AttendanceStore, CourseStore, EnrollmentStore
from .memory import InMemoryAttendanceStore, InMemoryCourseStore, InMemoryEnrollmentStore

__all__ = [
    'AttendanceStore', 'CourseStore', 'EnrollmentStore',
    'InMemoryAttendanceStore', 'InMemoryCourseStore', 'InMemoryEnrollmentStore'
]
