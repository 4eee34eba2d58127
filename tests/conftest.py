"""Shared fixtures."""
import pytest
from flask_jwt_extended import create_access_token

from smart_attendance import create_app, db
from smart_attendance.models import Course, CourseStudent

ANCHOR_LAT = 33.3152
ANCHOR_LON = 44.3661

@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()

@pytest.fixture
def course(app):
    """A class with a 50 m geofence and one student on the roster."""
    course = Course(
        name='Algorithms',
        teacher_id='teacher-1',
        latitude=ANCHOR_LAT,
        longitude=ANCHOR_LON,
        radius_meters=50
    )
    course.save()
    db.session.add(CourseStudent(course_id=course.id, student_id='student-1'))
    db.session.commit()
    return course

@pytest.fixture
def auth_headers(app):
    """Build Authorization headers for an identity."""
    def _headers(identity):
        token = create_access_token(identity=identity)
        return {'Authorization': f'Bearer {token}'}
    return _headers

@pytest.fixture
def varied_frames():
    """Ten frames alternating neutral/happy; general liveness score 0.45."""
    return [
        {
            'expressions': {
                'neutral': 1.0 if i % 2 == 0 else 0.0,
                'happy': 0.0 if i % 2 == 0 else 1.0,
                'sad': 0.0,
                'angry': 0.0
            },
            'offset_ms': i * 100
        }
        for i in range(10)
    ]

@pytest.fixture
def blink_frames():
    """A short verification-time capture with a face in every frame."""
    return [{'expressions': {'neutral': 1.0}, 'offset_ms': i * 50} for i in range(5)]
