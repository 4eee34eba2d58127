"""Flask CLI commands for setting up classes and rosters."""
import click
from flask import Flask

from smart_attendance import db

def register_cli(app: Flask) -> None:
    """Register CLI commands."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

    @app.cli.command('create-class')
    @click.argument('name')
    @click.argument('teacher_id')
    @click.option('--lat', type=float, help='Geofence anchor latitude')
    @click.option('--lon', type=float, help='Geofence anchor longitude')
    @click.option('--radius', type=float, default=None, help='Geofence radius in meters')
    def create_class(name, teacher_id, lat, lon, radius):
        """Create a class, optionally with a geofence."""
        from smart_attendance.models import Course
        from smart_attendance.services.verification_service import get_service
        from smart_attendance.utils.validators import Validator

        if (lat is None) != (lon is None):
            raise click.UsageError('--lat and --lon must be given together')
        if lat is not None:
            Validator.validate_coordinates(lat, lon)

        course = Course(
            name=name,
            teacher_id=teacher_id,
            latitude=lat,
            longitude=lon,
            radius_meters=radius or get_service('policy').default_geofence_radius
        )
        course.save()
        click.echo(f'Created class {course.id}: {name}')

    @app.cli.command('add-student')
    @click.argument('class_id', type=int)
    @click.argument('student_ids', nargs=-1, required=True)
    def add_student(class_id, student_ids):
        """Add students to a class roster."""
        from smart_attendance.models import Course, CourseStudent

        course = Course.get_by_id(class_id)
        if course is None:
            raise click.ClickException(f'Class {class_id} not found')

        added = 0
        for student_id in student_ids:
            if not course.has_student(student_id):
                db.session.add(CourseStudent(course_id=course.id, student_id=student_id))
                added += 1
        db.session.commit()
        click.echo(f'Added {added} student(s) to {course.name}')

    @app.cli.command('issue-token')
    @click.argument('class_id', type=int)
    @click.option('--expires', type=int, default=None, help='Validity in seconds')
    def issue_token(class_id, expires):
        """Issue a new QR session token and print its payload."""
        from flask import current_app
        from smart_attendance.services.qr_service import QRService
        from smart_attendance.services.verification_service import get_service

        courses = get_service('courses')
        if courses.get_course(class_id) is None:
            raise click.ClickException(f'Class {class_id} not found')

        issued = QRService.issue_session_token(
            str(class_id),
            expires_in_seconds=expires or current_app.config['QR_CODE_DEFAULT_EXPIRY']
        )
        courses.activate_session(issued)
        click.echo(issued.payload)
