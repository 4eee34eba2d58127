"""Attendance API endpoints with triple verification."""
from datetime import datetime, timedelta
from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity
from smart_attendance import limiter
from smart_attendance.services.report_service import ReportService
from smart_attendance.services.verification_service import VerificationEvidence, get_service
from smart_attendance.utils.exceptions import AlreadyMarked
from smart_attendance.utils.helpers import error_response, success_response

attendance_bp = Blueprint('attendance', __name__)

@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')

@attendance_bp.route('/classes/<class_id>/mark', methods=['POST'])
@jwt_required()
@limiter.limit("30 per minute")
def mark_attendance(class_id):
    """Verify QR, location and face evidence and record today's attendance."""
    student_id = get_jwt_identity()
    evidence = VerificationEvidence.from_dict(request.get_json(silent=True) or {})

    try:
        outcome = get_service('verification').verify_and_mark(student_id, class_id, evidence)
    except AlreadyMarked as e:
        body = e.to_dict()
        body['data'] = e.record.to_dict() if e.record else None
        return jsonify(body), e.status_code

    decision = outcome.decision
    return success_response(
        data=outcome.to_dict(),
        message=f"Attendance marked as {decision.status.value}",
        status_code=201 if decision.created else 200
    )

@attendance_bp.route('/history', methods=['GET'])
@jwt_required()
def attendance_history():
    """Student's attendance records with statistics."""
    student_id = get_jwt_identity()
    class_id = request.args.get('class_id')

    records = get_service('records').list_records(student_id, class_id=class_id)

    return success_response(data={
        'records': [record.to_dict() for record in records],
        'statistics': ReportService.summarize(records)
    })

@attendance_bp.route('/stats/weekly', methods=['GET'])
@jwt_required()
def weekly_stats():
    """Last seven days of attendance."""
    student_id = get_jwt_identity()
    class_id = request.args.get('class_id')

    today = datetime.utcnow().date()
    records = get_service('records').list_records(
        student_id,
        class_id=class_id,
        since=today - timedelta(days=ReportService.WEEK_DAYS - 1)
    )

    return success_response(data=ReportService.weekly(records, today))

@attendance_bp.route('/classes/<class_id>/analytics', methods=['GET'])
@jwt_required()
def class_analytics(class_id):
    """Per-student and daily attendance counts for the class teacher."""
    current_user_id = get_jwt_identity()

    course = get_service('courses').get_course(class_id)
    if course is None:
        return error_response("Class not found", 404)

    if course.teacher_id != current_user_id:
        return error_response("You can only view analytics for your own classes", 403)

    records = get_service('records').list_class_records(class_id)
    analytics = ReportService.class_analytics(records)
    analytics['class'] = {'id': course.id, 'name': course.name}

    return success_response(data=analytics)
