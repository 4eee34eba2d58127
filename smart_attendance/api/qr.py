"""QR session token API endpoints."""
from flask import Blueprint, request, current_app
from flask_jwt_extended import jwt_required, get_jwt_identity
from smart_attendance import limiter
from smart_attendance.services.gps_service import Geofence
from smart_attendance.services.qr_service import QRService
from smart_attendance.services.verification_service import get_service
from smart_attendance.utils.helpers import success_response, error_response
from smart_attendance.utils.validators import Validator

qr_bp = Blueprint('qr', __name__)

@qr_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='QR service is running')

@qr_bp.route('/classes/<class_id>/generate', methods=['POST'])
@jwt_required()
@limiter.limit("30 per hour")
def generate_qr(class_id):
    """Issue a new session token; the previous one stops being valid."""
    current_user_id = get_jwt_identity()
    courses = get_service('courses')

    course = courses.get_course(class_id)
    if course is None:
        return error_response("Class not found", 404)

    if course.teacher_id != current_user_id:
        return error_response("You can only generate QR for your own classes", 403)

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return error_response("Request body must be an object", 400)
    default_expiry = current_app.config['QR_CODE_DEFAULT_EXPIRY']
    max_expiry = current_app.config['QR_CODE_MAX_EXPIRY']
    try:
        expires_in = int(data.get('expires_in_seconds', default_expiry))
    except (TypeError, ValueError):
        return error_response("expires_in_seconds must be an integer", 400)
    if expires_in < 30 or expires_in > max_expiry:
        expires_in = default_expiry

    issued = QRService.issue_session_token(str(course.id), expires_in_seconds=expires_in)
    session = courses.activate_session(issued)

    return success_response(
        data={
            'session': session.to_dict(),
            'payload': issued.payload,
            'qr_image': issued.qr_image,
            'expires_in': expires_in,
            'class': {
                'id': course.id,
                'name': course.name
            }
        },
        message="QR code generated successfully",
        status_code=201
    )

@qr_bp.route('/classes/<class_id>/geofence', methods=['POST'])
@jwt_required()
def set_geofence(class_id):
    """Set the anchor and radius students must be inside to pass the GPS check."""
    current_user_id = get_jwt_identity()
    courses = get_service('courses')

    course = courses.get_course(class_id)
    if course is None:
        return error_response("Class not found", 404)

    if course.teacher_id != current_user_id:
        return error_response("You can only set the geofence of your own classes", 403)

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return error_response("Request body must be an object", 400)
    validation = Validator.validate_required_fields(data, ['latitude', 'longitude'])
    if not validation['is_valid']:
        return error_response(', '.join(validation['errors']), 400)

    radius = data.get('radius_meters')
    if radius is None:
        radius = get_service('policy').default_geofence_radius

    Validator.validate_coordinates(data['latitude'], data['longitude'])
    Validator.validate_radius(radius)

    course = courses.set_geofence(
        class_id, Geofence(float(data['latitude']), float(data['longitude']), float(radius))
    )

    return success_response(
        data=course.to_dict(),
        message="Geofence set successfully"
    )
