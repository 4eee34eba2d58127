"""Face enrollment API endpoints."""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required, get_jwt_identity
from smart_attendance import limiter
from smart_attendance.services.liveness_service import FrameSample
from smart_attendance.services.verification_service import get_service
from smart_attendance.utils.helpers import success_response, error_response
from smart_attendance.utils.validators import Validator

face_bp = Blueprint('face', __name__)

@face_bp.route('/enroll', methods=['POST'])
@jwt_required()
@limiter.limit("10 per hour")
def enroll_face():
    """Register or replace the caller's face reference descriptors."""
    student_id = get_jwt_identity()
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return error_response("Request body must be an object", 400)

    validation = Validator.validate_required_fields(data, ['descriptors'])
    if not validation['is_valid']:
        return error_response(', '.join(validation['errors']), 400)

    frames = data.get('frames') or []
    if not isinstance(frames, list):
        return error_response("frames must be a list", 400)
    frames = [FrameSample.from_dict(f) for f in frames]
    result = get_service('enrollment').enroll(student_id, data['descriptors'], frames)

    if not result.success:
        return error_response(result.error_message, 422)

    return success_response(
        data=result.to_dict(),
        message="Face data saved successfully",
        status_code=201
    )

@face_bp.route('/status', methods=['GET'])
@jwt_required()
def face_status():
    """Whether the caller has an enrolled reference set."""
    student_id = get_jwt_identity()
    status = get_service('enrollments').get_status(student_id)

    if status is None:
        return error_response("Face data not found", 404)

    return success_response(data=status)
