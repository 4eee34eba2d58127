"""Encrypted face reference sets."""
from smart_attendance import db
from smart_attendance.models.base import BaseModel

class FaceData(BaseModel):
    """A student's active reference descriptors, encrypted at rest."""

    __tablename__ = 'face_data'

    student_id = db.Column(db.String(64), unique=True, nullable=False)
    encrypted_descriptors = db.Column(db.LargeBinary, nullable=False)
    template_hash = db.Column(db.String(64), nullable=False)
    descriptor_count = db.Column(db.Integer, nullable=False)
    descriptor_length = db.Column(db.Integer, nullable=False)
    liveness_score = db.Column(db.Float, nullable=True)

    def to_dict(self):
        return {
            'student_id': self.student_id,
            'has_face_data': True,
            'descriptor_count': self.descriptor_count,
            'descriptor_length': self.descriptor_length,
            'liveness_score': self.liveness_score,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }
