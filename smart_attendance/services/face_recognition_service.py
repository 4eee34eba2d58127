"""Face descriptor matching and secure template storage."""
import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from smart_attendance.utils.exceptions import (
    DimensionMismatch, InvalidInput, NoEnrollment
)
from smart_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

@dataclass
class FaceMatchResult:
    """Face verification result data structure."""
    matched: bool
    confidence: float
    threshold: float
    best_index: int
    reference_count: int

    def to_dict(self):
        return {
            'matched': self.matched,
            'confidence': round(self.confidence, 4),
            'threshold': self.threshold,
            'reference_count': self.reference_count
        }

class FaceRecognitionService:
    """
    Face matching over externally extracted descriptor vectors.

    The service is embedding-agnostic: any fixed-length numeric vector is
    accepted, and similarity is ``max(0, 1 - euclidean_distance)``.
    Reference sets are encrypted at rest with a per-student Fernet key.
    """

    # =================== CONSTANTS ===================

    DEFAULT_MATCH_THRESHOLD = 0.6
    TEMPLATE_ENCRYPTION_KEY_SIZE = 32
    KDF_ITERATIONS = 100000

    @staticmethod
    def calculate_similarity(descriptor1: Sequence[float], descriptor2: Sequence[float]) -> float:
        """Similarity in [0, 1]; 1 means identical descriptors."""
        a = Validator.validate_descriptor(descriptor1)
        b = Validator.validate_descriptor(descriptor2)
        if a.size != b.size:
            raise DimensionMismatch(
                f"Descriptor lengths differ: {a.size} != {b.size}"
            )

        distance = float(np.linalg.norm(a - b))
        return max(0.0, 1.0 - distance)

    @classmethod
    def verify_face(
        cls,
        candidate: Sequence[float],
        references: Sequence[Sequence[float]],
        threshold: float = DEFAULT_MATCH_THRESHOLD
    ) -> FaceMatchResult:
        """
        Compare a candidate against every enrolled reference for one student.

        Args:
            candidate: Descriptor captured at check-in
            references: Enrolled descriptors (one student may have several captures)
            threshold: Minimum similarity for a match

        Returns:
            FaceMatchResult judged on the best similarity found
        """
        if not references:
            raise NoEnrollment()
        if not 0.0 <= threshold <= 1.0:
            raise InvalidInput(f"Match threshold must be within [0, 1]: {threshold}")

        candidate_vector = Validator.validate_descriptor(candidate)
        reference_matrix = np.vstack([
            cls._reference_vector(reference, candidate_vector.size)
            for reference in references
        ])

        distances = np.linalg.norm(reference_matrix - candidate_vector, axis=1)
        similarities = np.maximum(0.0, 1.0 - distances)
        best_index = int(np.argmax(similarities))
        confidence = float(similarities[best_index])

        return FaceMatchResult(
            matched=confidence >= threshold,
            confidence=confidence,
            threshold=threshold,
            best_index=best_index,
            reference_count=len(references)
        )

    @staticmethod
    def _reference_vector(reference: Sequence[float], length: int) -> np.ndarray:
        vector = Validator.validate_descriptor(reference)
        if vector.size != length:
            raise DimensionMismatch(
                f"Descriptor length {length} does not match enrolled length {vector.size}"
            )
        return vector

    # =================== TEMPLATE STORAGE ===================

    @classmethod
    def generate_encryption_key(cls, student_id: str, secret: str) -> bytes:
        """Generate unique encryption key for a student's reference set."""
        password = f"{student_id}:{secret}:face_template".encode()
        salt = hashlib.sha256(f"smart_attendance:{student_id}".encode()).digest()[:16]

        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=cls.TEMPLATE_ENCRYPTION_KEY_SIZE,
            salt=salt,
            iterations=cls.KDF_ITERATIONS,
        )
        return kdf.derive(password)

    @classmethod
    def _fernet(cls, student_id: str, secret: str) -> Fernet:
        key = cls.generate_encryption_key(student_id, secret)
        return Fernet(base64.urlsafe_b64encode(key))

    @classmethod
    def encrypt_descriptors(
        cls,
        student_id: str,
        descriptors: Sequence[Sequence[float]],
        secret: str
    ) -> bytes:
        """Encrypt a reference set for storage."""
        payload = json.dumps(
            [[float(value) for value in descriptor] for descriptor in descriptors],
            separators=(',', ':')
        )
        return cls._fernet(student_id, secret).encrypt(payload.encode())

    @classmethod
    def decrypt_descriptors(
        cls,
        student_id: str,
        token: bytes,
        secret: str
    ) -> List[List[float]]:
        """Decrypt a stored reference set."""
        try:
            payload = cls._fernet(student_id, secret).decrypt(token)
        except InvalidToken:
            logger.error("Face template for student %s could not be decrypted", student_id)
            raise
        return json.loads(payload.decode())

    @staticmethod
    def template_hash(token: bytes) -> str:
        """Hash of the encrypted template, for integrity checks and audit."""
        return hashlib.sha256(token).hexdigest()
