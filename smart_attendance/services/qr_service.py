"""QR session token issuance and validation service."""
import base64
import hmac
import io
import json
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Union

import qrcode

from smart_attendance.utils.exceptions import InvalidInput, SessionNotConfigured

@dataclass(frozen=True)
class ActiveSession:
    """The single active session token of a class."""
    class_id: str
    token: str
    issued_at: datetime
    expires_at: Optional[datetime] = None

@dataclass(frozen=True)
class SessionPayload:
    """Decoded QR content."""
    class_id: str
    token: str
    issued_at: datetime

@dataclass
class TokenValidationResult:
    """Outcome of a token check."""
    is_valid: bool
    reason: Optional[str] = None

    def to_dict(self):
        return {'is_valid': self.is_valid, 'reason': self.reason}

@dataclass
class IssuedToken:
    """A freshly issued session token and its QR rendering."""
    class_id: str
    token: str
    issued_at: datetime
    expires_at: datetime
    payload: str
    qr_image: str

def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class QRService:
    """Service for QR session token operations."""

    @staticmethod
    def issue_session_token(
        class_id: str,
        expires_in_seconds: int = 300,
        now: Optional[datetime] = None
    ) -> IssuedToken:
        """
        Generate a new session token for a class.
        Persisting the result must deactivate the class's previous token.
        """
        if expires_in_seconds <= 0:
            raise InvalidInput(f"Token validity must be positive: {expires_in_seconds}")

        token = secrets.token_urlsafe(32)
        issued_at = _to_naive_utc(now or datetime.utcnow()).replace(microsecond=0)
        expires_at = issued_at + timedelta(seconds=expires_in_seconds)

        payload = json.dumps({
            'class_id': str(class_id),
            'token': token,
            'issued_at': issued_at.isoformat()
        }, separators=(',', ':'))

        return IssuedToken(
            class_id=str(class_id),
            token=token,
            issued_at=issued_at,
            expires_at=expires_at,
            payload=payload,
            qr_image=QRService.render_qr_image(payload)
        )

    @staticmethod
    def render_qr_image(data: str) -> str:
        """Render data as a PNG data URL."""
        qr = qrcode.QRCode(
            version=None,  # Auto-determine size
            error_correction=qrcode.constants.ERROR_CORRECT_H,
            box_size=10,
            border=4,
        )
        qr.add_data(data)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()

        return f"data:image/png;base64,{img_str}"

    @staticmethod
    def parse_payload(raw: Union[str, Dict]) -> SessionPayload:
        """Parse a decoded QR payload given as a JSON string or dict."""
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError:
                raise InvalidInput("Invalid QR code format")

        if not isinstance(raw, dict):
            raise InvalidInput("Invalid QR code format")

        for field in ('class_id', 'token', 'issued_at'):
            if not raw.get(field):
                raise InvalidInput(f"Missing field: {field}")

        issued_at = raw['issued_at']
        if not isinstance(issued_at, datetime):
            try:
                issued_at = datetime.fromisoformat(str(issued_at))
            except ValueError:
                raise InvalidInput(f"Invalid issued_at: {issued_at!r}")

        return SessionPayload(
            class_id=str(raw['class_id']),
            token=str(raw['token']),
            issued_at=_to_naive_utc(issued_at)
        )

    @staticmethod
    def validate_session_token(
        payload: SessionPayload,
        active_session: Optional[ActiveSession],
        claimed_class_id: str,
        now: Optional[datetime] = None
    ) -> TokenValidationResult:
        """
        Strict equality and freshness check against the class's active token.
        Returns: TokenValidationResult; raises SessionNotConfigured when the
        class has no active token at all.
        """
        if active_session is None:
            raise SessionNotConfigured()

        if payload.class_id != str(claimed_class_id) or payload.class_id != str(active_session.class_id):
            return TokenValidationResult(False, "QR code belongs to another class")

        if not hmac.compare_digest(payload.token.encode(), active_session.token.encode()):
            return TokenValidationResult(False, "QR code has been superseded")

        if payload.issued_at != _to_naive_utc(active_session.issued_at):
            return TokenValidationResult(False, "QR code has been superseded")

        now = _to_naive_utc(now or datetime.utcnow())
        if active_session.expires_at is not None and now > _to_naive_utc(active_session.expires_at):
            return TokenValidationResult(False, "QR code has expired")

        return TokenValidationResult(True)
