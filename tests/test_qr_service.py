"""Test session token issuance and validation."""
import json
from datetime import datetime, timedelta, timezone

import pytest

from smart_attendance.services.qr_service import ActiveSession, QRService
from smart_attendance.stores.memory import InMemoryCourseStore
from smart_attendance.utils.exceptions import InvalidInput, NotConfigured, SessionNotConfigured

NOW = datetime(2026, 3, 2, 9, 0, 0)

@pytest.fixture
def issued():
    return QRService.issue_session_token('7', expires_in_seconds=120, now=NOW)

@pytest.fixture
def active(issued):
    return ActiveSession('7', issued.token, issued.issued_at, issued.expires_at)

def test_issue_session_token(issued):
    """Issued tokens carry class, token and issuance time in the QR payload."""
    payload = json.loads(issued.payload)

    assert payload == {
        'class_id': '7',
        'token': issued.token,
        'issued_at': NOW.isoformat()
    }
    assert issued.expires_at - issued.issued_at == timedelta(seconds=120)
    assert issued.qr_image.startswith('data:image/png;base64,')

def test_issue_rejects_non_positive_validity():
    """A token must be valid for some time."""
    with pytest.raises(InvalidInput):
        QRService.issue_session_token('7', expires_in_seconds=0)

def test_current_token_is_valid(issued, active):
    """The active token scanned within its window validates."""
    payload = QRService.parse_payload(issued.payload)
    result = QRService.validate_session_token(payload, active, '7', now=NOW + timedelta(seconds=60))

    assert result.is_valid is True
    assert result.reason is None

def test_expired_token_is_invalid(issued, active):
    """Scanning after the window fails."""
    payload = QRService.parse_payload(issued.payload)
    result = QRService.validate_session_token(payload, active, '7', now=NOW + timedelta(seconds=121))

    assert result.is_valid is False
    assert result.reason == 'QR code has expired'

def test_token_for_another_class_is_invalid(issued, active):
    """A token scanned against a different class never validates."""
    payload = QRService.parse_payload(issued.payload)
    result = QRService.validate_session_token(payload, active, '8', now=NOW)

    assert result.is_valid is False
    assert 'another class' in result.reason

def test_superseded_token_is_invalid(issued):
    """Issuing a new token invalidates the previous one."""
    store = InMemoryCourseStore()
    store.add_class('7')
    store.activate_session(issued)
    store.activate_session(QRService.issue_session_token('7', now=NOW + timedelta(seconds=5)))

    payload = QRService.parse_payload(issued.payload)
    result = QRService.validate_session_token(
        payload, store.get_active_session('7'), '7', now=NOW + timedelta(seconds=10)
    )

    assert result.is_valid is False
    assert result.reason == 'QR code has been superseded'

def test_issued_at_must_match_exactly(issued, active):
    """Same token with a different issuance time is not the active token."""
    payload = QRService.parse_payload({
        'class_id': '7',
        'token': issued.token,
        'issued_at': (NOW - timedelta(seconds=1)).isoformat()
    })
    result = QRService.validate_session_token(payload, active, '7', now=NOW)
    assert result.is_valid is False

def test_timezone_aware_issued_at_is_normalized(issued, active):
    """An ISO timestamp with a UTC offset compares as naive UTC."""
    aware = NOW.replace(tzinfo=timezone.utc).astimezone(timezone(timedelta(hours=3)))
    payload = QRService.parse_payload({
        'class_id': '7',
        'token': issued.token,
        'issued_at': aware.isoformat()
    })

    assert payload.issued_at == NOW
    assert QRService.validate_session_token(payload, active, '7', now=NOW).is_valid is True

def test_no_active_session_is_not_configured(issued):
    """A class without a token is an inapplicable check, not a failed scan."""
    payload = QRService.parse_payload(issued.payload)

    with pytest.raises(SessionNotConfigured) as exc_info:
        QRService.validate_session_token(payload, None, '7')
    assert isinstance(exc_info.value, NotConfigured)

@pytest.mark.parametrize('raw', [
    'not json',
    '[1, 2]',
    {'class_id': '7', 'token': 'abc'},
    {'class_id': '7', 'token': 'abc', 'issued_at': 'yesterday'},
])
def test_malformed_payloads(raw):
    """Unparseable or incomplete payloads are invalid input."""
    with pytest.raises(InvalidInput):
        QRService.parse_payload(raw)
