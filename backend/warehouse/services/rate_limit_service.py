"""
Rate Limiting Service

Fixed-window counters keyed by an opaque string (client IP, email, or
"login:<email>"). Used by the public check/increment/clear endpoints and by
the login route.

SEMANTICS:
- No record: allowed
- Window expired since last_request_at: counter reset to 0, allowed
- count >= max inside the window: denied, retry_after = ceil(remaining seconds)
- increment() is an upsert (count + 1, last_request_at = now)
"""

import math
from datetime import timedelta
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import RateLimitRecord
from ..validation import ValidationError, parse_int
from warehouse.time_utils import utcnow


# Login throttling: 5 attempts per 5 minutes per email
LOGIN_WINDOW_SECONDS = 300
LOGIN_MAX_ATTEMPTS = 5


@dataclass
class RateLimitDecision:
    allowed: bool
    retry_after: int | None = None

    def to_dict(self) -> dict:
        if self.allowed:
            return {"allowed": True}
        return {"allowed": False, "retryAfter": self.retry_after}


def _require_key(key) -> str:
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("key is required")
    return key.strip()


def parse_limits(window, max_requests) -> tuple[int, int]:
    """window (seconds) and max must both be positive integers."""
    errors = []
    parsed = []
    for label, raw in (("window", window), ("max", max_requests)):
        try:
            value = parse_int(raw, label)
        except ValidationError as e:
            errors.extend(e.errors)
            continue
        if value <= 0:
            errors.append(f"{label} must be a positive integer")
            continue
        parsed.append(value)
    if errors:
        raise ValidationError(errors)
    return parsed[0], parsed[1]


def check(key: str, window_seconds: int, max_requests: int) -> RateLimitDecision:
    key = _require_key(key)
    record = db.session.query(RateLimitRecord).filter_by(key=key).first()
    if record is None:
        return RateLimitDecision(allowed=True)

    now = utcnow()
    elapsed = (now - record.last_request_at).total_seconds()

    if elapsed > window_seconds:
        record.count = 0
        record.last_request_at = now
        db.session.commit()
        return RateLimitDecision(allowed=True)

    if record.count >= max_requests:
        retry_after = math.ceil(window_seconds - elapsed)
        return RateLimitDecision(allowed=False, retry_after=max(retry_after, 1))

    return RateLimitDecision(allowed=True)


def increment(key: str) -> int:
    """Upsert: count + 1 and last_request_at = now. Returns the new count."""
    key = _require_key(key)
    now = utcnow()

    updated = db.session.query(RateLimitRecord).filter_by(key=key).update(
        {
            RateLimitRecord.count: RateLimitRecord.count + 1,
            RateLimitRecord.last_request_at: now,
        },
        synchronize_session=False,
    )
    if not updated:
        db.session.add(RateLimitRecord(key=key, count=1, last_request_at=now))
        try:
            db.session.commit()
        except IntegrityError:
            # Another request inserted the same key first
            db.session.rollback()
            return increment(key)
        return 1

    db.session.commit()
    record = db.session.query(RateLimitRecord).filter_by(key=key).first()
    db.session.refresh(record)
    return record.count


def clear(key: str) -> bool:
    key = _require_key(key)
    deleted = db.session.query(RateLimitRecord).filter_by(key=key).delete(synchronize_session=False)
    db.session.commit()
    return bool(deleted)


def consume(key: str, window_seconds: int, max_requests: int) -> RateLimitDecision:
    """check() then increment() when allowed."""
    decision = check(key, window_seconds, max_requests)
    if decision.allowed:
        increment(key)
    return decision


def login_key(email: str) -> str:
    return f"login:{(email or '').strip().lower()}"


def cleanup_expired(older_than_seconds: int = 86400) -> int:
    """Delete records idle longer than any window in use (`flask maintenance cleanup-rate-limits`)."""
    cutoff = utcnow() - timedelta(seconds=older_than_seconds)
    deleted = db.session.query(RateLimitRecord).filter(
        RateLimitRecord.last_request_at < cutoff
    ).delete(synchronize_session=False)
    db.session.commit()
    return deleted
