from __future__ import annotations

from ..extensions import db
from warehouse.time_utils import to_utc_z


class RateLimitRecord(db.Model):
    """
    One fixed-window counter per opaque key (IP address, email, "login:<email>").

    The window restarts whenever a check finds last_request_at older than the
    window length.
    """
    __tablename__ = "rate_limit_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(255), nullable=False, unique=True, index=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    last_request_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "count": self.count,
            "lastRequestAt": to_utc_z(self.last_request_at),
        }
