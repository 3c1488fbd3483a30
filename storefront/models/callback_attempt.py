from enum import Enum

from storefront.extensions import db
from storefront.utils import utcnow


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CallbackAttempt(db.Model):
    """
    Re-entry guard for gateway callbacks, keyed by browser session.

    The row is committed before the gateway is contacted, so a remount,
    reload or second tab in the same session sees it and backs off.
    """

    __tablename__ = "callback_attempts"

    id = db.Column(db.Integer, primary_key=True)
    session_key = db.Column(db.String(64), nullable=False)
    flow = db.Column(db.String(20), nullable=False)
    transaction_id = db.Column(db.String(120), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=AttemptStatus.IN_PROGRESS.value)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("session_key", "flow", "transaction_id", name="uq_callback_attempt"),
    )
