from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z, utcnow


class AuditLog(db.Model):
    """
    Durable audit record.

    Written only by the queue drain (services/audit_service.py), never
    inline with the mutation it describes. Append-only.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_business_created", "business_id", "created_at"),
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(36), nullable=True, unique=True)
    business_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True)
    outlet_id = db.Column(db.Integer, nullable=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(128), nullable=True)
    payload = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "business_id": self.business_id,
            "user_id": self.user_id,
            "outlet_id": self.outlet_id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "payload": self.payload,
            "created_at": to_utc_z(self.created_at),
        }
