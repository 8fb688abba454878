"""
Research Project Portal
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for proposal lifecycle events.
"""

import json
from datetime import datetime, timezone

from research_portal.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"proposal", "project"}

AUDIT_ACTIONS = {
    "proposal.create",
    "proposal.update",
    "proposal.delete",
    "proposal.submit",
    "proposal.bkmd_forward",
    "proposal.bkmd_return",
    "proposal.director_approve",
    "proposal.director_reject",
    "proposal.rc_approve",
    "proposal.rc_reject",
    "proposal.convert",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every proposal lifecycle event.

    One row per action. ``diff_json`` carries an old→new snapshot of the
    fields the action changed.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_actor", "actor_user_id"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(30), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    action = db.Column(db.String(60), nullable=False)
    actor_user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    actor_role = db.Column(db.String(20))
    diff_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "action": self.action,
            "actorUserId": self.actor_user_id,
            "actorRole": self.actor_role,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor_user_id: str | None = None,
    actor_role: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control; the row commits or rolls back with the change
    it describes.
    """
    log = AuditLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor_user_id=actor_user_id,
        actor_role=actor_role,
        diff_json=json.dumps(diff or {}, default=str, ensure_ascii=False),
    )
    db.session.add(log)
    db.session.flush()
    return log
