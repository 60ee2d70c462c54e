from __future__ import annotations

from ..extensions import db
from ..models.audit_log import AuditLog


def record(actor_user_id: int | None, action: str, entity_type: str, entity_id: int, **details) -> AuditLog:
    """Stage an audit row in the current transaction; the caller commits."""
    row = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=int(entity_id),
        details=details or None,
    )
    db.session.add(row)
    return row
