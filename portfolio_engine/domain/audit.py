# portfolio_engine/domain/audit.py
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import AuditEvent

# bookkeeping columns that change on every write
_NOISE = frozenset({"updated_at", "version"})


def _dumps(v: Optional[dict[str, Any]]) -> Optional[str]:
    if v is None:
        return None
    return json.dumps(v, sort_keys=True, default=str)


def changed_fields(
    before: Optional[dict[str, Any]], after: Optional[dict[str, Any]]
) -> tuple[Optional[dict[str, Any]], Optional[dict[str, Any]]]:
    """Narrow a before/after pair to the keys whose value changed."""
    if before is None or after is None:
        return before, after
    keys = sorted(k for k in set(before) | set(after) if k not in _NOISE and before.get(k) != after.get(k))
    return {k: before.get(k) for k in keys}, {k: after.get(k) for k in keys}


def audit_write(
    db: Session,
    *,
    landlord_id: int,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Any,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    """
    Does NOT commit; the calling operation commits its state change and the
    audit row together. Only changed fields are stored when both sides are given.
    """
    before, after = changed_fields(before, after)
    row = AuditEvent(
        landlord_id=int(landlord_id),
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_dumps(before),
        after_json=_dumps(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    return row


def audit_trail(db: Session, *, landlord_id: int, entity_type: str, entity_id: Any) -> list[AuditEvent]:
    return list(
        db.scalars(
            select(AuditEvent)
            .where(
                AuditEvent.landlord_id == int(landlord_id),
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == str(entity_id),
            )
            .order_by(AuditEvent.id.asc())
        )
    )
