from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from appraisal.core.rbac import require_hr
from appraisal.db.session import get_db
from appraisal.models.audit_event import AuditEvent
from appraisal.schemas.audit_event import AuditEventOut
from appraisal.schemas.pagination import paginated

router = APIRouter(prefix="/audit", tags=["audit"])


def to_out(e: AuditEvent) -> AuditEventOut:
    return AuditEventOut(
        id=str(e.id),
        actor_user_id=str(e.actor_user_id) if e.actor_user_id else None,
        action=e.action,
        entity_type=e.entity_type,
        entity_id=str(e.entity_id),
        metadata=e.event_metadata,
        created_at=e.created_at,
    )


@router.get("")
def list_audit_events(
    entity_type: str | None = Query(default=None, description="appraisal_template, appraisal_cycle, ..."),
    entity_id: UUID | None = Query(default=None),
    action: str | None = Query(default=None, description="e.g. CYCLE_ACTIVATED"),
    actor_user_id: UUID | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _=Depends(require_hr),
):
    """Newest first."""
    q = db.query(AuditEvent)

    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if action:
        q = q.filter(AuditEvent.action == action)
    if actor_user_id:
        q = q.filter(AuditEvent.actor_user_id == actor_user_id)

    total = q.count()
    rows = q.order_by(AuditEvent.created_at.desc()).offset(offset).limit(limit).all()
    items = [to_out(e) for e in rows]
    return paginated(items, total=total, limit=limit, offset=offset, include_pagination=include_pagination)
