import logging
from typing import Any
from uuid import UUID

from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session

from appraisal.models.audit_event import AuditEvent
from appraisal.models.user import User

logger = logging.getLogger(__name__)


def log_event(
    *,
    db: Session,
    actor: User | None,
    action: str,
    entity_type: str,
    entity_id: UUID,
    metadata: dict[str, Any] | None = None,
) -> AuditEvent:
    """
    Stage an audit row in the caller's transaction, so it is committed or
    rolled back together with the change it describes. Metadata values such
    as UUIDs and dates are stored in their JSON form.
    """
    event = AuditEvent(
        actor_user_id=actor.id if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        event_metadata=jsonable_encoder(metadata) if metadata is not None else None,
    )
    db.add(event)
    logger.debug("%s %s %s by %s", action, entity_type, entity_id, actor.email if actor else "system")
    return event
