from datetime import datetime

from models.ledger import TimelineEvent
from utils.guards import new_id
from utils.state import StoreState


def record_event(
    state: StoreState,
    *,
    entity: str,
    entity_id: str,
    event: str,
    now: datetime,
    actor_id: str | None = None,
    metadata: dict | None = None,
) -> TimelineEvent:
    """
    Single source of truth for entity history (pickup status changes,
    order progression, verification, rewards).
    """
    doc = TimelineEvent(
        id=new_id(),
        entity=entity,
        entity_id=entity_id,
        event=event,
        actor_id=actor_id,
        metadata=metadata or {},
        created_at=now,
    )
    state.timeline.append(doc)
    return doc


def events_for(state: StoreState, entity: str, entity_id: str) -> list[TimelineEvent]:
    return [e for e in state.timeline if e.entity == entity and e.entity_id == entity_id]
