"""
Best-effort patient_events audit trail.
"""
import logging
from ed_workstation.store.client import Store, StoreError

log = logging.getLogger(__name__)

ACTOR_HUMAN = "human"
ACTOR_AI = "ai"
ACTOR_SYSTEM = "system"

def log_event(
    store: Store,
    encounter_id,
    actor_type: str,
    event_type: str,
    entity_table: str | None = None,
    entity_id=None,
    summary: str | None = None,
    payload: dict | None = None,
) -> dict | None:
    """Append a patient event. Never raises.

    The trail is advisory: it is written after the primary row and a failure
    here leaves that row in place.
    """
    try:
        rows = store.insert("patient_events", {
            "encounter_id": encounter_id,
            "actor_type": actor_type,
            "event_type": event_type,
            "entity_table": entity_table,
            "entity_id": entity_id,
            "summary": summary,
            "payload": payload or {},
        })
    except StoreError as e:
        log.warning("Audit event %s for encounter %s not recorded: %s", event_type, encounter_id, e)
        return None
    return rows[0]
