"""
Print the audit trail (patient_events) of one encounter, oldest first.
Run: python -m ed_workstation.scripts.timeline <encounter_id>
"""
import sys
from ed_workstation.core.db import get_engine
from ed_workstation.store.client import Store, StoreError

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: python -m ed_workstation.scripts.timeline <encounter_id>")
        return 2

    try:
        store = Store(get_engine())
        events = store.select("patient_events", {"encounter_id": argv[0]}, order_by="occurred_at", desc=False)
    except (StoreError, ValueError) as e:
        print("Timeline: FAILED")
        print(f"Error: {e}")
        return 1

    print(f"Encounter {argv[0]} - {len(events)} events\n")
    for ev in events:
        ref = f" {ev['entity_table']}:{ev['entity_id']}" if ev["entity_table"] else ""
        print(f"   {ev['occurred_at']:%Y-%m-%d %H:%M:%S}  [{ev['actor_type']:<6}] {ev['event_type']}{ref}")
        if ev["summary"]:
            print(f"      {ev['summary']}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
