"""
Create the workstation tables, optionally with a demo patient.
Run with:
    python -m ed_workstation.scripts.init_db [--seed]
"""
import argparse
import logging
from ed_workstation.core.db import create_tables
from ed_workstation.core.logging_setup import setup_logging
from ed_workstation.services.audit import ACTOR_SYSTEM, log_event
from ed_workstation.store.client import Store

log = logging.getLogger(__name__)

def seed_demo(store: Store) -> dict:
    """Insert one demo patient with an active encounter, two notes and two labs."""
    patient = store.insert("patients", {"name": "Demo Patient", "mrn": "DEMO-0001", "sex": "M",
                                        "meta": {"source": "seed"}})[0]
    encounter = store.insert("encounters", {"patient_id": patient["id"], "location": "ED-01",
                                            "meta": {"source": "seed"}})[0]
    store.insert("notes", [
        {"encounter_id": encounter["id"], "note_type": "Admission Note", "content": "Chief complaint: chest pain..."},
        {"encounter_id": encounter["id"], "note_type": "Progress Note", "content": "Blood pressure stable..."},
    ])
    store.insert("results", [
        {"encounter_id": encounter["id"], "category": "lab", "name": "WBC", "value": "15.2", "unit": "10^3/uL", "flag": "high"},
        {"encounter_id": encounter["id"], "category": "lab", "name": "CRP", "value": "8.5", "unit": "mg/dL", "flag": "high"},
    ])
    log_event(store, encounter["id"], ACTOR_SYSTEM, "encounter_seeded", "encounters", encounter["id"])
    log.info("Seeded demo patient %s / encounter %s", patient["id"], encounter["id"])
    return {"patient": patient, "encounter": encounter}

def main(argv=None):
    parser = argparse.ArgumentParser(description="Create ED workstation tables")
    parser.add_argument("--seed", action="store_true", help="also insert a demo patient and encounter")
    args = parser.parse_args(argv)

    setup_logging()
    engine = create_tables()
    if args.seed:
        store = Store(engine)
        if store.select("patients", limit=1):
            log.info("Patients already present. Skipping seed.")
        else:
            seed_demo(store)

if __name__ == "__main__":
    main()
