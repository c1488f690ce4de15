"""
Shared fixtures: a file-backed SQLite store, a fake AI client and a seeded encounter.
"""
import pytest
from sqlalchemy import create_engine

from ed_workstation.core.db import create_tables
from ed_workstation.services.ai_function import AiFunctionError, parse_analysis
from ed_workstation.services.workstation import Workstation
from ed_workstation.store.client import Store, StoreError

AI_BODY = {
    "diagnoses": [
        {"name": "Acute coronary syndrome", "prob": 0.6, "reason": "Chest pain, raised troponin"},
        {"name": "Pneumonia", "prob": 0.25, "reason": "Leukocytosis, raised CRP"},
    ],
    "recommendations": [
        {"code": "TROP", "name": "Repeat troponin in 3h", "reason": "Trend"},
        {"code": "CXR", "name": "Chest X-ray", "reason": "Rule out consolidation"},
    ],
}

class RecordingStore(Store):
    """Store that records every call as (operation, table)."""

    def __init__(self, engine):
        super().__init__(engine)
        self.calls = []

    def select(self, table, *args, **kwargs):
        self.calls.append(("select", table))
        return super().select(table, *args, **kwargs)

    def insert(self, table, rows):
        self.calls.append(("insert", table))
        return super().insert(table, rows)

    def update(self, table, row_id, values):
        self.calls.append(("update", table))
        return super().update(table, row_id, values)

class FakeAiClient:
    provider = "gemini"
    model = "gemini-test"

    def __init__(self, body=None, error=None):
        self.body = AI_BODY if body is None else body
        self.error = error
        self.contexts = []

    def analyze(self, context):
        self.contexts.append(context)
        if self.error:
            raise AiFunctionError(self.error)
        return parse_analysis(self.body), self.body

@pytest.fixture
def engine(tmp_path):
    eng = create_engine(
        f"sqlite:///{tmp_path / 'workstation.db'}",
        connect_args={"check_same_thread": False},
    )
    create_tables(eng)
    yield eng
    eng.dispose()

@pytest.fixture
def store(engine):
    return RecordingStore(engine)

@pytest.fixture
def fake_ai():
    return FakeAiClient()

@pytest.fixture
def fail_inserts_into(store, monkeypatch):
    """Make store.insert raise StoreError for the given tables only."""
    def _fail(*tables):
        original = store.insert

        def insert(table, rows):
            if table in tables:
                store.calls.append(("insert", table))
                raise StoreError("insert", table, "simulated outage")
            return original(table, rows)

        monkeypatch.setattr(store, "insert", insert)
    return _fail

@pytest.fixture
def seeded(store):
    patient = store.insert("patients", {"name": "Jane Doe", "mrn": "MRN-1", "sex": "F"})[0]
    encounter = store.insert("encounters", {"patient_id": patient["id"], "location": "ED-3"})[0]
    store.insert("notes", {"encounter_id": encounter["id"], "note_type": "Admission Note",
                           "content": "Chest pain since this morning"})
    store.insert("results", {"encounter_id": encounter["id"], "category": "lab", "name": "WBC",
                             "value": "15.2", "flag": "high"})
    return {"patient": patient, "encounter": encounter}

@pytest.fixture
def ws(store, fake_ai, seeded):
    """Workstation with the seeded patient and encounter selected."""
    station = Workstation(store, fake_ai)
    station.refresh_patients()
    station.select_patient(seeded["patient"]["id"])
    station.select_encounter(seeded["encounter"]["id"])
    store.calls.clear()
    return station
