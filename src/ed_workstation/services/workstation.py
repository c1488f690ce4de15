"""
Workstation service - owns the UI state tree and runs every user action
against the store: mutate, audit, then reload what the screen shows.
"""
from __future__ import annotations
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from ed_workstation.models.tables import utcnow
from ed_workstation.services.ai_function import AiFunctionClient, AiFunctionError
from ed_workstation.services.audit import ACTOR_AI, ACTOR_HUMAN, log_event
from ed_workstation.store.client import Store, StoreError
from ed_workstation.transforms.ai_response import SUGGESTION_ORDER, ai_ddx_rows, suggestion_rows
from ed_workstation.transforms.context import build_ai_context
from ed_workstation.transforms.orders import ORDER_STATUS_SENT, parse_order_text

log = logging.getLogger(__name__)

DEFAULT_NOTE_TYPE = "Progress Note"

# encounter panels and the column each is ordered by (newest first)
ENCOUNTER_TABLES = {
    "notes": ("notes", "occurred_at"),
    "orders": ("orders", "occurred_at"),
    "results": ("results", "occurred_at"),
    "ddx": ("ddx_entries", "occurred_at"),
}

@dataclass
class WorkstationState:
    patients: list[dict] = field(default_factory=list)
    selected_patient_id: object = None
    encounters: list[dict] = field(default_factory=list)
    selected_encounter_id: object = None
    notes: list[dict] = field(default_factory=list)
    orders: list[dict] = field(default_factory=list)
    results: list[dict] = field(default_factory=list)
    ddx: list[dict] = field(default_factory=list)
    latest_ai_run: dict | None = None
    ai_suggestions: list[dict] = field(default_factory=list)
    selected_suggestion_ids: set[str] = field(default_factory=set)
    editing_note: dict | None = None
    alerts: list[str] = field(default_factory=list)

    @property
    def selected_patient(self) -> dict | None:
        return next((p for p in self.patients if str(p["id"]) == str(self.selected_patient_id)), None)

    @property
    def selected_encounter(self) -> dict | None:
        return next((e for e in self.encounters if str(e["id"]) == str(self.selected_encounter_id)), None)

    def clear_encounter_views(self) -> None:
        self.notes, self.orders, self.results, self.ddx = [], [], [], []
        self.latest_ai_run = None
        self.ai_suggestions = []
        self.selected_suggestion_ids = set()
        self.editing_note = None

class Workstation:
    def __init__(self, store: Store, ai_client: AiFunctionClient | None = None, max_workers: int = 4):
        self.store = store
        self.ai_client = ai_client or AiFunctionClient()
        self.max_workers = max_workers
        self.state = WorkstationState()

    # -- alerts -------------------------------------------------------------

    def _fail(self, action: str, exc: Exception) -> None:
        log.error("%s failed: %s", action, exc)
        self.state.alerts.append(f"{action} failed: {exc}")

    def pop_alerts(self) -> list[str]:
        alerts, self.state.alerts = self.state.alerts, []
        return alerts

    def _require_encounter(self, action: str):
        if self.state.selected_encounter_id is None:
            self.state.alerts.append(f"{action}: select an encounter first")
            return None
        return self.state.selected_encounter_id

    # -- patients & encounters ----------------------------------------------

    def refresh_patients(self) -> bool:
        try:
            self.state.patients = self.store.select("patients")
        except StoreError as e:
            self._fail("Loading patients", e)
            return False
        return True

    def create_patient(self, name: str, mrn: str | None = None, sex: str | None = None, dob=None) -> dict | None:
        name = (name or "").strip()
        if not name:
            self.state.alerts.append("Patient name is required")
            return None
        try:
            patient = self.store.insert("patients", {
                "name": name, "mrn": (mrn or "").strip() or None, "sex": sex or None, "dob": dob,
            })[0]
        except StoreError as e:
            self._fail("Creating patient", e)
            return None
        log.info("Created patient %s", patient["id"])
        self.refresh_patients()
        self.select_patient(patient["id"])
        return patient

    def select_patient(self, patient_id) -> None:
        s = self.state
        s.selected_patient_id = patient_id
        s.selected_encounter_id = None
        s.encounters = []
        s.clear_encounter_views()
        if patient_id is None:
            return
        self.load_encounters()

    def load_encounters(self) -> bool:
        try:
            self.state.encounters = self.store.select(
                "encounters", {"patient_id": self.state.selected_patient_id}
            )
        except StoreError as e:
            self._fail("Loading encounters", e)
            return False
        return True

    def create_encounter(self, location: str | None = None, arrival_at=None) -> dict | None:
        if self.state.selected_patient_id is None:
            self.state.alerts.append("New encounter: select a patient first")
            return None
        try:
            encounter = self.store.insert("encounters", {
                "patient_id": self.state.selected_patient_id,
                "location": (location or "").strip() or None,
                "arrival_at": arrival_at or utcnow(),
            })[0]
        except StoreError as e:
            self._fail("Creating encounter", e)
            return None
        log_event(self.store, encounter["id"], ACTOR_HUMAN, "encounter_created",
                  "encounters", encounter["id"], summary=encounter["location"])
        self.load_encounters()
        self.select_encounter(encounter["id"])
        return encounter

    def select_encounter(self, encounter_id) -> None:
        s = self.state
        s.selected_encounter_id = encounter_id
        s.clear_encounter_views()
        if encounter_id is None:
            return
        if self.load_encounter_data():
            self.load_latest_ai()

    # -- loading ------------------------------------------------------------

    def load_encounter_data(self) -> bool:
        """Fetch every encounter panel in parallel; state is only replaced if all succeed."""
        encounter_id = self.state.selected_encounter_id
        if encounter_id is None:
            return False
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = {
                attr: pool.submit(self.store.select, table, {"encounter_id": encounter_id}, order_by)
                for attr, (table, order_by) in ENCOUNTER_TABLES.items()
            }
            try:
                loaded = {attr: f.result() for attr, f in futures.items()}
            except StoreError as e:
                self._fail("Loading encounter", e)
                return False
        for attr, rows in loaded.items():
            setattr(self.state, attr, rows)
        return True

    def load_latest_ai(self) -> bool:
        encounter_id = self.state.selected_encounter_id
        if encounter_id is None:
            return False
        try:
            runs = self.store.select("ai_runs", {"encounter_id": encounter_id}, limit=1)
            run = runs[0] if runs else None
            suggestions = (
                self.store.select("ai_suggestions", {"ai_run_id": run["id"]}, desc=False)
                if run else []
            )
        except StoreError as e:
            self._fail("Loading AI suggestions", e)
            return False
        self.state.latest_ai_run = run
        self.state.ai_suggestions = suggestions
        return True

    # -- notes --------------------------------------------------------------

    def open_note(self, note_id=None) -> None:
        if note_id is None:
            self.state.editing_note = {"id": None, "note_type": DEFAULT_NOTE_TYPE, "title": "", "content": ""}
            return
        note = next((n for n in self.state.notes if str(n["id"]) == str(note_id)), None)
        self.state.editing_note = dict(note) if note else None

    def close_note(self) -> None:
        self.state.editing_note = None

    def save_note(self, note_type: str, title: str | None, content: str, note_id=None) -> dict | None:
        encounter_id = self._require_encounter("Save note")
        if encounter_id is None:
            return None
        values = {
            "note_type": (note_type or "").strip() or DEFAULT_NOTE_TYPE,
            "title": (title or "").strip() or None,
            "content": content or "",
        }
        try:
            if note_id is None:
                note = self.store.insert("notes", {"encounter_id": encounter_id, **values})[0]
                event_type = "note_created"
            else:
                note = self.store.update("notes", note_id, values)
                event_type = "note_updated"
        except StoreError as e:
            self._fail("Saving note", e)
            return None
        log_event(self.store, encounter_id, ACTOR_HUMAN, event_type, "notes", note["id"],
                  summary=note["title"] or note["note_type"])
        self.close_note()
        self.load_encounter_data()
        return note

    # -- orders, results, ddx -----------------------------------------------

    def place_order(self, text: str) -> dict | None:
        parsed = parse_order_text(text)
        if parsed is None:
            return None
        encounter_id = self._require_encounter("Place order")
        if encounter_id is None:
            return None
        try:
            order = self.store.insert("orders", {
                "encounter_id": encounter_id,
                "status": ORDER_STATUS_SENT,
                "data": {"source": "manual", "text": text.strip()},
                **parsed,
            })[0]
        except StoreError as e:
            self._fail("Placing order", e)
            return None
        log_event(self.store, encounter_id, ACTOR_HUMAN, "order_created", "orders", order["id"],
                  summary=f"{order['code'] or ''} {order['name']}".strip(),
                  payload={"code": order["code"], "name": order["name"]})
        self.load_encounter_data()
        return order

    def add_result(self, category: str, name: str, value: str | None = None, unit: str | None = None,
                   flag: str | None = None, code: str | None = None) -> dict | None:
        encounter_id = self._require_encounter("Add result")
        if encounter_id is None:
            return None
        try:
            result = self.store.insert("results", {
                "encounter_id": encounter_id,
                "category": category,
                "code": code or None,
                "name": name,
                "value": value or None,
                "unit": unit or None,
                "flag": flag or None,
            })[0]
        except StoreError as e:
            self._fail("Adding result", e)
            return None
        log_event(self.store, encounter_id, ACTOR_HUMAN, "result_created", "results", result["id"],
                  summary=f"{name} {value or ''}".strip(),
                  payload={"category": category, "flag": result["flag"]})
        self.load_encounter_data()
        return result

    def add_ddx(self, name: str, prob: float | None = None, reason: str | None = None) -> dict | None:
        encounter_id = self._require_encounter("Add DDX")
        if encounter_id is None:
            return None
        try:
            entry = self.store.insert("ddx_entries", {
                "encounter_id": encounter_id,
                "source": "human",
                "name": name,
                "prob": prob,
                "reason": reason or None,
            })[0]
        except StoreError as e:
            self._fail("Adding DDX", e)
            return None
        log_event(self.store, encounter_id, ACTOR_HUMAN, "ddx_created", "ddx_entries", entry["id"],
                  summary=name)
        self.load_encounter_data()
        return entry

    # -- AI -----------------------------------------------------------------

    def run_ai(self) -> dict | None:
        """Analyze the on-screen encounter and persist run, suggestions and AI ddx."""
        encounter_id = self._require_encounter("AI analysis")
        if encounter_id is None:
            return None
        s = self.state
        context = build_ai_context(s.notes, s.orders, s.results, s.ddx, s.selected_patient)

        try:
            analysis, raw = self.ai_client.analyze(context)
        except AiFunctionError as e:
            self._fail("AI analysis", e)
            return None

        try:
            run = self.store.insert("ai_runs", {
                "encounter_id": encounter_id,
                "provider": self.ai_client.provider,
                "model": self.ai_client.model,
                "prompt": context,
                "response": raw,
            })[0]
            self.store.insert("ai_suggestions", suggestion_rows(analysis, encounter_id, run["id"]))
        except StoreError as e:
            self._fail("Saving AI results", e)
            return None

        # suggestions are already saved; the ai ddx copy is allowed to fail
        try:
            self.store.insert("ddx_entries", ai_ddx_rows(analysis, encounter_id, run["id"]))
        except StoreError as e:
            log.warning("AI ddx entries for run %s not saved: %s", run["id"], e)

        log_event(self.store, encounter_id, ACTOR_AI, "ai_run_completed", "ai_runs", run["id"],
                  summary=f"{len(analysis.diagnoses)} diagnoses, {len(analysis.recommendations)} recommendations",
                  payload={"provider": run["provider"], "model": run["model"]})

        self.load_encounter_data()
        self.load_latest_ai()
        return run

    def toggle_suggestion(self, suggestion_id) -> None:
        key = str(suggestion_id)
        selected = self.state.selected_suggestion_ids
        if key in selected:
            selected.discard(key)
        else:
            selected.add(key)

    def apply_ai_orders(self, suggestion_ids=None) -> list[dict]:
        """Turn selected order suggestions into sent orders linked back to their run."""
        s = self.state
        ids = {str(i) for i in (s.selected_suggestion_ids if suggestion_ids is None else suggestion_ids)}
        chosen = [
            sug for sug in s.ai_suggestions
            if sug["suggestion_type"] == SUGGESTION_ORDER and str(sug["id"]) in ids
        ]
        if not chosen:
            return []

        encounter_id = s.selected_encounter_id
        rows = [
            {
                "encounter_id": encounter_id,
                "code": sug["code"],
                "name": sug["name"],
                "status": ORDER_STATUS_SENT,
                "data": {
                    "source": "ai",
                    "ai_run_id": str(sug["ai_run_id"]),
                    "ai_suggestion_id": str(sug["id"]),
                    "reason": sug["reason"],
                },
            }
            for sug in chosen
        ]
        try:
            orders = self.store.insert("orders", rows)
        except StoreError as e:
            self._fail("Applying AI orders", e)
            return []

        for order, sug in zip(orders, chosen):
            log_event(self.store, encounter_id, ACTOR_HUMAN, "ai_order_applied", "orders", order["id"],
                      summary=f"{order['code'] or ''} {order['name']}".strip(),
                      payload={"ai_run_id": str(sug["ai_run_id"]), "ai_suggestion_id": str(sug["id"])})

        s.selected_suggestion_ids = set()
        self.load_encounter_data()
        return orders
