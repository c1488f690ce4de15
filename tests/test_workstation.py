"""
Workstation actions: state tree, encounter loading, notes/orders/results/ddx and the AI round trip
"""
from ed_workstation.services.workstation import Workstation
from conftest import AI_BODY, FakeAiClient

def _events(store, encounter_id):
    return [e["event_type"] for e in store.select("patient_events", {"encounter_id": encounter_id},
                                                    order_by="occurred_at", desc=False)]

# -- selection ----------------------------------------------------------------

def test_selecting_encounter_loads_all_panels(ws, seeded):
    s = ws.state
    assert s.selected_patient["name"] == "Jane Doe"
    assert s.selected_encounter["location"] == "ED-3"
    assert [n["note_type"] for n in s.notes] == ["Admission Note"]
    assert [r["name"] for r in s.results] == ["WBC"]
    assert s.orders == [] and s.ddx == []

def test_selecting_patient_clears_encounter_and_dependent_views(ws, store):
    other = store.insert("patients", {"name": "Max Mustermann"})[0]
    ws.open_note(None)
    ws.state.selected_suggestion_ids.add("x")

    ws.select_patient(other["id"])

    s = ws.state
    assert s.selected_encounter_id is None
    assert s.encounters == []
    assert s.notes == [] and s.orders == [] and s.results == [] and s.ddx == []
    assert s.latest_ai_run is None and s.ai_suggestions == []
    assert s.selected_suggestion_ids == set()
    assert s.editing_note is None

def test_encounter_panels_are_fetched_per_table(ws, store):
    assert ws.load_encounter_data()
    assert sorted(t for op, t in store.calls if op == "select") == ["ddx_entries", "notes", "orders", "results"]

def test_failed_encounter_load_keeps_previous_state(ws, store, monkeypatch):
    from ed_workstation.store.client import StoreError

    def broken(table, *args, **kwargs):
        raise StoreError("select", table, "connection reset")

    before = list(ws.state.notes)
    monkeypatch.setattr(store, "select", broken)
    assert not ws.load_encounter_data()
    assert ws.state.notes == before
    assert ws.pop_alerts() == ["Loading encounter failed: select on notes failed: connection reset"]

def test_create_patient_and_encounter(store, fake_ai):
    station = Workstation(store, fake_ai)
    patient = station.create_patient("  Ann Lee ", mrn="A-9", sex="F")
    assert patient["name"] == "Ann Lee"
    assert station.state.selected_patient_id == patient["id"]
    assert [p["name"] for p in station.state.patients] == ["Ann Lee"]

    encounter = station.create_encounter("Resus 1")
    assert station.state.selected_encounter_id == encounter["id"]
    assert encounter["arrival_at"] is not None
    assert _events(store, encounter["id"]) == ["encounter_created"]

def test_create_patient_requires_name(store, fake_ai):
    station = Workstation(store, fake_ai)
    assert station.create_patient("   ") is None
    assert station.pop_alerts() == ["Patient name is required"]
    assert store.select("patients") == []

def test_actions_need_an_encounter(store, fake_ai):
    station = Workstation(store, fake_ai)
    assert station.place_order("CBC") is None
    assert station.run_ai() is None
    assert len(station.pop_alerts()) == 2
    assert fake_ai.contexts == []

# -- notes --------------------------------------------------------------------

def test_note_create_then_edit(ws, store, seeded):
    enc_id = seeded["encounter"]["id"]
    ws.open_note(None)
    assert ws.state.editing_note["id"] is None

    note = ws.save_note("Progress Note", "Re-eval", "Pain 3/10 after analgesia")
    assert ws.state.editing_note is None
    assert ws.state.notes[0]["id"] == note["id"]

    ws.open_note(note["id"])
    assert ws.state.editing_note["content"] == "Pain 3/10 after analgesia"
    edited = ws.save_note("Progress Note", "Re-eval", "Pain resolved", note_id=note["id"])

    assert edited["id"] == note["id"]
    assert [n["content"] for n in ws.state.notes if n["id"] == note["id"]] == ["Pain resolved"]
    assert _events(store, enc_id) == ["note_created", "note_updated"]

def test_dismissed_note_editor_stays_closed(ws, store, seeded):
    ws.open_note(ws.state.notes[0]["id"])
    draft = ws.state.editing_note
    ws.close_note()

    assert ws.state.editing_note is None
    ws.select_encounter(seeded["encounter"]["id"])
    assert ws.state.editing_note is None
    assert draft["note_type"] == "Admission Note"
    assert ("update", "notes") not in store.calls

def test_failed_note_save_keeps_editor_open(ws, fail_inserts_into):
    ws.open_note(None)
    fail_inserts_into("notes")

    assert ws.save_note("Progress Note", None, "Reassessed") is None
    assert ws.state.editing_note is not None
    assert ws.pop_alerts()[0].startswith("Saving note failed")

# -- orders, results, ddx -----------------------------------------------------

def test_place_order_from_free_text(ws, store, seeded):
    order = ws.place_order("IV001 N/S 500ml")
    assert (order["code"], order["name"], order["status"]) == ("IV001", "N/S 500ml", "sent")
    assert order["data"]["source"] == "manual"
    assert [o["id"] for o in ws.state.orders] == [order["id"]]
    assert _events(store, seeded["encounter"]["id"]) == ["order_created"]

def test_blank_order_text_does_nothing(ws, store):
    assert ws.place_order("   ") is None
    assert store.calls == []
    assert ws.pop_alerts() == []

def test_store_failure_alerts_and_aborts(ws, store, fail_inserts_into):
    fail_inserts_into("orders")
    assert ws.place_order("CBC") is None
    alerts = ws.pop_alerts()
    assert len(alerts) == 1 and alerts[0].startswith("Placing order failed")
    assert ("insert", "patient_events") not in store.calls

def test_add_result_and_human_ddx(ws, store, seeded):
    ws.add_result("lab", "CRP", "8.5", "mg/dL", "high")
    ws.add_ddx("Pneumonia", 0.3, "Fever and cough")

    assert [r["name"] for r in ws.state.results][0] == "CRP"
    assert [(d["name"], d["source"]) for d in ws.state.ddx] == [("Pneumonia", "human")]
    assert _events(store, seeded["encounter"]["id"]) == ["result_created", "ddx_created"]

def test_result_without_name_is_rejected_by_store(ws):
    assert ws.add_result("lab", None) is None
    assert ws.pop_alerts()[0].startswith("Adding result failed")

# -- AI round trip ------------------------------------------------------------

def test_ai_run_persists_run_suggestions_and_ddx(ws, store, fake_ai, seeded):
    enc_id = seeded["encounter"]["id"]

    run = ws.run_ai()

    context = fake_ai.contexts[0]
    assert [n["content"] for n in context["notes"]] == ["Chest pain since this morning"]
    assert context["results"][0]["name"] == "WBC"
    assert isinstance(context["notes"][0]["occurred_at"], str)

    assert (run["provider"], run["model"]) == ("gemini", "gemini-test")
    assert run["prompt"] == context
    assert run["response"] == AI_BODY

    s = ws.state
    assert s.latest_ai_run["id"] == run["id"]
    assert sorted((x["suggestion_type"], x["name"]) for x in s.ai_suggestions) == [
        ("diagnosis", "Acute coronary syndrome"),
        ("diagnosis", "Pneumonia"),
        ("order", "Chest X-ray"),
        ("order", "Repeat troponin in 3h"),
    ]
    assert {x["ai_run_id"] for x in s.ai_suggestions} == {run["id"]}
    assert sorted(d["name"] for d in s.ddx if d["source"] == "ai") == ["Acute coronary syndrome", "Pneumonia"]
    assert all(d["data"]["ai_run_id"] == str(run["id"]) for d in s.ddx)
    assert _events(store, enc_id) == ["ai_run_completed"]

def test_failed_ai_call_leaves_state_and_store_untouched(ws, store):
    ws.ai_client = FakeAiClient(error="AI function returned 429: quota")
    before = (list(ws.state.notes), list(ws.state.orders), list(ws.state.results), list(ws.state.ddx))

    assert ws.run_ai() is None

    assert (ws.state.notes, ws.state.orders, ws.state.results, ws.state.ddx) == before
    assert [op for op, _ in store.calls if op == "insert"] == []
    assert store.select("ai_runs") == []
    assert ws.pop_alerts() == ["AI analysis failed: AI function returned 429: quota"]

def test_ddx_insert_failure_is_tolerated(ws, store, fail_inserts_into):
    fail_inserts_into("ddx_entries")

    run = ws.run_ai()

    assert run is not None
    assert ws.pop_alerts() == []
    assert len(ws.state.ai_suggestions) == 4
    assert ws.state.ddx == []

def test_suggestion_insert_failure_aborts(ws, store, fail_inserts_into):
    fail_inserts_into("ai_suggestions")

    assert ws.run_ai() is None

    assert ws.pop_alerts()[0].startswith("Saving AI results failed")
    assert ("insert", "ddx_entries") not in store.calls
    assert ws.state.latest_ai_run is None

def test_apply_selected_ai_orders(ws, store, seeded):
    run = ws.run_ai()
    by_name = {x["name"]: x for x in ws.state.ai_suggestions}
    ws.toggle_suggestion(by_name["Chest X-ray"]["id"])
    ws.toggle_suggestion(by_name["Pneumonia"]["id"])  # diagnosis, ignored
    store.calls.clear()

    orders = ws.apply_ai_orders()

    assert [(o["code"], o["name"], o["status"]) for o in orders] == [("CXR", "Chest X-ray", "sent")]
    assert orders[0]["data"] == {
        "source": "ai",
        "ai_run_id": str(run["id"]),
        "ai_suggestion_id": str(by_name["Chest X-ray"]["id"]),
        "reason": "Rule out consolidation",
    }
    assert ws.state.selected_suggestion_ids == set()
    assert [o["id"] for o in ws.state.orders] == [orders[0]["id"]]
    assert _events(store, seeded["encounter"]["id"])[-1] == "ai_order_applied"

def test_failed_ai_order_apply_keeps_selection(ws, store, seeded, fail_inserts_into):
    ws.run_ai()
    xray = next(x for x in ws.state.ai_suggestions if x["name"] == "Chest X-ray")
    ws.toggle_suggestion(xray["id"])
    fail_inserts_into("orders")

    assert ws.apply_ai_orders() == []

    alerts = ws.pop_alerts()
    assert len(alerts) == 1 and alerts[0].startswith("Applying AI orders failed")
    assert ws.state.selected_suggestion_ids == {str(xray["id"])}
    assert ws.state.orders == []
    assert "ai_order_applied" not in _events(store, seeded["encounter"]["id"])

def test_toggle_suggestion_twice_deselects(ws):
    ws.toggle_suggestion("abc")
    ws.toggle_suggestion("abc")
    assert ws.state.selected_suggestion_ids == set()

def test_applying_no_order_suggestions_is_a_noop(ws, store):
    ws.run_ai()
    diagnosis_ids = [x["id"] for x in ws.state.ai_suggestions if x["suggestion_type"] == "diagnosis"]
    store.calls.clear()

    assert ws.apply_ai_orders([]) == []
    assert ws.apply_ai_orders(diagnosis_ids) == []
    assert store.calls == []

def test_latest_ai_state_survives_reselecting_encounter(ws, seeded):
    run = ws.run_ai()
    ws.select_encounter(None)
    assert ws.state.latest_ai_run is None

    ws.select_encounter(seeded["encounter"]["id"])
    assert ws.state.latest_ai_run["id"] == run["id"]
    assert len(ws.state.ai_suggestions) == 4
