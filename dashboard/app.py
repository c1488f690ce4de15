"""
ED Workstation
Single-encounter clinician view: notes, orders, results and D/D with AI assist
"""
import streamlit as st
import pandas as pd
import plotly.express as px
from sqlalchemy.exc import SQLAlchemyError

from ed_workstation.core.db import create_tables, get_engine
from ed_workstation.core.logging_setup import setup_logging
from ed_workstation.services.ai_function import AiFunctionClient
from ed_workstation.services.workstation import Workstation
from ed_workstation.store.client import Store

setup_logging()

st.set_page_config(page_title="ER Workstation", layout="wide")

# Database connection
@st.cache_resource
def get_store():
    try:
        return Store(create_tables(get_engine()))
    except (SQLAlchemyError, ValueError) as e:
        st.error(f"Cannot connect to database: {e}")
        return None

def get_workstation(store):
    if "workstation" not in st.session_state:
        ws = Workstation(store, AiFunctionClient())
        ws.refresh_patients()
        st.session_state.workstation = ws
    return st.session_state.workstation

def fmt_time(value):
    return value.strftime("%m/%d %H:%M") if value else ""

def label_patient(p):
    return f"{p['name']} ({p['mrn']})" if p["mrn"] else p["name"]

def label_encounter(e):
    return f"{fmt_time(e['arrival_at'] or e['created_at'])} · {e['location'] or 'ED'} · {e['status']}"

@st.dialog("Note", width="large")
def note_dialog(ws, note):
    with st.form("note_form"):
        note_type = st.text_input("Type", value=note["note_type"])
        title = st.text_input("Title", value=note.get("title") or "")
        content = st.text_area("Content", value=note["content"], height=360,
                               placeholder="Enter note content...")
        save, cancel = st.columns(2)
        saved = save.form_submit_button("Save", type="primary", use_container_width=True)
        cancelled = cancel.form_submit_button("Cancel", use_container_width=True)
    if saved:
        if ws.save_note(note_type, title, content, note_id=note["id"]) is None:
            # keep the draft so the dialog comes back with the alert
            ws.state.editing_note = {**note, "note_type": note_type, "title": title, "content": content}
        st.rerun()
    if cancelled:
        st.rerun()

store = get_store()
if not store:
    st.stop()
ws = get_workstation(store)
state = ws.state

# Sidebar: patient / encounter browser
with st.sidebar:
    st.header("Patients")
    if st.button("Refresh", use_container_width=True):
        ws.refresh_patients()

    patient_ids = [None] + [p["id"] for p in state.patients]
    by_id = {p["id"]: p for p in state.patients}
    picked = st.selectbox(
        "Patient",
        patient_ids,
        index=patient_ids.index(state.selected_patient_id) if state.selected_patient_id in patient_ids else 0,
        format_func=lambda i: "Select a patient" if i is None else label_patient(by_id[i]),
    )
    if picked != state.selected_patient_id:
        ws.select_patient(picked)

    with st.expander("New patient"):
        with st.form("patient_form", clear_on_submit=True):
            name = st.text_input("Name")
            mrn = st.text_input("MRN")
            sex = st.selectbox("Sex", ["", "M", "F", "U"])
            dob = st.date_input("Date of birth", value=None)
            if st.form_submit_button("Create patient"):
                ws.create_patient(name, mrn, sex, dob)
                st.rerun()

    if state.selected_patient_id is not None:
        st.header("Encounters")
        enc_ids = [None] + [e["id"] for e in state.encounters]
        enc_by_id = {e["id"]: e for e in state.encounters}
        picked_enc = st.selectbox(
            "Encounter",
            enc_ids,
            index=enc_ids.index(state.selected_encounter_id) if state.selected_encounter_id in enc_ids else 0,
            format_func=lambda i: "Select an encounter" if i is None else label_encounter(enc_by_id[i]),
        )
        if picked_enc != state.selected_encounter_id:
            ws.select_encounter(picked_enc)

        with st.form("encounter_form", clear_on_submit=True):
            location = st.text_input("Location", placeholder="ED bed / area")
            if st.form_submit_button("New encounter"):
                ws.create_encounter(location)
                st.rerun()

# Header
st.title("ER Workstation")
patient = state.selected_patient
encounter = state.selected_encounter
if patient and encounter:
    st.caption(f"{label_patient(patient)} · {patient['sex'] or '-'} · {label_encounter(encounter)}")

for alert in ws.pop_alerts():
    st.error(alert)

if encounter is None:
    st.info("Select a patient and an encounter from the sidebar to start.")
    st.stop()

top_left, top_right = st.columns(2)
bottom_left, bottom_right = st.columns(2)

# Notes (top left)
with top_left:
    with st.container(border=True):
        head, add = st.columns([4, 1])
        head.subheader("Notes")
        if add.button("+ New", use_container_width=True):
            ws.open_note(None)
        if not state.notes:
            st.caption("No notes yet")
        for note in state.notes:
            label = f"{fmt_time(note['occurred_at'])}  {note['note_type']}"
            if note["title"]:
                label += f" · {note['title']}"
            if st.button(label, key=f"note-{note['id']}", use_container_width=True):
                ws.open_note(note["id"])

# Orders (top right)
with top_right:
    with st.container(border=True):
        st.subheader("Orders")
        with st.form("order_form", clear_on_submit=True):
            text_col, btn_col = st.columns([4, 1])
            order_text = text_col.text_input("Order", placeholder="Order code (ex: CBC001)",
                                             label_visibility="collapsed")
            if btn_col.form_submit_button("Send", use_container_width=True):
                ws.place_order(order_text)
                st.rerun()
        if state.orders:
            orders_df = pd.DataFrame([
                {
                    "Time": fmt_time(o["occurred_at"]),
                    "Code": o["code"] or "",
                    "Order": o["name"],
                    "Status": o["status"],
                    "Source": (o["data"] or {}).get("source", ""),
                }
                for o in state.orders
            ])
            st.dataframe(orders_df, use_container_width=True, hide_index=True, height=220)
        else:
            st.caption("Waiting for input...")

# Results (bottom left)
FLAG_MARK = {"high": "H", "low": "L", "abnormal": "A", "normal": ""}

with bottom_left:
    with st.container(border=True):
        st.subheader("Results")
        if state.results:
            results_df = pd.DataFrame([
                {
                    "Time": fmt_time(r["occurred_at"]),
                    "Category": r["category"],
                    "Name": r["name"],
                    "Value": f"{r['value'] or ''} {r['unit'] or ''}".strip(),
                    "Flag": FLAG_MARK.get(r["flag"] or "", r["flag"] or ""),
                }
                for r in state.results
            ])
            st.dataframe(
                results_df.style.map(
                    lambda f: "color: #f87171; font-weight: bold" if f in ("H", "L", "A") else "",
                    subset=["Flag"],
                ),
                use_container_width=True, hide_index=True, height=220,
            )
        else:
            st.caption("No results yet")

        with st.expander("Record result"):
            with st.form("result_form", clear_on_submit=True):
                c1, c2 = st.columns(2)
                category = c1.selectbox("Category", ["lab", "imaging", "vitals", "ekg"])
                r_name = c2.text_input("Name")
                c3, c4, c5 = st.columns(3)
                r_value = c3.text_input("Value")
                r_unit = c4.text_input("Unit")
                r_flag = c5.selectbox("Flag", ["", "normal", "high", "low", "abnormal"])
                if st.form_submit_button("Save result"):
                    if not r_name.strip():
                        st.warning("Result name is required")
                    else:
                        ws.add_result(category, r_name.strip(), r_value, r_unit, r_flag)
                        st.rerun()

# D/D with AI (bottom right)
with bottom_right:
    with st.container(border=True):
        st.subheader("D/D (AI-assisted)")
        if st.button("AI clinical decision analysis", type="primary", use_container_width=True):
            with st.spinner("Analyzing notes and results..."):
                ws.run_ai()
            st.rerun()

        if state.ddx:
            ddx_df = pd.DataFrame([
                {"Diagnosis": d["name"], "Prob": d["prob"], "Source": d["source"], "Reason": d["reason"] or ""}
                for d in state.ddx
            ])
            st.dataframe(ddx_df, use_container_width=True, hide_index=True, height=180)

            ranked = ddx_df.dropna(subset=["Prob"])
            if not ranked.empty:
                fig = px.bar(
                    ranked.sort_values("Prob"),
                    x="Prob",
                    y="Diagnosis",
                    color="Source",
                    orientation="h",
                    color_discrete_map={"ai": "#636EFA", "human": "#00CC96"},
                )
                fig.update_layout(height=220, margin=dict(l=0, r=0, t=10, b=0))
                st.plotly_chart(fig, use_container_width=True)
        else:
            st.caption("Click the button above to let AI review notes and results")

        with st.expander("Add diagnosis"):
            with st.form("ddx_form", clear_on_submit=True):
                d_name = st.text_input("Diagnosis")
                d_prob = st.number_input("Probability", min_value=0.0, max_value=1.0, value=None, step=0.05)
                d_reason = st.text_input("Reason")
                if st.form_submit_button("Add"):
                    if not d_name.strip():
                        st.warning("Diagnosis name is required")
                    else:
                        ws.add_ddx(d_name.strip(), d_prob, d_reason)
                        st.rerun()

        run = state.latest_ai_run
        order_suggestions = [s for s in state.ai_suggestions if s["suggestion_type"] == "order"]
        if run:
            st.markdown(f"**AI recommendations** · {run['provider']}/{run['model']} · {fmt_time(run['created_at'])}")
        if order_suggestions:
            sug_by_id = {str(s["id"]): s for s in order_suggestions}
            widget_key = f"ai-orders-{run['id']}"
            picked_ids = st.multiselect(
                "Select orders to apply",
                list(sug_by_id),
                format_func=lambda i: f"{sug_by_id[i]['code'] or ''} {sug_by_id[i]['name']}".strip(),
                key=widget_key,
            )
            state.selected_suggestion_ids = set(picked_ids)
            for i in picked_ids:
                if sug_by_id[i]["reason"]:
                    st.caption(f"{sug_by_id[i]['name']}: {sug_by_id[i]['reason']}")
            if st.button("Apply selected orders", disabled=not picked_ids):
                ws.apply_ai_orders()
                del st.session_state[widget_key]
                st.rerun()

# The dialog closes on any rerun that does not call it again (Save, Cancel,
# the close button, Esc or a click outside), so the open request is consumed here.
if state.editing_note is not None:
    draft = state.editing_note
    ws.close_note()
    note_dialog(ws, draft)

st.markdown("---")
st.caption("ER Workstation - entries are recorded to the encounter timeline")
