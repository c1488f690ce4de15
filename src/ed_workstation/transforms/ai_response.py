"""
Fan an AI analysis out into ai_suggestions and ddx_entries rows.
"""

from __future__ import annotations
from ed_workstation.services.ai_function import AiAnalysis

SUGGESTION_DIAGNOSIS = "diagnosis"
SUGGESTION_ORDER = "order"

def suggestion_rows(analysis: AiAnalysis, encounter_id, ai_run_id) -> list[dict]:
    rows = []
    for d in analysis.diagnoses:
        rows.append({
            "encounter_id": encounter_id,
            "ai_run_id": ai_run_id,
            "suggestion_type": SUGGESTION_DIAGNOSIS,
            "code": None,
            "name": d.name,
            "prob": d.prob,
            "reason": d.reason,
            "raw": d.model_dump(),
        })
    for r in analysis.recommendations:
        rows.append({
            "encounter_id": encounter_id,
            "ai_run_id": ai_run_id,
            "suggestion_type": SUGGESTION_ORDER,
            "code": r.code,
            "name": r.name,
            "prob": None,
            "reason": r.reason,
            "raw": r.model_dump(),
        })
    return rows

def ai_ddx_rows(analysis: AiAnalysis, encounter_id, ai_run_id) -> list[dict]:
    return [
        {
            "encounter_id": encounter_id,
            "source": "ai",
            "name": d.name,
            "prob": d.prob,
            "reason": d.reason,
            "data": {"ai_run_id": str(ai_run_id)},
        }
        for d in analysis.diagnoses
    ]
