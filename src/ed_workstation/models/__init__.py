from ed_workstation.models.tables import (
    AiRun, AiSuggestion, Base, DdxEntry, Encounter, Note, Order, Patient, PatientEvent, Result
)

# table name -> mapped class, used by the generic store client
MODELS = {
    m.__tablename__: m
    for m in (Patient, Encounter, Note, Order, Result, DdxEntry, AiRun, AiSuggestion, PatientEvent)
}

__all__ = [
    "AiRun", "AiSuggestion", "Base", "DdxEntry", "Encounter", "MODELS",
    "Note", "Order", "Patient", "PatientEvent", "Result",
]
