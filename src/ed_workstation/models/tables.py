"""
ORM models for the workstation database.

Every clinical row hangs off an encounter; ai_suggestions additionally
point at the ai_run that produced them.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy import (
    JSON, CheckConstraint, Column, Date, DateTime, Float, ForeignKey, Index, Text, Uuid
)

JSONType = JSON().with_variant(JSONB(), "postgresql")

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class Base(DeclarativeBase):
    pass

def _id_column():
    return Column(Uuid, primary_key=True, default=uuid.uuid4)

def _encounter_fk():
    return Column(Uuid, ForeignKey("encounters.id", ondelete="CASCADE"), nullable=False, index=True)

class Patient(Base):
    __tablename__ = "patients"

    id         = _id_column()
    mrn        = Column(Text)
    name       = Column(Text, nullable=False)
    sex        = Column(Text)
    dob        = Column(Date)
    meta       = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

class Encounter(Base):
    __tablename__ = "encounters"

    id         = _id_column()
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True)
    arrival_at = Column(DateTime(timezone=True))
    location   = Column(Text)
    status     = Column(Text, nullable=False, default="active")
    meta       = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (Index("idx_notes_encounter_time", "encounter_id", "occurred_at"),)

    id           = _id_column()
    encounter_id = _encounter_fk()
    note_type    = Column(Text, nullable=False)
    title        = Column(Text)
    content      = Column(Text, nullable=False, default="")
    occurred_at  = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    data         = Column(JSONType, nullable=False, default=dict)
    created_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

class Order(Base):
    __tablename__ = "orders"

    id           = _id_column()
    encounter_id = _encounter_fk()
    code         = Column(Text)
    name         = Column(Text, nullable=False)
    status       = Column(Text, nullable=False, default="sent")
    occurred_at  = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    data         = Column(JSONType, nullable=False, default=dict)
    created_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

class Result(Base):
    __tablename__ = "results"

    id           = _id_column()
    encounter_id = _encounter_fk()
    category     = Column(Text, nullable=False)  # lab|imaging|vitals|ekg...
    code         = Column(Text)
    name         = Column(Text, nullable=False)
    value        = Column(Text)
    unit         = Column(Text)
    flag         = Column(Text)                  # high|low|normal|abnormal
    occurred_at  = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    data         = Column(JSONType, nullable=False, default=dict)
    created_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

class DdxEntry(Base):
    __tablename__ = "ddx_entries"
    __table_args__ = (CheckConstraint("source in ('human', 'ai')", name="ck_ddx_source"),)

    id           = _id_column()
    encounter_id = _encounter_fk()
    source       = Column(Text, nullable=False)
    name         = Column(Text, nullable=False)
    prob         = Column(Float)
    reason       = Column(Text)
    occurred_at  = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    data         = Column(JSONType, nullable=False, default=dict)
    created_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

class AiRun(Base):
    __tablename__ = "ai_runs"

    id           = _id_column()
    encounter_id = _encounter_fk()
    provider     = Column(Text, nullable=False)  # gemini|openai|anthropic...
    model        = Column(Text, nullable=False)
    status       = Column(Text, nullable=False, default="completed")
    prompt       = Column(JSONType, nullable=False, default=dict)
    response     = Column(JSONType, nullable=False, default=dict)
    created_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow)

class AiSuggestion(Base):
    __tablename__ = "ai_suggestions"

    id              = _id_column()
    encounter_id    = _encounter_fk()
    ai_run_id       = Column(Uuid, ForeignKey("ai_runs.id", ondelete="CASCADE"), nullable=False, index=True)
    suggestion_type = Column(Text, nullable=False)  # diagnosis|order
    code            = Column(Text)
    name            = Column(Text, nullable=False)
    prob            = Column(Float)
    reason          = Column(Text)
    raw             = Column(JSONType, nullable=False, default=dict)
    created_at      = Column(DateTime(timezone=True), nullable=False, default=utcnow)

class PatientEvent(Base):
    __tablename__ = "patient_events"
    __table_args__ = (
        CheckConstraint("actor_type in ('human', 'ai', 'system')", name="ck_event_actor_type"),
    )

    id           = _id_column()
    encounter_id = _encounter_fk()
    occurred_at  = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    actor_type   = Column(Text, nullable=False)
    event_type   = Column(Text, nullable=False)
    entity_table = Column(Text)
    entity_id    = Column(Uuid)
    summary      = Column(Text)
    payload      = Column(JSONType, nullable=False, default=dict)
    created_at   = Column(DateTime(timezone=True), nullable=False, default=utcnow)
