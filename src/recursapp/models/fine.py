"""Fine metadata and deadline models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class FineMetadata(BaseModel):
    legislation: list[str] = []
    organism: str = ""
    organism_address: str = ""
    fine_type: str = ""
    fine_amount: str = ""
    deadline: str = ""
    raw_summary: str = ""
    notice_date: str = ""


class ProcedureType(str, Enum):
    ALLEGATION = "allegation"
    REPOSITION = "reposition"


class Urgency(str, Enum):
    OK = "ok"
    WARNING = "warning"
    URGENT = "urgent"
    EXPIRED = "expired"


class DeadlineInfo(BaseModel):
    notice_date: str
    notice_date_iso: str
    due_date: str
    due_date_iso: str
    days_remaining: int
    procedure_type: ProcedureType
    legal_basis: str
    urgency: Urgency
