"""Appeal deadline and urgency from the fine's notification date.

The procedure rules (keywords, periods, legal bases) come from the
``deadlines`` config section; the defaults follow Spanish traffic law.
"""

from __future__ import annotations

import calendar
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional, Union

from ..models.fine import DeadlineInfo, FineMetadata, ProcedureType, Urgency

SPANISH_MONTHS = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

_NOTICE_LABEL_RE = re.compile(
    r"(?:fecha\s+de\s+notificaci[oó]n|notification\s+date)\s*:[ \t]*([^\n\r]*)",
    re.IGNORECASE,
)
_NOT_INDICATED_RE = re.compile(r"^\s*(no\s+indicad[oa]|not\s+indicated|n/?a|-+)\s*\.?\s*$", re.IGNORECASE)

_NUMERIC_RE = re.compile(r"\b(\d{1,2})[/-](\d{1,2})[/-](\d{4})\b")
_LONG_FORM_RE = re.compile(r"\b(\d{1,2})\s+de\s+([a-záéíóú]+)\s+(?:de|del)\s+(\d{4})\b", re.IGNORECASE)
_ISO_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")


@dataclass
class DeadlineRules:
    allegation_keywords: list[str] = field(default_factory=lambda: [
        "alegaciones",
        "incoación",
        "iniciación del procedimiento sancionador",
        "20 días naturales",
        "veinte días naturales",
    ])
    allegation_days: int = 20
    allegation_legal_basis: str = "Art. 95.1 RDL 6/2015 (Ley sobre Tráfico y Seguridad Vial)"
    reposition_months: int = 1
    reposition_legal_basis: str = "Arts. 123 y 124 Ley 39/2015 (recurso potestativo de reposición)"

    @classmethod
    def from_config(cls, config: dict) -> "DeadlineRules":
        section = config.get("deadlines", {}) or {}
        known = {k: v for k, v in section.items() if k in cls.__dataclass_fields__}
        return cls(**known)


def classify_urgency(days_remaining: int) -> Urgency:
    if days_remaining < 0:
        return Urgency.EXPIRED
    if days_remaining <= 3:
        return Urgency.URGENT
    if days_remaining <= 7:
        return Urgency.WARNING
    return Urgency.OK


def find_notice_date_value(text: str) -> Optional[str]:
    """Value after the notification-date label, or None if absent/not indicated."""
    match = _NOTICE_LABEL_RE.search(text or "")
    if not match:
        return None
    value = match.group(1).strip()
    if not value or _NOT_INDICATED_RE.match(value):
        return None
    return value


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_notice_date(value: str) -> Optional[date]:
    """Parse DD/MM/YYYY, DD-MM-YYYY, "D de <mes> de YYYY" or ISO. First match wins."""
    if not value:
        return None

    match = _NUMERIC_RE.search(value)
    if match:
        day, month, year = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    match = _LONG_FORM_RE.search(value)
    if match:
        month = SPANISH_MONTHS.get(match.group(2).lower())
        if month:
            return _safe_date(int(match.group(3)), month, int(match.group(1)))

    match = _ISO_RE.search(value)
    if match:
        year, month, day = (int(g) for g in match.groups())
        return _safe_date(year, month, day)

    return None


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the last day of short months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _fold(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def classify_procedure(text: str, rules: DeadlineRules) -> ProcedureType:
    folded = _fold(text or "")
    if any(_fold(keyword) in folded for keyword in rules.allegation_keywords if keyword):
        return ProcedureType.ALLEGATION
    return ProcedureType.REPOSITION


def metadata_as_text(metadata: FineMetadata) -> str:
    lines = []
    if metadata.notice_date:
        lines.append(f"FECHA DE NOTIFICACIÓN: {metadata.notice_date}")
    for value in (metadata.deadline, metadata.fine_type, metadata.raw_summary):
        if value:
            lines.append(value)
    return "\n".join(lines)


def _display(d: date) -> str:
    return d.strftime("%d/%m/%Y")


def compute_deadline(
    source: Union[FineMetadata, str],
    today: Optional[date] = None,
    rules: Optional[DeadlineRules] = None,
) -> Optional[DeadlineInfo]:
    """Deadline info from metadata or raw text; None when the date is unknown."""
    text = metadata_as_text(source) if isinstance(source, FineMetadata) else (source or "")
    rules = rules or DeadlineRules()

    value = find_notice_date_value(text)
    if value is None:
        return None
    notice = parse_notice_date(value)
    if notice is None:
        return None

    procedure = classify_procedure(text, rules)
    if procedure == ProcedureType.ALLEGATION:
        due = notice + timedelta(days=rules.allegation_days)
        legal_basis = rules.allegation_legal_basis
    else:
        due = add_months(notice, rules.reposition_months)
        legal_basis = rules.reposition_legal_basis

    days_remaining = (due - (today or date.today())).days
    return DeadlineInfo(
        notice_date=_display(notice),
        notice_date_iso=notice.isoformat(),
        due_date=_display(due),
        due_date_iso=due.isoformat(),
        days_remaining=days_remaining,
        procedure_type=procedure,
        legal_basis=legal_basis,
        urgency=classify_urgency(days_remaining),
    )
