"""Tests for core/deadline.py."""

from __future__ import annotations

from datetime import date

import pytest

from recursapp.core.deadline import (
    DeadlineRules,
    add_months,
    classify_urgency,
    compute_deadline,
    find_notice_date_value,
    parse_notice_date,
)
from recursapp.models.fine import FineMetadata, ProcedureType, Urgency

REPOSITION_TEXT = (
    "Fecha de notificación: 10/01/2025\n"
    "Contra la presente resolución cabe recurso potestativo de reposición en el plazo de un mes."
)


class TestReposition:
    def test_due_date_and_warning(self):
        info = compute_deadline(REPOSITION_TEXT, today=date(2025, 2, 5))
        assert info.procedure_type == ProcedureType.REPOSITION
        assert info.notice_date == "10/01/2025"
        assert info.notice_date_iso == "2025-01-10"
        assert info.due_date == "10/02/2025"
        assert info.due_date_iso == "2025-02-10"
        assert info.days_remaining == 5
        assert info.urgency == Urgency.WARNING
        assert "Ley 39/2015" in info.legal_basis

    def test_expired(self):
        info = compute_deadline(REPOSITION_TEXT, today=date(2025, 3, 1))
        assert info.days_remaining == -19
        assert info.urgency == Urgency.EXPIRED

    def test_month_end_clamped(self):
        info = compute_deadline("Fecha de notificación: 31/01/2025", today=date(2025, 2, 1))
        assert info.due_date_iso == "2025-02-28"


class TestAllegation:
    def test_twenty_calendar_days(self):
        text = (
            "NOTIFICACIÓN DE DENUNCIA. Dispone de 20 días naturales para formular alegaciones.\n"
            "Fecha de notificación: 3 de marzo de 2025"
        )
        info = compute_deadline(text, today=date(2025, 3, 10))
        assert info.procedure_type == ProcedureType.ALLEGATION
        assert info.due_date_iso == "2025-03-23"
        assert info.days_remaining == 13
        assert info.urgency == Urgency.OK
        assert "RDL 6/2015" in info.legal_basis

    def test_keyword_without_accents(self):
        text = "Acuerdo de incoacion del procedimiento.\nFecha de notificacion: 2025-04-01"
        info = compute_deadline(text, today=date(2025, 4, 1))
        assert info.procedure_type == ProcedureType.ALLEGATION
        assert info.due_date_iso == "2025-04-21"

    def test_configured_rules(self):
        rules = DeadlineRules(allegation_keywords=["pliego"], allegation_days=10)
        info = compute_deadline("Pliego de cargos\nFecha de notificación: 01/06/2025", rules=rules,
                                today=date(2025, 6, 1))
        assert info.due_date_iso == "2025-06-11"

    def test_rules_from_config(self, config):
        config["deadlines"]["allegation_days"] = 15
        config["deadlines"]["unknown_key"] = "ignored"
        rules = DeadlineRules.from_config(config)
        assert rules.allegation_days == 15
        assert rules.reposition_months == 1


class TestNoticeDate:
    @pytest.mark.parametrize("text", [
        "Sin fecha alguna",
        "Fecha de notificación: No indicado",
        "FECHA DE NOTIFICACIÓN: no indicada",
        "Notification date: not indicated",
        "Fecha de notificación:",
        "Fecha de notificación: mañana",
        "Fecha de notificación: 31/02/2025",
        "",
    ])
    def test_unknown_date_gives_none(self, text):
        assert compute_deadline(text, today=date(2025, 1, 1)) is None

    def test_value_stops_at_line_end(self):
        assert find_notice_date_value("fecha de notificación:  5-3-2025\nOtra línea") == "5-3-2025"

    @pytest.mark.parametrize("value,expected", [
        ("10/01/2025", date(2025, 1, 10)),
        ("5-3-2025", date(2025, 3, 5)),
        ("7 de septiembre de 2024", date(2024, 9, 7)),
        ("1 de Diciembre del 2024", date(2024, 12, 1)),
        ("2025-01-10", date(2025, 1, 10)),
        ("el día 10/01/2025 a las 10:00", date(2025, 1, 10)),
    ])
    def test_formats(self, value, expected):
        assert parse_notice_date(value) == expected

    def test_english_label(self):
        info = compute_deadline("Notification date: 2025-01-10", today=date(2025, 1, 10))
        assert info.days_remaining == 31


class TestFromMetadata:
    def test_metadata_notice_date(self):
        metadata = FineMetadata(notice_date="10/01/2025", deadline="Un mes para recurso de reposición")
        info = compute_deadline(metadata, today=date(2025, 2, 5))
        assert info.due_date_iso == "2025-02-10"

    def test_metadata_deadline_mentions_allegations(self):
        metadata = FineMetadata(notice_date="10/01/2025", deadline="20 días naturales para alegaciones")
        info = compute_deadline(metadata, today=date(2025, 1, 10))
        assert info.procedure_type == ProcedureType.ALLEGATION

    def test_metadata_without_date(self):
        assert compute_deadline(FineMetadata(organism="DGT")) is None


class TestHelpers:
    @pytest.mark.parametrize("days,urgency", [
        (30, Urgency.OK),
        (8, Urgency.OK),
        (7, Urgency.WARNING),
        (4, Urgency.WARNING),
        (3, Urgency.URGENT),
        (0, Urgency.URGENT),
        (-1, Urgency.EXPIRED),
    ])
    def test_classify_urgency(self, days, urgency):
        assert classify_urgency(days) == urgency

    def test_add_months_across_year(self):
        assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
