"""Tests for core/instructions.py and core/prompts.py."""

from __future__ import annotations

from pathlib import Path

from recursapp.core.instructions import DEFAULT_DEADLINE, DEFAULT_ORGANISM, generate_instructions
from recursapp.core.prompts import (
    build_draft_system_prompt,
    build_enriched_prompt,
    build_merge_user_prompt,
    load_prompt,
)
from recursapp.models.appeal import SupportFile
from recursapp.models.document import SubmissionUrlProposal
from recursapp.models.fine import DeadlineInfo, FineMetadata, ProcedureType, Urgency


def _deadline(**overrides) -> DeadlineInfo:
    fields = dict(
        notice_date="10/01/2025",
        notice_date_iso="2025-01-10",
        due_date="10/02/2025",
        due_date_iso="2025-02-10",
        days_remaining=5,
        procedure_type=ProcedureType.REPOSITION,
        legal_basis="Arts. 123 y 124 Ley 39/2015",
        urgency=Urgency.WARNING,
    )
    fields.update(overrides)
    return DeadlineInfo(**fields)


class TestGenerateInstructions:
    def test_generic_guide_without_metadata(self):
        text = generate_instructions()
        assert text.startswith("INSTRUCCIONES PARA PRESENTAR EL RECURSO")
        assert DEFAULT_ORGANISM in text
        assert DEFAULT_DEADLINE in text
        assert "Ver documento de la multa" in text
        assert "NOTA LEGAL" in text

    def test_metadata_fields(self):
        metadata = FineMetadata(
            organism="Jefatura Provincial de Tráfico de Madrid",
            organism_address="C/ Arturo Soria 143",
            fine_amount="200 €",
            legislation=["Art. 48 RGC", "Art. 50 RGC"],
        )
        text = generate_instructions(metadata)
        assert "• Jefatura Provincial de Tráfico de Madrid" in text
        assert "Dirección: C/ Arturo Soria 143" in text
        assert "Importe de la sanción: 200 €" in text
        assert "   • Art. 48 RGC\n   • Art. 50 RGC" in text

    def test_computed_deadline(self):
        text = generate_instructions(FineMetadata(), _deadline())
        assert "Recurso de reposición (Arts. 123 y 124 Ley 39/2015)" in text
        assert "Fecha límite: 10/02/2025" in text
        assert "Días restantes: 5" in text
        assert "menos de una semana" in text
        assert DEFAULT_DEADLINE not in text

    def test_expired_deadline(self):
        text = generate_instructions(
            FineMetadata(), _deadline(days_remaining=-3, urgency=Urgency.EXPIRED)
        )
        assert "vencido" in text
        assert "Días restantes" not in text

    def test_submission_url(self):
        proposal = SubmissionUrlProposal(url="https://sede.dgt.gob.es", name="Sede DGT", confidence="alta")
        text = generate_instructions(FineMetadata(organism="DGT"), None, proposal)
        assert "Enlace propuesto (Sede DGT): https://sede.dgt.gob.es" in text


class TestPrompts:
    def test_bundled_prompts_load(self):
        for name in ("extraction", "draft", "merge"):
            assert load_prompt(name).strip()

    def test_draft_prompt_formats(self):
        text = build_draft_system_prompt(load_prompt("draft"), "Especialista", FineMetadata(organism="DGT"))
        assert "Especialista" in text
        assert "DGT" in text
        assert "URL_SEDE" in text
        assert "{role}" not in text

    def test_override_dir(self, tmp_path: Path):
        (tmp_path / "merge.md").write_text("Fusiona ya.", encoding="utf-8")
        assert load_prompt("merge", str(tmp_path)) == "Fusiona ya."
        assert load_prompt("extraction", str(tmp_path)) == load_prompt("extraction")

    def test_enriched_prompt(self):
        prompt = build_enriched_prompt(
            "Texto de la multa",
            FineMetadata(organism="DGT", legislation=["Art. 48 RGC"]),
            [SupportFile(name="foto.jpg", context="Señal tapada por un árbol")],
            "Iba a 45 km/h",
            {"foto.jpg": ""},
        )
        assert "=== CONTENIDO DE LA MULTA ===\nTexto de la multa" in prompt
        assert "--- foto.jpg ---\nContexto: Señal tapada por un árbol" in prompt
        assert "=== CONTEXTO ADICIONAL ===\nIba a 45 km/h" in prompt
        assert prompt.endswith("Redacta el recurso dirigido a: DGT, citando: Art. 48 RGC.")

    def test_enriched_prompt_support_text(self):
        prompt = build_enriched_prompt(
            "multa", FineMetadata(), [SupportFile(name="acta.pdf")], "", {"acta.pdf": "Contenido del acta"}
        )
        assert "Contenido:\nContenido del acta" in prompt
        assert "CONTEXTO ADICIONAL" not in prompt

    def test_merge_user_prompt(self):
        prompt = build_merge_user_prompt([("Agente 1", " uno "), ("Agente 2", "dos")])
        assert "===== BORRADOR 1: Agente 1 =====\nuno\n===== FIN DEL BORRADOR 1 =====" in prompt
        assert "BORRADOR 2: Agente 2" in prompt
