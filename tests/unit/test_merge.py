"""Tests for core/merge.py."""

from __future__ import annotations

import asyncio

import pytest

from recursapp.core.merge import (
    NO_DRAFTS_MESSAGE,
    Draft,
    heuristic_merge,
    master_merge,
    paragraphs_likely_duplicate,
)
from recursapp.models.document import MergeStrategy

BASE = "\n\n".join([
    "AL AYUNTAMIENTO DE MADRID",
    "PRIMERO. La notificación de la denuncia no se practicó en el acto y el boletín no motiva "
    "por qué no se detuvo al vehículo, como exige el artículo 89 de la Ley de Tráfico.",
    "SEGUNDO. El cinemómetro empleado carece de certificado de verificación periódica en vigor "
    "según la Orden ICT/155/2020, por lo que la medición carece de valor probatorio.",
    "SUPLICA: que se tenga por presentado este recurso y se acuerde el archivo del expediente "
    "sancionador con anulación de la multa impuesta.",
])

UNIQUE = (
    "Además, la señalización vertical del tramo no era visible por obras en la calzada, según "
    "consta en las fotografías aportadas como documento número uno junto a este escrito."
)

RESTATED = (
    "PRIMERO. La notificación de la denuncia no se practicó en el acto y tampoco se explica "
    "en el expediente el motivo de esa omisión, lo que causa indefensión al recurrente."
)


class TestParagraphsLikelyDuplicate:
    def test_same_opening_is_duplicate(self):
        assert paragraphs_likely_duplicate(RESTATED, BASE.split("\n\n")[1])

    def test_different_opening_is_not(self):
        assert not paragraphs_likely_duplicate(UNIQUE, BASE.split("\n\n")[1])

    def test_overlap_must_exceed_threshold(self):
        a = "uno dos tres cuatro cinco seis siete ocho nueve diez"
        b = "uno dos tres cuatro cinco seis x y z w"
        assert not paragraphs_likely_duplicate(a, b)
        assert paragraphs_likely_duplicate(a, "uno dos tres cuatro cinco seis siete y z w")

    def test_case_insensitive(self):
        assert paragraphs_likely_duplicate(
            "La Multa Fue Notificada Fuera De Plazo Según El Acuse",
            "la multa fue notificada fuera de plazo según el acuse",
        )


class TestHeuristicMerge:
    def test_single_draft_returned_unchanged(self):
        merged = heuristic_merge([Draft("A", BASE)])
        assert merged.content == BASE
        assert merged.strategy == MergeStrategy.SINGLE
        assert merged.sources == ["A"]

    def test_no_drafts(self):
        merged = heuristic_merge([])
        assert merged.content == NO_DRAFTS_MESSAGE
        assert merged.strategy == MergeStrategy.NONE

    def test_short_drafts_do_not_qualify(self):
        merged = heuristic_merge([Draft("A", "Muy corto."), Draft("B", "")])
        assert merged.strategy == MergeStrategy.NONE

    def test_unique_paragraph_inserted_before_petition(self):
        other = "\n\n".join([UNIQUE, RESTATED])
        merged = heuristic_merge([Draft("short", other), Draft("long", BASE)])

        assert merged.strategy == MergeStrategy.HEURISTIC
        assert merged.sources == ["long", "short"]
        assert merged.content.count("PRIMERO.") == 1
        assert merged.content.index(UNIQUE) < merged.content.index("SUPLICA")
        assert merged.content.startswith("AL AYUNTAMIENTO DE MADRID")

    def test_no_petition_appends_after_separator(self):
        base = BASE.replace("SUPLICA:", "Por todo ello, pide").replace("suplica", "pide")
        merged = heuristic_merge([Draft("long", base), Draft("short", UNIQUE + " Fin del escrito.")])
        assert merged.content.startswith(base)
        assert merged.content.endswith("\n\n---\n\n" + UNIQUE + " Fin del escrito.")

    def test_only_duplicates_keeps_base(self):
        merged = heuristic_merge([Draft("long", BASE), Draft("short", RESTATED)])
        assert merged.content == BASE
        assert merged.strategy == MergeStrategy.HEURISTIC

    def test_never_raises_on_odd_input(self):
        for drafts in ([Draft("A", "\n\n\n\n" * 50)], [Draft("A", "x" * 101), Draft("B", "y" * 101)]):
            merged = heuristic_merge(drafts)
            assert merged.content


class TestMasterMerge:
    @pytest.mark.asyncio
    async def test_primary_master_fuses(self, make_agent, make_caller, ok_result):
        fused = "RECURSO FUSIONADO\n\n" + BASE + "\n\n" + UNIQUE
        caller = make_caller({"master": ok_result(fused)})
        masters = [(make_agent("master"), "k"), (make_agent("backup"), "k")]

        merged = await master_merge(
            [Draft("A", BASE), Draft("B", UNIQUE + " " + UNIQUE)], caller, masters, "fusiona"
        )

        assert merged.strategy == MergeStrategy.MASTER
        assert merged.master_agent == "master"
        assert merged.content == fused
        assert caller.called_ids() == ["master"]
        prompt = caller.calls[0][1].user_prompt
        assert "BORRADOR 1: A" in prompt and "BORRADOR 2: B" in prompt

    @pytest.mark.asyncio
    async def test_secondary_after_primary_fails(self, make_agent, make_caller, ok_result, failed_result):
        caller = make_caller({
            "master": failed_result("HTTP 401", 401),
            "backup": ok_result("FUSIONADO POR RESPALDO\n\n" + BASE),
        })
        masters = [(make_agent("master"), "k"), (make_agent("backup"), "k")]

        merged = await master_merge([Draft("A", BASE), Draft("B", UNIQUE + " " + UNIQUE)], caller, masters, "f")

        assert merged.master_agent == "backup"
        assert caller.called_ids() == ["master", "backup"]

    @pytest.mark.asyncio
    async def test_falls_back_to_heuristic(self, make_agent, make_caller, ok_result):
        caller = make_caller({"master": RuntimeError("down"), "backup": ok_result("demasiado corto")})
        masters = [(make_agent("master"), "k"), (make_agent("backup"), "k")]
        drafts = [Draft("A", BASE), Draft("B", UNIQUE + " " + UNIQUE)]

        merged = await master_merge(drafts, caller, masters, "f")

        assert merged.strategy == MergeStrategy.HEURISTIC
        assert merged == heuristic_merge(drafts)

    @pytest.mark.asyncio
    async def test_master_without_key_is_skipped(self, make_agent, make_caller, ok_result):
        caller = make_caller({"backup": ok_result("FUSIONADO\n\n" + BASE)})
        masters = [(make_agent("master"), None), (make_agent("backup"), "k")]

        merged = await master_merge([Draft("A", BASE), Draft("B", UNIQUE + " " + UNIQUE)], caller, masters, "f")

        assert merged.master_agent == "backup"
        assert caller.called_ids() == ["backup"]

    @pytest.mark.asyncio
    async def test_single_draft_skips_master(self, make_agent, make_caller):
        caller = make_caller()
        merged = await master_merge([Draft("A", BASE)], caller, [(make_agent("master"), "k")], "f")
        assert merged.content == BASE
        assert caller.calls == []

    @pytest.mark.asyncio
    async def test_chain_bounded_by_timeout(self, make_agent, make_caller, ok_result):
        caller = make_caller(default=ok_result("FUSIONADO\n\n" + BASE), delays={"master": 1.5, "backup": 1.5})
        masters = [(make_agent("master"), "k"), (make_agent("backup"), "k")]
        drafts = [Draft("A", BASE), Draft("B", UNIQUE + " " + UNIQUE)]

        loop = asyncio.get_running_loop()
        start = loop.time()
        merged = await master_merge(drafts, caller, masters, "f", timeout=0.5)

        assert loop.time() - start < 1.0
        assert merged == heuristic_merge(drafts)
        assert caller.called_ids() == ["master", "backup"]

    @pytest.mark.asyncio
    async def test_slow_primary_leaves_time_for_secondary(self, make_agent, make_caller, ok_result):
        caller = make_caller(default=ok_result("FUSIONADO\n\n" + BASE), delays={"master": 5})
        masters = [(make_agent("master"), "k"), (make_agent("backup"), "k")]

        merged = await master_merge(
            [Draft("A", BASE), Draft("B", UNIQUE + " " + UNIQUE)], caller, masters, "f", timeout=1.0
        )

        assert merged.strategy == MergeStrategy.MASTER
        assert merged.master_agent == "backup"
