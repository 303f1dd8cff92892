"""Prompt loading and the prompts built from fine data.

Prompt texts ship as package data; a directory named in ``prompts.dir`` may
override any of them file by file.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Optional

from ..models.appeal import SupportFile
from ..models.fine import FineMetadata

_FALLBACK_PROMPTS = {
    "extraction": "Extrae de la multa un objeto JSON con los campos legislation, organism, "
    "organismAddress, fineType, fineAmount, deadline, noticeDate y rawSummary. Solo JSON.",
    "draft": "Eres {role}. Redacta un recurso administrativo dirigido a {organism_target} "
    "que refute {legislation_target}. Responde solo con el texto del recurso.",
    "merge": "Fusiona los borradores en un único recurso con ENCABEZADO, HECHOS, "
    "FUNDAMENTOS DE DERECHO y SÚPLICA. Responde solo con el recurso.",
}


def load_prompt(name: str, override_dir: Optional[str] = None) -> str:
    """Load a prompt template.

    Checks the override directory first, then falls back to bundled data.
    """
    if override_dir:
        override = Path(override_dir) / f"{name}.md"
        if override.exists():
            return override.read_text(encoding="utf-8")

    try:
        data_pkg = resources.files("recursapp.data.prompts")
        return (data_pkg / f"{name}.md").read_text(encoding="utf-8")
    except (FileNotFoundError, ModuleNotFoundError):
        return _FALLBACK_PROMPTS[name]


def build_draft_system_prompt(template: str, role: str, metadata: Optional[FineMetadata]) -> str:
    """Fill the appeal-writing prompt with the consensus metadata."""
    metadata = metadata or FineMetadata()
    legislation = ", ".join(metadata.legislation)
    return template.format(
        role=role or "abogado experto en derecho administrativo",
        organism=metadata.organism or "ver documento",
        legislation=legislation or "no especificada",
        fine_type=metadata.fine_type or "ver documento",
        fine_amount=metadata.fine_amount or "no especificado",
        deadline=metadata.deadline or "1 mes desde la notificación",
        summary=metadata.raw_summary or "ver documento",
        organism_target=metadata.organism or "el organismo sancionador",
        legislation_target=legislation or "los citados en la notificación",
    )


def build_enriched_prompt(
    fine_text: str,
    metadata: FineMetadata,
    support_files: list[SupportFile],
    additional_context: str,
    support_texts: Optional[dict[str, str]] = None,
) -> str:
    """User prompt for the draft phase: fine, support documents and context."""
    support_texts = support_texts or {}
    prompt = f"=== CONTENIDO DE LA MULTA ===\n{fine_text}\n\n"

    if support_files:
        prompt += "=== DOCUMENTACIÓN DE APOYO ===\n"
        for sf in support_files:
            prompt += f"\n--- {sf.name} ---\n"
            if sf.context:
                prompt += f"Contexto: {sf.context}\n"
            if support_texts.get(sf.name):
                prompt += f"Contenido:\n{support_texts[sf.name]}\n"
        prompt += "\n"

    if additional_context:
        prompt += f"=== CONTEXTO ADICIONAL ===\n{additional_context}\n\n"

    organism = metadata.organism or "el organismo sancionador"
    legislation = ", ".join(metadata.legislation) or "la legislación de la multa"
    prompt += f"Redacta el recurso dirigido a: {organism}, citando: {legislation}."
    return prompt


def build_merge_user_prompt(drafts: list[tuple[str, str]]) -> str:
    """Concatenate (label, content) drafts with clear delimiters."""
    parts = [f"Se adjuntan {len(drafts)} borradores del mismo recurso.\n"]
    for index, (label, content) in enumerate(drafts, start=1):
        parts.append(f"===== BORRADOR {index}: {label} =====\n{content.strip()}\n===== FIN DEL BORRADOR {index} =====")
    parts.append("\nFusiona los borradores anteriores en un único recurso definitivo.")
    return "\n\n".join(parts)
