"""Filing instructions that accompany the appeal document."""

from __future__ import annotations

from typing import Optional

from ..models.document import SubmissionUrlProposal
from ..models.fine import DeadlineInfo, FineMetadata, ProcedureType, Urgency

DEFAULT_ORGANISM = "el organismo sancionador"
DEFAULT_DEADLINE = "1 mes desde la notificación (verifica en tu documento)"

_PROCEDURE_LABELS = {
    ProcedureType.ALLEGATION: "Escrito de alegaciones",
    ProcedureType.REPOSITION: "Recurso de reposición",
}

_URGENCY_NOTES = {
    Urgency.OK: "",
    Urgency.WARNING: "   ⚠ Queda menos de una semana: no lo dejes para el último día.",
    Urgency.URGENT: "   ⚠ URGENTE: quedan 3 días o menos para presentarlo.",
    Urgency.EXPIRED: "   ✖ El plazo parece vencido. Consulta si cabe otra vía de impugnación.",
}


def _deadline_lines(metadata: FineMetadata, deadline_info: Optional[DeadlineInfo]) -> list[str]:
    if deadline_info is None:
        return [f"   • {metadata.deadline or DEFAULT_DEADLINE}"]

    lines = [
        f"   • {_PROCEDURE_LABELS[deadline_info.procedure_type]} ({deadline_info.legal_basis})",
        f"   • Notificación: {deadline_info.notice_date}",
        f"   • Fecha límite: {deadline_info.due_date}",
    ]
    if deadline_info.days_remaining >= 0:
        lines.append(f"   • Días restantes: {deadline_info.days_remaining}")
    note = _URGENCY_NOTES[deadline_info.urgency]
    if note:
        lines.append(note)
    return lines


def generate_instructions(
    metadata: Optional[FineMetadata] = None,
    deadline_info: Optional[DeadlineInfo] = None,
    submission_url: Optional[SubmissionUrlProposal] = None,
) -> str:
    """Spanish step-by-step guide for filing the appeal.

    Empty metadata still yields a complete guide with generic wording.
    """
    metadata = metadata or FineMetadata()
    organism = metadata.organism or DEFAULT_ORGANISM
    address = f"\n   • Dirección: {metadata.organism_address}" if metadata.organism_address else ""
    amount = f"\n   • Importe de la sanción: {metadata.fine_amount}" if metadata.fine_amount else ""
    legislation = (
        "\n".join(f"   • {entry}" for entry in metadata.legislation)
        if metadata.legislation
        else "   • Ver documento de la multa"
    )
    deadline = "\n".join(_deadline_lines(metadata, deadline_info))

    where = [f"   • Sede electrónica de: {organism}{address}"]
    if submission_url is not None:
        name = f" ({submission_url.name})" if submission_url.name else ""
        where.append(f"   • Enlace propuesto{name}: {submission_url.url}")
        where.append("     Comprueba que el enlace pertenece al organismo antes de usarlo.")
    where.extend([
        "   • Presencialmente en su registro",
        "   • Por correo certificado con acuse de recibo",
        "   • En cualquier registro de la Administración (Ley 39/2015)",
    ])

    return f"""INSTRUCCIONES PARA PRESENTAR EL RECURSO
========================================

ORGANISMO AL QUE DIRIGIR EL RECURSO
   • {organism}{address}{amount}

LEGISLACIÓN IDENTIFICADA EN LA MULTA
{legislation}

1. PLAZO DE PRESENTACIÓN
{deadline}

2. DÓNDE PRESENTARLO
{chr(10).join(where)}

3. DOCUMENTACIÓN A ADJUNTAR
   ☐ Este recurso (firmado)
   ☐ Copia de la notificación de la multa
   ☐ DNI/NIE del recurrente
   ☐ Documentación de apoyo (fotos, testigos, mapas…)

4. PRESENTACIÓN ELECTRÓNICA (RECOMENDADA)
   • Necesitas: DNI electrónico, certificado digital o Cl@ve
   • Guarda el justificante con número de registro

5. PRESENTACIÓN PRESENCIAL
   • Lleva 2 copias impresas y firmadas · Pide sello de entrada

6. DESPUÉS DE PRESENTARLO
   • El organismo tiene 3 meses para resolver
   • Silencio negativo si no hay respuesta
   • Recurso contencioso-administrativo si desestiman

7. SUSPENSIÓN DEL PAGO
   • NO se suspende automáticamente al recurrir
   • Solicita suspensión expresa con garantía si lo necesitas

⚠️  NOTA LEGAL: Documento generado con IA. Revísalo antes de presentarlo.
    No constituye asesoramiento jurídico profesional."""
