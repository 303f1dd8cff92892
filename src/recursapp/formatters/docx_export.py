"""DOCX rendering of the merged appeal plus its filing guide."""

from __future__ import annotations

import io
import re
from datetime import date
from pathlib import Path
from typing import Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_BREAK
from docx.shared import Cm, Pt, RGBColor

TITLE = "RECURSO ADMINISTRATIVO CONTRA SANCIÓN"
GUIDE_TITLE = "GUÍA DE PRESENTACIÓN DEL RECURSO"
FOOTER = (
    "Documento generado por RecursApp. Herramienta de apoyo. "
    "No constituye asesoramiento jurídico profesional."
)

_MONTH_NAMES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

_SECTION_HEADING_RE = re.compile(
    r"^(I{1,3}V?|VI{0,3}|PRIMERO|SEGUNDO|TERCERO)\.|"
    r"^(HECHOS|FUNDAMENTOS|S[UÚ]PLICA|SOLICITA|PETICI[OÓ]N|ANTECEDENTES|ALEGACIONES)",
    re.IGNORECASE,
)
_NUMBERED_STEP_RE = re.compile(r"^\d+\.")

# Lines within the first few of the body that are all caps become the title
TITLE_LINE_WINDOW = 5

BODY_COLOR = RGBColor(0x1A, 0x1A, 0x1A)
MUTED_COLOR = RGBColor(0x88, 0x88, 0x88)
GUIDE_COLOR = RGBColor(0x9A, 0x75, 0x30)
WARNING_COLOR = RGBColor(0xCC, 0x44, 0x44)


def classify_line(line: str, index: int) -> str:
    """Layout class of one body line: blank, heading, title or body."""
    text = line.strip()
    if not text:
        return "blank"
    if _SECTION_HEADING_RE.match(text):
        return "heading"
    if index < TITLE_LINE_WINDOW and text == text.upper() and any(c.isalpha() for c in text):
        return "title"
    return "body"


def spanish_date(d: date) -> str:
    return f"{d.day} de {_MONTH_NAMES[d.month - 1]} de {d.year}"


def _add_run(paragraph, text: str, size: int, bold: bool = False, italic: bool = False, color=None):
    run = paragraph.add_run(text)
    run.font.size = Pt(size)
    run.bold = bold
    run.italic = italic
    if color is not None:
        run.font.color.rgb = color
    return run


def _new_document():
    document = Document()
    style = document.styles["Normal"]
    style.font.name = "Times New Roman"
    style.font.size = Pt(12)
    style.font.color.rgb = BODY_COLOR
    for section in document.sections:
        section.top_margin = Cm(2.54)
        section.bottom_margin = Cm(2.54)
        section.right_margin = Cm(2.54)
        section.left_margin = Cm(3.17)
    return document


def _add_body(document, body: str) -> None:
    for index, line in enumerate(body.split("\n")):
        kind = classify_line(line, index)
        if kind == "blank":
            document.add_paragraph()
        elif kind == "heading":
            paragraph = document.add_paragraph()
            paragraph.paragraph_format.space_before = Pt(20)
            paragraph.paragraph_format.space_after = Pt(10)
            _add_run(paragraph, line.strip(), 12, bold=True)
        elif kind == "title":
            paragraph = document.add_paragraph()
            paragraph.alignment = WD_ALIGN_PARAGRAPH.CENTER
            paragraph.paragraph_format.space_after = Pt(20)
            _add_run(paragraph, line.strip(), 16, bold=True)
        else:
            paragraph = document.add_paragraph()
            paragraph.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY
            paragraph.paragraph_format.first_line_indent = Cm(1.27)
            paragraph.paragraph_format.line_spacing = 1.5
            _add_run(paragraph, line.strip(), 12)


def _add_instructions(document, instructions: str) -> None:
    page_break = document.add_paragraph()
    page_break.add_run().add_break(WD_BREAK.PAGE)

    heading = document.add_paragraph()
    _add_run(heading, GUIDE_TITLE, 14, bold=True, color=GUIDE_COLOR)

    for line in instructions.split("\n"):
        paragraph = document.add_paragraph()
        paragraph.paragraph_format.space_after = Pt(6)
        color = WARNING_COLOR if line.startswith("⚠") else None
        _add_run(paragraph, line, 11, bold=bool(_NUMBERED_STEP_RE.match(line.strip())), color=color)


def render_document(body: str, instructions: str = "", generated_on: Optional[date] = None) -> bytes:
    """Render the appeal and (when given) the filing guide as DOCX bytes."""
    document = _new_document()

    title = document.add_paragraph()
    title.alignment = WD_ALIGN_PARAGRAPH.CENTER
    _add_run(title, TITLE, 16, bold=True)

    subtitle = document.add_paragraph()
    subtitle.alignment = WD_ALIGN_PARAGRAPH.CENTER
    subtitle.paragraph_format.space_after = Pt(30)
    _add_run(
        subtitle,
        f"Generado el {spanish_date(generated_on or date.today())} mediante RecursApp",
        10,
        italic=True,
        color=MUTED_COLOR,
    )

    _add_body(document, body or "")

    if instructions:
        _add_instructions(document, instructions)

    footer = document.add_paragraph()
    footer.alignment = WD_ALIGN_PARAGRAPH.CENTER
    footer.paragraph_format.space_before = Pt(30)
    _add_run(footer, FOOTER, 9, italic=True, color=MUTED_COLOR)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def export_document(body: str, instructions: str, output_path: Path, generated_on: Optional[date] = None) -> Path:
    """Write the rendered DOCX to ``output_path``, creating parent dirs."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(render_document(body, instructions, generated_on))
    return output_path
