"""Plain text from uploaded fine and support files."""

from __future__ import annotations

import io
import logging
from typing import Optional

import pdfplumber
from pydantic import BaseModel

from ..utils.sanitize import sanitize_error

logger = logging.getLogger(__name__)

# Below this many characters a PDF is treated as scanned
MIN_TEXT_LAYER_CHARS = 100

TEXT_MIME_TYPES = {"text/plain", "text/markdown", "text/csv"}


class ExtractedText(BaseModel):
    text: str = ""
    is_image: bool = False
    error: Optional[str] = None


def _pdf_text(data: bytes) -> str:
    pages: list[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text() or "")
    return "\n\n".join(p.strip() for p in pages if p.strip())


def extract_text(data: bytes, mime_type: str) -> ExtractedText:
    """Extract text from a PDF, image or text file. Never raises.

    Images and PDFs without a usable text layer come back with
    ``is_image=True`` so vision-capable agents can receive the raw bytes.
    """
    mime = (mime_type or "").lower()

    if mime.startswith("image/"):
        return ExtractedText(is_image=True)

    if mime in TEXT_MIME_TYPES:
        return ExtractedText(text=data.decode("utf-8", errors="replace").strip())

    if mime == "application/pdf":
        try:
            text = _pdf_text(data)
        except Exception as e:
            message = sanitize_error(f"{type(e).__name__}: {e}")
            logger.warning("PDF text extraction failed: %s", message)
            return ExtractedText(is_image=True, error=message)
        if len(text) < MIN_TEXT_LAYER_CHARS:
            logger.info("PDF has no usable text layer (%d chars), treating as scanned", len(text))
            return ExtractedText(text=text, is_image=True)
        return ExtractedText(text=text)

    return ExtractedText(error=f"Unsupported file type: {mime_type or 'unknown'}")
