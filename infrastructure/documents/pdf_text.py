from __future__ import annotations

import io

from pypdf import PdfReader


def extract_pdf_text(document: bytes) -> str:
    """Concatenate the text of every page; pages without text contribute nothing."""

    reader = PdfReader(io.BytesIO(document))
    return "\n".join(page.extract_text() or "" for page in reader.pages)
