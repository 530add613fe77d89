from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import docx
from pypdf import PdfReader

from legalrelay.errors import ExtractionFailure

log = logging.getLogger("legalrelay.extractor")


def _extract_pdf(path: Path) -> str:
    reader = PdfReader(str(path))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _extract_docx(path: Path) -> str:
    document = docx.Document(str(path))
    parts: List[str] = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append("\t".join(cells))
    return "\n".join(parts)


def _extract_txt(path: Path) -> str:
    return path.read_text(encoding="utf-8")


_DECODERS = {
    ".pdf": _extract_pdf,
    ".doc": _extract_docx,
    ".docx": _extract_docx,
    ".txt": _extract_txt,
}


def extract_text(path: str | Path, extension: str) -> str:
    """
    Extract plain text from an uploaded document.

    The extension is the one declared by the upload (e.g. ".PDF"), matched
    case-insensitively. Any decoder error is logged and re-raised as
    ExtractionFailure so callers never see library-specific exceptions.
    """
    ext = (extension or "").lower()
    decoder = _DECODERS.get(ext)
    try:
        if decoder is None:
            raise ValueError(f"Unsupported file type: {ext or '<none>'}")
        text = decoder(Path(path))
    except Exception as exc:
        log.exception("Error extracting text from %s file", ext or "unknown")
        raise ExtractionFailure("Failed to extract text from document") from exc

    log.info("Extracted %d characters from %s file", len(text), ext)
    return text
