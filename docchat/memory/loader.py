# docchat/memory/loader.py

"""
Text extraction for uploaded documents.

Architecture contract preserved:
loader → chunker → embedder → vector_store

Supports:
- PDF files (pypdf)
- Word documents (python-docx)
- CSV files

Every loader returns raw text as a single string; normalization is
the chunker's job.
"""

import csv
import io
import logging
import os
import re
import unicodedata
import zipfile

from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader
from pypdf.errors import PdfReadError

from docchat.config import MAX_DOCUMENT_CHARACTERS
from docchat.errors import ValidationError

logger = logging.getLogger(__name__)


MIME_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".csv": "text/csv",
}


# ============================================================
# SAFETY: CHARACTER LIMIT
# ============================================================

def enforce_character_limit(text: str) -> str:

    if not text:
        return ""

    if len(text) > MAX_DOCUMENT_CHARACTERS:
        logger.warning(
            "Text exceeds max character limit, truncating",
            extra={
                "original_length": len(text),
                "max_allowed": MAX_DOCUMENT_CHARACTERS,
            },
        )
        return text[:MAX_DOCUMENT_CHARACTERS]

    return text


# ============================================================
# FILENAMES
# ============================================================

def file_extension(filename: str) -> str:

    return os.path.splitext(filename or "")[1].lower()


def _strip_accents(value: str) -> str:

    normalized = unicodedata.normalize("NFKD", value)

    return "".join(c for c in normalized if not unicodedata.combining(c))


def sanitize_filename(filename: str) -> str:
    """
    Storage-safe version of a user supplied filename.

    "../Résumé final.PDF" → "Resume_final.pdf"
    """

    trimmed = (filename or "").strip()

    name = re.split(r"[\\/]", trimmed)[-1] or trimmed

    if "." in name:
        base, extension = name.rsplit(".", 1)
    else:
        base, extension = name, ""

    base = _strip_accents(base or "document")
    base = re.sub(r"[^a-zA-Z0-9\-_]", "_", base)
    base = re.sub(r"_+", "_", base).strip("_")[:100]

    base = base or "document"

    extension = re.sub(r"[^a-zA-Z0-9]", "", _strip_accents(extension))[:16]

    if extension:
        return f"{base}.{extension.lower()}"

    return base


# ============================================================
# PDF LOADER
# ============================================================

def load_pdf_text(data: bytes) -> str:

    reader = PdfReader(io.BytesIO(data))

    parts = []

    for page in reader.pages:

        text = page.extract_text()

        if text:
            parts.append(text)

    return "\n".join(parts)


# ============================================================
# DOCX LOADER
# ============================================================

def load_docx_text(data: bytes) -> str:

    document = DocxDocument(io.BytesIO(data))

    parts = [p.text for p in document.paragraphs if p.text.strip()]

    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                parts.append(" | ".join(cells))

    return "\n".join(parts)


# ============================================================
# CSV LOADER
# ============================================================

def load_csv_text(data: bytes) -> str:

    content = data.decode("utf-8-sig", errors="replace")

    rows = csv.reader(io.StringIO(content))

    lines = [
        ", ".join(row)
        for row in rows
        if any(cell.strip() for cell in row)
    ]

    return "\n".join(lines)


# ============================================================
# MAIN ENTRY POINT (ARCHITECTURE CONTRACT)
# ============================================================

LOADERS = {
    ".pdf": load_pdf_text,
    ".docx": load_docx_text,
    ".csv": load_csv_text,
}


def extract_text(filename: str, data: bytes) -> str:
    """
    Extract raw text from an uploaded file.

    Raises:
        ValidationError: unsupported extension or unreadable file
    """

    extension = file_extension(filename)

    loader = LOADERS.get(extension)

    if loader is None:
        raise ValidationError("Unsupported file", field="file")

    try:

        text = loader(data)

    except (
        PdfReadError,
        PackageNotFoundError,
        zipfile.BadZipFile,
        ValueError,
        KeyError,
        csv.Error,
        OSError,
    ) as e:

        logger.warning(
            "Document extraction failed",
            extra={
                "extension": extension,
                "error_type": type(e).__name__,
            },
        )

        raise ValidationError(
            "Could not read file",
            field="file",
            details={"extension": extension},
        ) from e

    return enforce_character_limit(text)
