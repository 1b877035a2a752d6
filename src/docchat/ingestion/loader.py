"""Text extraction for uploaded source files."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from langchain_community.document_loaders import PyPDFLoader

from docchat.exceptions import ValidationError
from docchat.ingestion.chunker import clean_text


@dataclass
class ExtractedDocument:
    """Plain text pulled out of a source file, plus what we know about it."""

    text: str
    filename: str
    size: int
    metadata: dict[str, Any] = field(default_factory=dict)


def extension_of(filename: str) -> str:
    return Path(filename).suffix.lower()


def extract_text_from_txt(data: bytes) -> dict[str, Any]:
    """Decode a UTF-8 text file and normalise its whitespace.

    Undecodable bytes become U+FFFD rather than failing the upload.
    """
    return {"text": clean_text(data.decode("utf-8", errors="replace")), "metadata": {"encoding": "utf-8"}}


def extract_text_from_pdf(path: str | Path) -> dict[str, Any]:
    """Extract text from every page of the PDF at *path*."""
    pages = PyPDFLoader(str(path)).load()
    text = clean_text("\n".join(page.page_content for page in pages))
    first = pages[0].metadata if pages else {}
    return {
        "text": text,
        "metadata": {
            "title": first.get("title") or "Untitled",
            "author": first.get("author") or "Unknown",
            "creation_date": first.get("creationdate"),
            "pages": len(pages),
        },
    }


def extract_document(path: str | Path, data: bytes, filename: str) -> ExtractedDocument:
    """Dispatch to the extractor matching *filename*'s extension.

    Parameters
    ----------
    path:
        On-disk location of the source (PDF parsing reads from here).
    data:
        Raw bytes already read from *path*.
    filename:
        Original client-side filename; its extension selects the extractor.
    """
    ext = extension_of(filename)
    if ext == ".pdf":
        extracted = extract_text_from_pdf(path)
    elif ext == ".txt":
        extracted = extract_text_from_txt(data)
    else:
        raise ValidationError(f"Unsupported file type: {ext}", field="file")

    return ExtractedDocument(
        text=extracted["text"],
        filename=filename,
        size=len(data),
        metadata=extracted["metadata"],
    )
