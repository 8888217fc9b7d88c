from __future__ import annotations

import io
import logging
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Type

logger = logging.getLogger(__name__)


class Parser(ABC):
    """Abstract base for turning an uploaded curriculum document into plain text."""

    mime_types: List[str] = []

    @abstractmethod
    def parse(self, data: bytes) -> str:
        raise NotImplementedError


class TextParser(Parser):
    mime_types = ["text/plain", "text/markdown", "text/x-markdown"]

    def parse(self, data: bytes) -> str:
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            return data.decode("latin-1", errors="ignore")


class PdfParser(Parser):
    mime_types = ["application/pdf"]

    def parse(self, data: bytes) -> str:
        from pypdf import PdfReader
        from pypdf.errors import PdfReadError

        try:
            reader = PdfReader(io.BytesIO(data))
        except PdfReadError as exc:
            raise ValueError(f"Unreadable PDF: {exc}") from exc
        pages: List[str] = []
        for page in reader.pages:
            pages.append(page.extract_text() or "")
        return "\n\n".join(pages)


def discover_parsers() -> Dict[str, Parser]:
    parser_classes: List[Type[Parser]] = [TextParser, PdfParser]
    parsers: Dict[str, Parser] = {}
    for parser_cls in parser_classes:
        parser = parser_cls()
        for mime_type in parser.mime_types:
            parsers[mime_type] = parser
    return parsers


def guess_mime_type(path: Path) -> str:
    """Mime type of an uploaded file, treating markdown as text."""
    if path.suffix.lower() in {".md", ".markdown"}:
        return "text/markdown"
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or "application/octet-stream"


def extract_text(data: bytes, mime_type: str) -> str:
    parser = discover_parsers().get(mime_type)
    if not parser:
        raise ValueError(f"No parser available for {mime_type}")
    logger.info("Parsing %s document with %s", mime_type, parser.__class__.__name__)
    return parser.parse(data)
