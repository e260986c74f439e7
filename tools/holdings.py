"""Pull the "principal holdings" list out of a fund fact sheet.

This is a best-effort heuristic over loosely structured PDF text. Missing a
holding is acceptable; an empty list simply means "no holdings available".
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

import fitz  # pymupdf

logger = logging.getLogger(__name__)

HOLDINGS_MARKER = "Principales inversiones del portafolio"
HEADER_PREFIXES = ("Emisores", "Tipo de Inversión")
INSTRUMENT_TYPES = (
    "Rv. Internacional",
    "Derivados",
    "Liquidez",
    "Fondo Internacional",
    "Financiero Local",
)
MAX_HOLDINGS = 10
MIN_NAME_LENGTH = 3  # names this short or shorter are noise

_TRAILING_PCT = re.compile(r"\d+\.\d+%$")
_TRAILING_PCT_STRIP = re.compile(r"\s*\d+\.\d+%$")


class HoldingsStrategy(Protocol):
    def extract(self, text: str) -> list[str]: ...


class PercentageLineStrategy:
    """Lines after the marker that end in "12.34%" are holdings rows.

    The issuer name is whatever precedes the first instrument-type keyword
    (or the percentage itself when no keyword is present).
    """

    def __init__(
        self,
        marker: str = HOLDINGS_MARKER,
        header_prefixes: tuple[str, ...] = HEADER_PREFIXES,
        instrument_types: tuple[str, ...] = INSTRUMENT_TYPES,
        limit: int = MAX_HOLDINGS,
    ):
        self.marker = marker
        self.header_prefixes = header_prefixes
        self.instrument_types = instrument_types
        self.limit = limit

    def _name_from_line(self, line: str) -> str:
        name = _TRAILING_PCT_STRIP.sub("", line)
        for keyword in self.instrument_types:
            idx = name.find(keyword)
            if idx != -1:
                name = name[:idx]
        return name.strip()

    def extract(self, text: str) -> list[str]:
        start = text.find(self.marker)
        if start == -1:
            logger.info(f"'{self.marker}' section not found")
            return []

        holdings: list[str] = []
        # the marker line itself is a heading, even when it carries extra text
        for raw in text[start:].splitlines()[1:]:
            if len(holdings) >= self.limit:
                break
            line = raw.strip()
            if not line or line.startswith(self.header_prefixes):
                continue
            if not _TRAILING_PCT.search(line):
                continue
            name = self._name_from_line(line)
            if len(name) > MIN_NAME_LENGTH:
                holdings.append(name)
        return holdings


def extract_pdf_text(pdf_bytes: bytes) -> str:
    """Plain text layer of the PDF, pages joined by newlines."""
    doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    try:
        text = "\n".join(page.get_text("text") for page in doc)
    finally:
        doc.close()
    logger.info(f"PDF text extracted: {len(text):,} chars")
    return text


def extract_holdings(pdf_bytes: bytes, strategy: HoldingsStrategy | None = None) -> list[str]:
    try:
        text = extract_pdf_text(pdf_bytes)
    except Exception as e:
        logger.warning(f"Could not read PDF text: {e}")
        return []
    holdings = (strategy or PercentageLineStrategy()).extract(text)
    logger.info(f"Extracted {len(holdings)} holdings: {holdings}")
    return holdings
