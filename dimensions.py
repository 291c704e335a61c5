"""
Dimension list parsing.

Turns the free-text size list (one product size per line) into
DimensionRecord rows:

    220 x 90 x 80         -> width=220, depth=90, height=80
    180 x 90 x 75 / 60    -> ... front_height=60
    220L 90D 80H          -> letter markers are stripped

Lines with fewer than three numbers are skipped.
"""

import logging
import re
from dataclasses import dataclass

DEFAULT_UNIT = "cm"

# One ASCII number, optionally followed by a single L/D/H marker
TOKEN_RE = re.compile(r"([0-9]+)\s*[LDH]?", re.IGNORECASE)
MARKER_RE = re.compile(r"[LDH\s]", re.IGNORECASE)

MIN_TOKENS = 3


@dataclass(frozen=True)
class DimensionRecord:
    """One parsed size line. Values are display strings, never numbers."""
    index: int
    width: str
    depth: str
    height: str
    front_height: str = ""
    unit: str = DEFAULT_UNIT
    original: str = ""  # Trimmed source line

    @property
    def size_string(self) -> str:
        size = f"{self.width}x{self.depth}x{self.height}"
        if self.front_height:
            size += f"/{self.front_height}"
        return size + self.unit


def _tokens(line: str) -> list[str]:
    return [MARKER_RE.sub("", m.group(0)) for m in TOKEN_RE.finditer(line)]


def parse_dimensions(text: str, unit: str = DEFAULT_UNIT) -> list[DimensionRecord]:
    """
    Parse a multi-line size list.

    Args:
        text: Raw text, one size per line
        unit: Display unit stamped on every record

    Returns:
        Records in input order, indexed 0..n-1 over the lines that were kept
    """
    records: list[DimensionRecord] = []
    # Only "\n" ends a line; strip() drops the "\r" of CRLF input
    for line_no, line in enumerate((text or "").split("\n"), start=1):
        line = line.strip()
        if not line:
            continue

        parts = _tokens(line)
        if len(parts) < MIN_TOKENS:
            logging.debug("Skipping line %d: only %d numbers in '%s'", line_no, len(parts), line)
            continue

        records.append(
            DimensionRecord(
                index=len(records),
                width=parts[0],
                depth=parts[1],
                height=parts[2],
                front_height=parts[3] if len(parts) > 3 else "",
                unit=unit,
                original=line,
            )
        )
    return records
