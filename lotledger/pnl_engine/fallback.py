"""
Regex fallback scanner.

A lightweight line scanner used when the primary strategies return too few
rows: every line that ends in an amount and starts with a word becomes a
candidate item. It ignores table structure entirely.
"""

import re
from dataclasses import dataclass, field

import structlog

from lotledger.pnl_engine.extraction import (
    classify_section,
    is_period_header,
    is_summary_label,
    sanitize_label,
)
from lotledger.pnl_engine.models import Statement
from lotledger.services.monthly_table import is_month_token
from lotledger.services.numeric_parser import NumericParser, get_numeric_parser
from lotledger.services.text_normalizer import normalize_text

logger = structlog.get_logger(__name__)

FALLBACK_LINE_PATTERN = re.compile(
    r"^\s*(?:(?P<code>\d{3,6})[\s.:\-]+)?"
    r"(?P<label>[A-Za-z][A-Za-z0-9&/'.,()#\- ]*?)\s*[:\-]?\s*"
    r"(?P<amount>\(?-?\$?\s?\(?\d[\d,]*(?:\.\d{1,2})?\)?-?)\s*$"
)
# Numbers left dangling at the end of a label (month columns)
TRAILING_NUMBERS_PATTERN = re.compile(r"(\s+[\d,.()$\-]+)+$")


@dataclass
class FallbackScan:
    """Output of the fallback scanner."""

    statement: Statement = field(default_factory=Statement)
    rows: int = 0


class RegexFallbackScanner:
    """Line-by-line regex scanner for text the rule parser could not read."""

    def __init__(self, numeric_parser: NumericParser = None):
        self._parser = numeric_parser or get_numeric_parser()

    def scan(self, text: str) -> FallbackScan:
        """
        Scan text for ``label ... amount`` lines.

        Args:
            text: Raw or normalized document text.

        Returns:
            FallbackScan with the accumulated statement.
        """
        result = FallbackScan()

        for line in normalize_text(text).split("\n"):
            match = FALLBACK_LINE_PATTERN.match(line)
            if not match:
                continue

            if is_period_header(match.group("label"), match.group("amount")):
                continue

            label = sanitize_label(TRAILING_NUMBERS_PATTERN.sub("", match.group("label")))
            label = re.sub(r"[,(]+$", "", label).strip()
            code = match.group("code")
            amount = self._parser.parse(match.group("amount")).value

            if amount is None or not label or is_month_token(label):
                continue
            if code is None and is_summary_label(label):
                continue

            result.statement.add(classify_section(code, label), label, amount)
            result.rows += 1

        logger.info("Fallback scan complete", rows=result.rows, items=result.statement.row_count)
        return result
