"""
Numeric parser service for financial value extraction.

Handles parsing of cell values in the formats found in P&L exports:
- Currency: $1,234.56
- Thousands separators: 1,234,567
- Negative: (123), -123, 123-
"""
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class ParsedNumber:
    """Result of parsing a numeric string."""

    value: Optional[Decimal]
    raw_value: str
    is_negative: bool = False
    currency: Optional[str] = None

    @property
    def is_absent(self) -> bool:
        return self.value is None


class NumericParser:
    """
    Parser for signed financial amounts.

    A cell that cannot be read as a number is reported as absent
    (``value is None``), never as zero.

    Negative notation:
    - leading minus: -1234.50
    - accounting parentheses: (1,234.50), $(1,234.50), ($1,234.50)
    - trailing minus: 1234.50-
    """

    CURRENCY_SYMBOLS = ("$", "€", "£", "¥", "₹")

    # Characters that survive cleaning
    STRIP_PATTERN = re.compile(r"[^\d.,\-]")
    WRAPPED_PATTERN = re.compile(r"^\s*[^\d()]*\(([^()]*\d[^()]*)\)\s*$")
    NUMBER_PATTERN = re.compile(r"^-?(?:\d+\.?\d*|\.\d+)$")
    # A cell made of an amount and nothing else. Whitespace may follow a sign,
    # currency symbol or opening parenthesis, never sit between digit groups.
    AMOUNT_TOKEN_PATTERN = re.compile(
        r"^[-+(]*\s*[$€£¥₹]?\s*[-(]*\s*(?:\d[\d,]*(?:\.\d*)?|\.\d+)\s*\)?-?$"
    )

    def parse(self, value_str: Optional[str]) -> ParsedNumber:
        """
        Parse a cell string into a signed Decimal.

        Args:
            value_str: The string to parse.

        Returns:
            ParsedNumber with parsed value and metadata.
        """
        if value_str is None or not str(value_str).strip():
            return ParsedNumber(value=None, raw_value=value_str or "")

        original = str(value_str)
        text = original.strip()

        currency = next((s for s in self.CURRENCY_SYMBOLS if s in text), None)

        # Accounting parentheses: "(1,234.50)", "$(1,234.50)", "($1,234.50)"
        wrapped = False
        paren_match = self.WRAPPED_PATTERN.match(text)
        if paren_match:
            wrapped = True
            text = paren_match.group(1)

        cleaned = self.STRIP_PATTERN.sub("", text)
        cleaned = cleaned.replace(",", "")

        trailing_minus = False
        if len(cleaned) > 1 and cleaned.endswith("-") and not cleaned.startswith("-"):
            trailing_minus = True
            cleaned = cleaned[:-1]

        value = self._to_decimal(cleaned)
        if value is None:
            return ParsedNumber(value=None, raw_value=original, currency=currency)

        negative_marker = wrapped or trailing_minus
        # Markers only negate values that parsed as non-negative
        if negative_marker and value >= 0:
            value = -value

        return ParsedNumber(
            value=value,
            raw_value=original,
            is_negative=value < 0 or negative_marker,
            currency=currency,
        )

    def is_amount_token(self, value_str: Optional[str]) -> bool:
        """Check whether a cell consists of a single amount (no label text)."""
        if not value_str:
            return False
        text = str(value_str).strip()
        return bool(self.AMOUNT_TOKEN_PATTERN.match(text)) and self.parse(text).value is not None

    def split_amount_run(self, value_str: Optional[str]) -> Optional[list[str]]:
        """
        Split a cell holding several space-separated amounts.

        Returns the individual amounts, or None when the cell is not such a
        run (a single amount, or any non-amount word).
        """
        if not value_str:
            return None
        parts = str(value_str).split()
        if len(parts) < 2 or not all(self.is_amount_token(p) for p in parts):
            return None
        return parts

    def _to_decimal(self, cleaned: str) -> Optional[Decimal]:
        """Convert a cleaned numeric string to Decimal, or None."""
        if not cleaned or not self.NUMBER_PATTERN.match(cleaned):
            return None
        try:
            return Decimal(cleaned)
        except (InvalidOperation, ValueError) as e:
            logger.debug("Failed to parse number", value=cleaned, error=str(e))
            return None

    def parse_batch(self, values: list[str]) -> list[ParsedNumber]:
        """
        Parse multiple values.

        Args:
            values: List of strings to parse.

        Returns:
            List of ParsedNumber results.
        """
        return [self.parse(v) for v in values]


# Singleton instance
_parser_instance: Optional[NumericParser] = None


def get_numeric_parser() -> NumericParser:
    """Get singleton NumericParser instance."""
    global _parser_instance
    if _parser_instance is None:
        _parser_instance = NumericParser()
    return _parser_instance


def resolve_amount(value_str: Optional[str]) -> Optional[Decimal]:
    """Resolve a cell into a signed Decimal, or None when absent."""
    return get_numeric_parser().parse(value_str).value
