"""
Monthly-table classifier.

Tracks whether consecutive rows belong to a month-by-month breakdown so the
line extractor reads only the summary (YTD/Total) column of each row instead
of treating every month as a separate line item.
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import List

import structlog

from lotledger.services.row_tokenizer import TokenizedRow

logger = structlog.get_logger(__name__)


MONTH_PATTERN = re.compile(
    r"^(jan(uary)?|feb(ruary)?|mar(ch)?|apr(il)?|may|june?|july?|aug(ust)?|"
    r"sep(t|tember)?|oct(ober)?|nov(ember)?|dec(ember)?)\.?([\s'\-/]?\d{2,4})?$",
    re.IGNORECASE,
)
SUMMARY_HEADER_PATTERN = re.compile(r"^(ytd|total|grand\s+total|annual|year\s+to\s+date)$", re.IGNORECASE)


class TableState(str, Enum):
    """Classifier states."""
    NOT_IN_TABLE = "not_in_table"
    IN_MONTHLY_TABLE = "in_monthly_table"


class RowRole(str, Enum):
    """How the extractor should treat a row."""
    HEADER = "header"          # month header row, consumed
    MONTHLY_DATA = "monthly"   # read the summary column only
    PLAIN = "plain"            # ordinary row
    BREAK = "break"            # blank / single-cell row that ends a table


@dataclass
class RowClassification:
    """Result of feeding one row to the classifier."""

    role: RowRole
    state: TableState
    month_headers: int = 0


def is_month_token(token: str) -> bool:
    """Check if a token names a month (Jan, January, Jan-24, Sept 2023...)."""
    return bool(MONTH_PATTERN.match(token.strip())) if token else False


def _header_tokens(row: TokenizedRow) -> List[str]:
    # Single-space separated headers arrive as one cell; count words instead
    tokens: List[str] = []
    for cell in row.cells:
        if is_month_token(cell) or SUMMARY_HEADER_PATTERN.match(cell.strip()):
            tokens.append(cell)
        else:
            tokens.extend(cell.split())
    return tokens


def count_month_headers(row: TokenizedRow) -> int:
    """Count month-name header tokens in a row."""
    return sum(1 for t in _header_tokens(row) if is_month_token(t))


def has_summary_header(row: TokenizedRow) -> bool:
    """Check for a YTD/Total/Grand Total column header."""
    if any(SUMMARY_HEADER_PATTERN.match(cell.strip()) for cell in row.cells):
        return True
    words = [t.lower() for t in _header_tokens(row)]
    return "ytd" in words or "total" in words


class MonthlyTableClassifier:
    """
    Two-state machine: ``not_in_table`` and ``in_monthly_table``.

    Enter the table on a row with at least three month headers, or one month
    header plus a summary header (YTD, Total, Grand Total). Leave it on a
    blank row or a row with at most one cell.
    """

    MIN_MONTH_HEADERS = 3
    MIN_MONTHS_WITH_SUMMARY = 1

    def __init__(self):
        self._state = TableState.NOT_IN_TABLE
        self._tables_seen = 0

    @property
    def state(self) -> TableState:
        return self._state

    @property
    def tables_seen(self) -> int:
        return self._tables_seen

    def reset(self) -> None:
        """Return to the initial state."""
        self._state = TableState.NOT_IN_TABLE
        self._tables_seen = 0

    def is_monthly_header(self, row: TokenizedRow) -> bool:
        """Check whether a row opens a month-by-month table."""
        months = count_month_headers(row)
        if months >= self.MIN_MONTH_HEADERS:
            return True
        return months >= self.MIN_MONTHS_WITH_SUMMARY and has_summary_header(row)

    def feed(self, row: TokenizedRow) -> RowClassification:
        """
        Advance the state machine with the next row.

        Args:
            row: Tokenized row (blank rows included).

        Returns:
            RowClassification telling the extractor how to read the row.
        """
        if self.is_monthly_header(row):
            if self._state == TableState.NOT_IN_TABLE:
                self._tables_seen += 1
                logger.debug("Entering monthly table", cells=row.cell_count)
            self._state = TableState.IN_MONTHLY_TABLE
            return RowClassification(
                role=RowRole.HEADER,
                state=self._state,
                month_headers=count_month_headers(row),
            )

        if self._state == TableState.IN_MONTHLY_TABLE:
            if row.is_blank or row.cell_count <= 1:
                self._state = TableState.NOT_IN_TABLE
                logger.debug("Leaving monthly table")
                return RowClassification(role=RowRole.BREAK, state=self._state)
            return RowClassification(role=RowRole.MONTHLY_DATA, state=self._state)

        if row.is_blank:
            return RowClassification(role=RowRole.BREAK, state=self._state)
        return RowClassification(role=RowRole.PLAIN, state=self._state)
