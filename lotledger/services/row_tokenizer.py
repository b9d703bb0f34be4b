"""
Row tokenizer for financial export lines.

Splits a line into cells trying delimiter conventions in priority order:
tab, comma, runs of two or more spaces, whole line.
"""
import csv
import re
from dataclasses import dataclass, field
from typing import List

import structlog

logger = structlog.get_logger(__name__)

# "1,234" / "12,345,678.90" - commas inside these are thousands separators
THOUSANDS_GROUP_PATTERN = re.compile(r"\d{1,3}(?:,\d{3})+(?:\.\d+)?")
MULTI_SPACE_PATTERN = re.compile(r" {2,}")


@dataclass
class TokenizedRow:
    """A line split into cells."""

    cells: List[str] = field(default_factory=list)
    delimiter: str = "none"  # tab, comma, spaces, none

    @property
    def cell_count(self) -> int:
        return len(self.cells)

    @property
    def is_blank(self) -> bool:
        return not self.cells


class RowTokenizer:
    """
    Heuristic cell splitter.

    Comma splitting is gated: it only applies when the line still contains a
    comma once thousands-grouped numbers are removed, and when it yields at
    least two non-empty cells. Quoted CSV fields are honored, so
    ``"Payroll","1,234.56"`` splits into two cells.
    """

    MIN_DELIMITED_CELLS = 2

    def tokenize(self, line: str) -> TokenizedRow:
        """
        Split a single line into cells.

        Args:
            line: One normalized line.

        Returns:
            TokenizedRow with non-empty, trimmed cells.
        """
        if line is None or not line.strip():
            return TokenizedRow()

        if "\t" in line:
            cells = self._clean(line.split("\t"))
            if len(cells) >= self.MIN_DELIMITED_CELLS:
                return TokenizedRow(cells=cells, delimiter="tab")

        if self._has_delimiting_comma(line):
            cells = self._clean(self._split_csv(line))
            if len(cells) >= self.MIN_DELIMITED_CELLS:
                return TokenizedRow(cells=cells, delimiter="comma")

        cells = self._clean(MULTI_SPACE_PATTERN.split(line))
        if len(cells) >= self.MIN_DELIMITED_CELLS:
            return TokenizedRow(cells=cells, delimiter="spaces")

        return TokenizedRow(cells=[line.strip()], delimiter="none")

    def _has_delimiting_comma(self, line: str) -> bool:
        """Check for a comma that is not a thousands separator."""
        if "," not in line:
            return False
        unquoted = re.sub(r'"[^"]*"', "", line)
        return "," in THOUSANDS_GROUP_PATTERN.sub("", unquoted)

    def _split_csv(self, line: str) -> List[str]:
        try:
            return next(csv.reader([line], skipinitialspace=True))
        except (csv.Error, StopIteration) as e:
            logger.debug("CSV split failed, using plain split", error=str(e))
            return line.split(",")

    @staticmethod
    def _clean(cells: List[str]) -> List[str]:
        return [c.strip() for c in cells if c and c.strip()]

    def tokenize_lines(self, lines: List[str]) -> List[TokenizedRow]:
        """Tokenize multiple lines."""
        return [self.tokenize(line) for line in lines]


# Singleton instance
_tokenizer_instance = None


def get_row_tokenizer() -> RowTokenizer:
    """Get singleton RowTokenizer instance."""
    global _tokenizer_instance
    if _tokenizer_instance is None:
        _tokenizer_instance = RowTokenizer()
    return _tokenizer_instance
