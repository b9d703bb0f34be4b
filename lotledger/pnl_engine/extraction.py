"""
Rule-based line extraction for P&L text.

Walks normalized lines, consults the monthly-table classifier, and turns each
remaining row into a (label, amount) pair assigned to income, expense or
other_expense by account code, section heading or keyword.
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import structlog

from lotledger.pnl_engine.models import SectionName, Statement
from lotledger.services.monthly_table import MonthlyTableClassifier, RowRole, is_month_token
from lotledger.services.numeric_parser import NumericParser, get_numeric_parser
from lotledger.services.row_tokenizer import RowTokenizer, TokenizedRow, get_row_tokenizer
from lotledger.services.text_normalizer import collapse_whitespace, normalize_lines

logger = structlog.get_logger(__name__)


# =============================================================================
# Label heuristics (shared with the fallback scanner)
# =============================================================================

ACCOUNT_CODE_PATTERN = re.compile(r"^(\d{3,6})(?:[\s.:\-·]+|$)")
CODE_ONLY_PATTERN = re.compile(r"^\d{3,6}$")
SUMMARY_TERMS_PATTERN = re.compile(r"\b(total|subtotal|sub-total|grand|net)\b", re.IGNORECASE)
NET_INCOME_PATTERN = re.compile(
    r"^net\s+(operating\s+)?(income|profit|earnings)(\s*\(loss\))?$|^noi$|^net\s+ordinary\s+income$",
    re.IGNORECASE,
)
WHOLE_LINE_PATTERN = re.compile(
    r"^(?P<label>.*?[A-Za-z].*?)\s*(?:[:\-]\s+|:|\s)\s*"
    r"(?P<amount>[-(]?\s?[$€£]?\s?\(?[\d,]*\.?\d+\)?-?)$"
)

INCOME_STRONG_PATTERN = re.compile(r"\b(income|revenues?|reimburse\w*|recover(y|ies))\b", re.IGNORECASE)
OTHER_EXPENSE_PATTERN = re.compile(
    r"\b(depreciation|amortization|interest\s+expense|mortgage\s+interest|debt\s+service|"
    r"capital\s+(improvements?|expenditures?)|capex|loan|principal|reserves?\s+for\s+replacement)\b",
    re.IGNORECASE,
)
EXPENSE_HINT_PATTERN = re.compile(
    r"\b(expenses?|tax(es)?|insurance|repairs?|maint\w*|payroll|wages?|salar\w*|management|"
    r"utilit\w*|electric\w*|water|sewer|trash|supplies|advertis\w*|legal|accounting|professional)\b",
    re.IGNORECASE,
)
INCOME_WEAK_PATTERN = re.compile(r"\b(rents?|rental|laundry|late\s+fees?|sales|receipts)\b", re.IGNORECASE)

PERIOD_DATE_PATTERN = re.compile(
    r"\b(jan(uary)?|feb(ruary)?|mar(ch)?|apr(il)?|may|june?|july?|aug(ust)?|"
    r"sep(t|tember)?|oct(ober)?|nov(ember)?|dec(ember)?)\.?\s+\d{1,2}(st|nd|rd|th)?\b",
    re.IGNORECASE,
)
PERIOD_WORDS_PATTERN = re.compile(
    r"\b(years?|ended|ending|period|through|fiscal|as\s+of)\b", re.IGNORECASE
)
BARE_YEAR_PATTERN = re.compile(r"^(19|20)\d{2}$")

HEADING_PATTERNS: List[Tuple[re.Pattern, SectionName]] = [
    (re.compile(r"^(other|non[-\s]?operating)\s+(expenses?|expenditures?)$", re.IGNORECASE), SectionName.OTHER_EXPENSE),
    (re.compile(r"^(operating\s+)?(expenses?|expenditures?)$", re.IGNORECASE), SectionName.EXPENSE),
    (re.compile(r"^(other\s+|operating\s+)?(income|revenues?)$", re.IGNORECASE), SectionName.INCOME),
]


def sanitize_label(label: str) -> str:
    """Trim a label and drop trailing ':' / '-' separators."""
    label = collapse_whitespace(label)
    return re.sub(r"[\s:\-\u2013]+$", "", label).strip()


def split_account_code(label: str) -> Tuple[Optional[str], str]:
    """Split a leading account code ("6010 Payroll") from the label text."""
    match = ACCOUNT_CODE_PATTERN.match(label)
    if not match:
        return None, label
    return match.group(1), sanitize_label(label[match.end():])


def is_summary_label(label: str) -> bool:
    """Summary vocabulary: total, subtotal, grand, net."""
    return bool(SUMMARY_TERMS_PATTERN.search(label))


def is_net_income_label(label: str) -> bool:
    return bool(NET_INCOME_PATTERN.match(label.strip()))


def is_period_header(label: str, amount_text: str) -> bool:
    """
    Reporting-period lines ("For the Year Ended December 31, 2023").

    A label holding a month-and-day date is never a line item; a bare
    four-digit year is rejected when the label reads like a period.
    """
    if PERIOD_DATE_PATTERN.search(label):
        return True
    return bool(BARE_YEAR_PATTERN.match(amount_text.strip())) and bool(PERIOD_WORDS_PATTERN.search(label))


def heading_section(label: str) -> Optional[SectionName]:
    """Section named by a heading line ("Income", "Operating Expenses")."""
    for pattern, section in HEADING_PATTERNS:
        if pattern.match(label.strip()):
            return section
    return None


def classify_section(
    code: Optional[str],
    label: str,
    context: Optional[SectionName] = None,
) -> SectionName:
    """
    Assign a section by account code, then heading context, then keywords.

    4xxx → income, 5xxx/6xxx → expense, 7xxx → other_expense.
    """
    if code:
        first = code[0]
        if first == "4":
            return SectionName.INCOME
        if first in "56":
            return SectionName.EXPENSE
        if first == "7":
            return SectionName.OTHER_EXPENSE

    if context is not None:
        return context

    if INCOME_STRONG_PATTERN.search(label):
        return SectionName.INCOME
    if OTHER_EXPENSE_PATTERN.search(label):
        return SectionName.OTHER_EXPENSE
    if EXPENSE_HINT_PATTERN.search(label):
        return SectionName.EXPENSE
    if INCOME_WEAK_PATTERN.search(label):
        return SectionName.INCOME
    return SectionName.EXPENSE


# =============================================================================
# Extractor
# =============================================================================

@dataclass
class RuleExtraction:
    """Output of one rule-based pass over a document."""

    statement: Statement = field(default_factory=Statement)
    rows: int = 0
    monthly_tables: int = 0
    skipped: Dict[str, int] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def skip(self, reason: str) -> None:
        self.skipped[reason] = self.skipped.get(reason, 0) + 1


class RuleBasedLineExtractor:
    """
    Deterministic P&L line extractor.

    For each row the right-most numeric cell is the amount and the
    non-numeric cells to its left form the label. Month-by-month tables are
    read through their summary column only. Summary rows without an account
    code (totals, net figures) are not itemized; a net income line is kept as
    the statement's reported net income.
    """

    def __init__(
        self,
        tokenizer: Optional[RowTokenizer] = None,
        numeric_parser: Optional[NumericParser] = None,
    ):
        self._tokenizer = tokenizer or get_row_tokenizer()
        self._parser = numeric_parser or get_numeric_parser()

    def extract(self, text: str) -> RuleExtraction:
        """
        Extract line items from document text.

        Args:
            text: Raw or normalized document text.

        Returns:
            RuleExtraction with the accumulated statement.
        """
        result = RuleExtraction()
        classifier = MonthlyTableClassifier()
        context: Optional[SectionName] = None
        table_has_summary = False

        for line in normalize_lines(text):
            row = self._tokenizer.tokenize(line)
            classification = classifier.feed(row)

            if classification.role == RowRole.HEADER:
                table_has_summary = self._header_has_summary(row)
                if not table_has_summary:
                    result.warnings.append(
                        "Monthly table without a YTD/Total column; the last month column was used"
                    )
                result.skip("monthly_header")
                continue

            if row.is_blank:
                continue

            parsed = self._parse_row(row)
            if parsed is None:
                # Label-only rows may be section headings
                heading = self._heading_for(row)
                if heading is not None:
                    context = heading
                result.skip("no_amount")
                continue

            label, amount, amount_text = parsed
            if is_period_header(label, amount_text):
                result.skip("period_header")
                continue

            code, text_label = split_account_code(label)

            if not text_label or not re.search(r"[A-Za-z]", text_label):
                result.skip("no_label")
                continue

            if is_month_token(text_label):
                result.skip("month_label")
                continue

            if code is None and is_summary_label(text_label):
                if is_net_income_label(text_label):
                    result.statement.reported_net_income = amount
                result.skip("summary_row")
                continue

            section = classify_section(code, text_label, context)
            result.statement.add(section, text_label, amount)
            result.rows += 1

        result.monthly_tables = classifier.tables_seen

        logger.info(
            "Rule extraction complete",
            rows=result.rows,
            items=result.statement.row_count,
            monthly_tables=result.monthly_tables,
            skipped=result.skipped,
        )
        return result

    def _parse_row(self, row: TokenizedRow) -> Optional[Tuple[str, Decimal, str]]:
        """Split a row into (label, amount, amount text), or None when it has no amount."""
        cells = self._split_amount_runs(row.cells)
        if len(cells) == 1:
            return self._parse_whole_line(cells[0])

        amount_index = None
        for index in range(len(cells) - 1, -1, -1):
            if self._parser.is_amount_token(cells[index]):
                amount_index = index
                break

        if amount_index is None:
            return None
        if amount_index == 0:
            # A lone code-like number with text after it is a label, not an amount
            return self._parse_whole_line(" ".join(cells))

        label_parts = [
            cell for i, cell in enumerate(cells[:amount_index])
            if not self._parser.is_amount_token(cell) or (i == 0 and CODE_ONLY_PATTERN.match(cell))
        ]
        amount = self._parser.parse(cells[amount_index]).value
        label = sanitize_label(" ".join(label_parts))
        if amount is None or not label:
            return None
        return label, amount, cells[amount_index]

    def _split_amount_runs(self, cells: List[str]) -> List[str]:
        """Break single-spaced runs of figures ("1000 1100 12500") into cells."""
        split: List[str] = []
        for cell in cells:
            split.extend(self._parser.split_amount_run(cell) or [cell])
        return split

    def _parse_whole_line(self, line: str) -> Optional[Tuple[str, Decimal, str]]:
        match = WHOLE_LINE_PATTERN.match(line.strip())
        if not match:
            return None
        amount = self._parser.parse(match.group("amount")).value
        label = match.group("label")
        # Month columns left in front of the summary figure
        words = label.split()
        kept = len(words)
        while kept > 1 and self._parser.is_amount_token(words[kept - 1]):
            kept -= 1
        if len(words) - kept >= 2:
            words = words[:kept]
        label = sanitize_label(" ".join(words))
        if amount is None or not label:
            return None
        return label, amount, match.group("amount")

    @staticmethod
    def _header_has_summary(row: TokenizedRow) -> bool:
        words = [w.lower() for cell in row.cells for w in cell.split()]
        return any(w in ("ytd", "total", "annual") for w in words)

    @staticmethod
    def _heading_for(row: TokenizedRow) -> Optional[SectionName]:
        label = sanitize_label(" ".join(row.cells))
        _, text_label = split_account_code(label)
        return heading_section(text_label)


def get_rule_extractor() -> RuleBasedLineExtractor:
    """Get RuleBasedLineExtractor instance."""
    return RuleBasedLineExtractor()
