"""
Data model for the P&L engine.

- LineItem: a labeled amount within a section
- Section: income / expense / other_expense, label-keyed, total derived
- Statement: the three sections plus an optional reported net income
- ExtractionResult: the reconciled statement with strategy and confidence
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from lotledger.services.category_config import CategorySuggestion


class SectionName(str, Enum):
    """Statement sections."""
    INCOME = "income"
    EXPENSE = "expense"
    OTHER_EXPENSE = "other_expense"


class ExtractionStrategy(str, Enum):
    """Which extraction method ultimately produced a statement."""
    RULE_PARSER = "rule-parser"
    STRUCTURED_HYBRID = "structured-hybrid"
    FALLBACK_REGEX = "fallback-regex"
    STRUCTURED_ONLY = "structured-only"


class ExtractionSource(str, Enum):
    """Independent producers of a Statement, highest trust first."""
    STRUCTURED = "structured"
    RULE = "rule"
    FALLBACK = "fallback"

    @property
    def precedence(self) -> int:
        """Lower value wins conflicts."""
        return list(ExtractionSource).index(self)


class ConfidenceLevel(str, Enum):
    """Confidence levels for extraction results."""
    HIGH = "high"      # >= 0.85
    MEDIUM = "medium"  # >= 0.65
    LOW = "low"        # >= 0.40
    VERY_LOW = "very_low"  # < 0.40


_WS = re.compile(r"\s+")


def normalize_label_key(label: str) -> str:
    """Identity key for a label within a section."""
    return _WS.sub(" ", label or "").strip().lower()


# =============================================================================
# Statement
# =============================================================================

@dataclass(frozen=True)
class LineItem:
    """A single labeled monetary figure."""
    label: str
    amount: Decimal

    @property
    def key(self) -> str:
        return normalize_label_key(self.label)


@dataclass
class Section:
    """
    Label-keyed line items of one statement section.

    ``total`` is always recomputed from the items; it is never stored.
    """
    name: SectionName
    items: Dict[str, LineItem] = field(default_factory=dict)

    def add(self, label: str, amount: Decimal) -> LineItem:
        """Add an amount, summing into an existing item with the same label."""
        key = normalize_label_key(label)
        existing = self.items.get(key)
        if existing is not None:
            item = LineItem(label=existing.label, amount=existing.amount + amount)
        else:
            item = LineItem(label=label.strip(), amount=amount)
        self.items[key] = item
        return item

    def put(self, item: LineItem) -> None:
        """Insert or replace an item by its label key."""
        self.items[item.key] = item

    def get(self, label: str) -> Optional[LineItem]:
        return self.items.get(normalize_label_key(label))

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self.items.values()), Decimal("0"))

    @property
    def row_count(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[LineItem]:
        return iter(self.items.values())

    def copy(self) -> "Section":
        return Section(name=self.name, items=dict(self.items))


@dataclass
class Statement:
    """
    A P&L statement.

    ``net_income`` is derived from the sections unless a source supplied an
    explicit figure (``reported_net_income``).
    """
    income: Section = field(default_factory=lambda: Section(SectionName.INCOME))
    expense: Section = field(default_factory=lambda: Section(SectionName.EXPENSE))
    other_expense: Section = field(default_factory=lambda: Section(SectionName.OTHER_EXPENSE))
    reported_net_income: Optional[Decimal] = None

    def section(self, name: SectionName) -> Section:
        return getattr(self, SectionName(name).value)

    def sections(self) -> List[Section]:
        return [self.income, self.expense, self.other_expense]

    def add(self, section: SectionName, label: str, amount: Decimal) -> LineItem:
        return self.section(section).add(label, amount)

    @property
    def derived_net_income(self) -> Decimal:
        return self.income.total - self.expense.total - self.other_expense.total

    @property
    def net_income(self) -> Decimal:
        if self.reported_net_income is not None:
            return self.reported_net_income
        return self.derived_net_income

    @property
    def row_count(self) -> int:
        return sum(s.row_count for s in self.sections())

    @property
    def is_empty(self) -> bool:
        return self.row_count == 0

    def labels(self) -> List[str]:
        """All item labels in section order."""
        return [item.label for s in self.sections() for item in s]

    def copy(self) -> "Statement":
        return Statement(
            income=self.income.copy(),
            expense=self.expense.copy(),
            other_expense=self.other_expense.copy(),
            reported_net_income=self.reported_net_income,
        )


# =============================================================================
# Results
# =============================================================================

@dataclass(frozen=True)
class Diagnostic:
    """A reconciliation finding that informs confidence, not control flow."""
    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": dict(self.details)}


@dataclass(frozen=True)
class ExtractionResult:
    """Outcome of one P&L extraction; immutable once produced."""
    statement: Statement
    strategy: ExtractionStrategy
    confidence: float
    metadata: Dict[str, Any] = field(default_factory=dict)
    category_suggestions: Dict[str, CategorySuggestion] = field(default_factory=dict)
    unmapped: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def confidence_level(self) -> ConfidenceLevel:
        """Banded confidence level."""
        if self.confidence >= 0.85:
            return ConfidenceLevel.HIGH
        elif self.confidence >= 0.65:
            return ConfidenceLevel.MEDIUM
        elif self.confidence >= 0.40:
            return ConfidenceLevel.LOW
        else:
            return ConfidenceLevel.VERY_LOW

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the external JSON shape."""
        from lotledger.schemas.pnl import PnlExtractionResponse

        return PnlExtractionResponse.from_result(self).model_dump(mode="json")
