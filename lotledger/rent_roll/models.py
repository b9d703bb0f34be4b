"""
Data model for rent-roll extraction.

Rows are keyed by their normalized lot number. Duplicates are flagged on
the rows and reported once per batch as a ValidationWarning; they are
never merged.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


class WarningCode(str, Enum):
    """Batch-level validation findings."""
    DUPLICATE_LOTS = "duplicate_lots"
    MISSING_RENT = "missing_rent"
    NON_SEQUENTIAL = "non_sequential"
    MATCHED_TOTAL = "matched_total"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"


@dataclass
class RentRollRow:
    """One lot of a rent roll."""

    lot_number: str
    lot_numeric: int
    occupied: bool
    rent: Optional[Decimal] = None
    tenant: Optional[str] = None
    original_token: str = ""
    is_duplicate: bool = False
    missing_rent: bool = False
    matched_total: bool = False


@dataclass(frozen=True)
class ValidationWarning:
    """A finding attached to the whole batch."""

    code: WarningCode
    message: str
    severity: Severity = Severity.WARNING
    lots: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RentRollSummary:
    """
    Portfolio statistics.

    Rent figures cover occupied rows with a known rent only; rates are
    percentages of all lots.
    """

    total_lots: int = 0
    occupied_lots: int = 0
    average_rent: Optional[Decimal] = None
    mode_rent: Optional[Decimal] = None
    total_annual_income: Decimal = Decimal("0")
    occupancy_rate: float = 0.0
    vacancy_rate: float = 0.0


@dataclass(frozen=True)
class RentRollResult:
    """Outcome of one rent-roll extraction."""

    rows: List[RentRollRow]
    summary: RentRollSummary
    warnings: List[ValidationWarning] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def warning_codes(self) -> List[str]:
        return [w.code.value for w in self.warnings]

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the external JSON shape."""
        from lotledger.schemas.rent_roll import RentRollResponse

        return RentRollResponse.from_result(self).model_dump(mode="json", by_alias=True)
