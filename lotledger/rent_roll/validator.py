"""
Rent-roll validation and summary statistics.

Findings are reported once per batch; affected rows carry boolean flags
that reference the finding by code.
"""
from collections import Counter
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

import structlog

from lotledger.policy import DEFAULT_RENT_ROLL_POLICY, RentRollPolicy
from lotledger.rent_roll.models import (
    RentRollRow,
    RentRollSummary,
    Severity,
    ValidationWarning,
    WarningCode,
)

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


class RentRollValidator:
    """
    Validator for a batch of rent-roll rows.

    Checks:
    - duplicate_lots: a normalized lot number appears more than once
    - matched_total: a rent was discarded as a "Total" column figure
    - missing_rent: an occupied lot has no rent
    - non_sequential: large portfolios only, lot numbers with wide gaps
    """

    def __init__(self, policy: RentRollPolicy = DEFAULT_RENT_ROLL_POLICY):
        self._policy = policy

    def validate(self, rows: List[RentRollRow]) -> List[ValidationWarning]:
        """
        Flag rows and return batch warnings.

        Args:
            rows: Normalized rows; ``is_duplicate`` and ``missing_rent`` are set in place.

        Returns:
            Warnings in a stable order.
        """
        warnings: List[ValidationWarning] = []

        counts = Counter(row.lot_number for row in rows)
        duplicates = sorted(lot for lot, count in counts.items() if count > 1)
        for row in rows:
            row.is_duplicate = counts[row.lot_number] > 1
        if duplicates:
            warnings.append(ValidationWarning(
                code=WarningCode.DUPLICATE_LOTS,
                message=f"{len(duplicates)} lot number(s) appear more than once: {', '.join(duplicates[:10])}",
                severity=Severity.WARNING,
                lots=duplicates,
            ))

        matched = [row.lot_number for row in rows if row.matched_total]
        if matched:
            warnings.append(ValidationWarning(
                code=WarningCode.MATCHED_TOTAL,
                message=f"{len(matched)} rent value(s) matched a Total figure and were discarded",
                severity=Severity.WARNING,
                lots=matched,
            ))

        missing = []
        for row in rows:
            row.missing_rent = row.occupied and row.rent is None
            if row.missing_rent:
                missing.append(row.lot_number)
        if missing:
            warnings.append(ValidationWarning(
                code=WarningCode.MISSING_RENT,
                message=f"{len(missing)} occupied lot(s) have no rent",
                severity=Severity.WARNING,
                lots=missing,
            ))

        sequence_warning = self._check_sequence(rows)
        if sequence_warning is not None:
            warnings.append(sequence_warning)

        logger.info(
            "Rent roll validated",
            rows=len(rows),
            warnings=[w.code.value for w in warnings],
        )
        return warnings

    def _check_sequence(self, rows: List[RentRollRow]) -> Optional[ValidationWarning]:
        """Gap check, applied only to portfolios of at least ``sequence_check_min_lots``."""
        if len(rows) < self._policy.sequence_check_min_lots:
            return None

        numbers = sorted({row.lot_numeric for row in rows})
        span = numbers[-1] - numbers[0] + 1
        missing = span - len(numbers)
        gap_ratio = missing / span
        largest_gap = max((b - a - 1 for a, b in zip(numbers, numbers[1:])), default=0)

        if gap_ratio <= self._policy.sequence_gap_ratio and largest_gap <= self._policy.sequence_max_gap:
            return None

        return ValidationWarning(
            code=WarningCode.NON_SEQUENTIAL,
            message=(
                f"Lot numbers are not sequential: {missing} missing between "
                f"{numbers[0]} and {numbers[-1]}, largest gap {largest_gap}"
            ),
            severity=Severity.INFO,
        )

    @staticmethod
    def summarize(rows: List[RentRollRow]) -> RentRollSummary:
        """
        Portfolio statistics.

        Rent figures use occupied rows with a known rent. Mode ties go to
        the rent seen first.
        """
        total = len(rows)
        occupied = sum(1 for row in rows if row.occupied)
        rents = [row.rent for row in rows if row.occupied and row.rent is not None]

        if not total:
            return RentRollSummary()

        average = None
        mode = None
        if rents:
            average = (sum(rents, Decimal("0")) / len(rents)).quantize(CENTS, rounding=ROUND_HALF_UP)
            mode = Counter(rents).most_common(1)[0][0]

        return RentRollSummary(
            total_lots=total,
            occupied_lots=occupied,
            average_rent=average,
            mode_rent=mode,
            total_annual_income=sum(rents, Decimal("0")) * 12,
            occupancy_rate=round(occupied / total * 100, 1),
            vacancy_rate=round((total - occupied) / total * 100, 1),
        )
