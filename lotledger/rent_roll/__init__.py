"""
LotLedger rent-roll extraction: per-lot rows, validation warnings and summary statistics.
"""

from lotledger.rent_roll.orchestrator import extract_rent_roll, extract_rent_roll_async
from lotledger.rent_roll.models import (
    RentRollResult,
    RentRollRow,
    RentRollSummary,
    Severity,
    ValidationWarning,
    WarningCode,
)

__all__ = [
    "extract_rent_roll",
    "extract_rent_roll_async",
    "RentRollResult",
    "RentRollRow",
    "RentRollSummary",
    "Severity",
    "ValidationWarning",
    "WarningCode",
]
