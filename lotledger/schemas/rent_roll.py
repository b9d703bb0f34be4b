"""
Pydantic schemas for the rent-roll extraction response.

Field names are camelCase on the wire.
"""
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from lotledger.rent_roll.models import RentRollResult


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RentRollRowResponse(_CamelModel):
    """A single lot."""

    lot_number: str = Field(..., description="Zero-padded lot number")
    lot_numeric: int
    occupied: bool
    rent: Optional[float] = None
    tenant: Optional[str] = None
    original_token: str = ""
    is_duplicate: bool = False
    missing_rent: bool = False
    matched_total: bool = False


class ValidationWarningResponse(_CamelModel):
    code: str
    message: str
    severity: str
    lots: List[str] = Field(default_factory=list)


class RentRollSummaryResponse(_CamelModel):
    total_lots: int
    occupied_lots: int
    average_rent: Optional[float] = None
    mode_rent: Optional[float] = None
    total_annual_income: float
    occupancy_rate: float
    vacancy_rate: float


class RentRollResponse(_CamelModel):
    """External JSON shape of a rent-roll extraction."""

    data: List[RentRollRowResponse]
    summary: RentRollSummaryResponse
    warnings: List[ValidationWarningResponse] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: "RentRollResult") -> "RentRollResponse":
        """Build the response from a RentRollResult."""
        summary = result.summary
        return cls(
            data=[
                RentRollRowResponse(
                    lot_number=row.lot_number,
                    lot_numeric=row.lot_numeric,
                    occupied=row.occupied,
                    rent=float(row.rent) if row.rent is not None else None,
                    tenant=row.tenant,
                    original_token=row.original_token,
                    is_duplicate=row.is_duplicate,
                    missing_rent=row.missing_rent,
                    matched_total=row.matched_total,
                )
                for row in result.rows
            ],
            summary=RentRollSummaryResponse(
                total_lots=summary.total_lots,
                occupied_lots=summary.occupied_lots,
                average_rent=float(summary.average_rent) if summary.average_rent is not None else None,
                mode_rent=float(summary.mode_rent) if summary.mode_rent is not None else None,
                total_annual_income=float(summary.total_annual_income),
                occupancy_rate=summary.occupancy_rate,
                vacancy_rate=summary.vacancy_rate,
            ),
            warnings=[
                ValidationWarningResponse(
                    code=w.code.value,
                    message=w.message,
                    severity=w.severity.value,
                    lots=list(w.lots),
                )
                for w in result.warnings
            ],
            metadata=dict(result.metadata),
        )
