"""
Pydantic schemas for the P&L extraction response.

Sections are held internally as label-keyed mappings; this is the one
place where they are flattened to ``individual_items`` arrays.
"""
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from lotledger.pnl_engine.models import ExtractionResult, Section


class LineItemResponse(BaseModel):
    """A single labeled amount."""

    label: str = Field(..., description="Line item label")
    amount: float = Field(..., description="Signed amount")


class IncomeSectionResponse(BaseModel):
    individual_items: List[LineItemResponse] = Field(default_factory=list)
    total_income: float = Field(0.0, description="Sum of income items")


class ExpenseSectionResponse(BaseModel):
    individual_items: List[LineItemResponse] = Field(default_factory=list)
    total_expense: float = Field(0.0, description="Sum of expense items")


class OtherExpenseSectionResponse(BaseModel):
    individual_items: List[LineItemResponse] = Field(default_factory=list)
    total_other_expense: float = Field(0.0, description="Sum of other expense items")


class CategorySuggestionResponse(BaseModel):
    """Advisory category for a label."""

    category: str
    source: str = Field(..., description="synonym or embedding")
    score: Optional[float] = None


class DiagnosticResponse(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class PnlMetadata(BaseModel):
    """How the statement was produced."""

    extraction_strategy: str = Field(..., description="rule-parser, structured-hybrid, fallback-regex or structured-only")
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    structured_rows: int = 0
    rule_rows: int = 0
    fallback_rows: int = 0
    parse_time_ms: float = 0.0
    warnings: List[str] = Field(default_factory=list)
    diagnostics: List[DiagnosticResponse] = Field(default_factory=list)
    reported_net_income: Optional[float] = None
    source_filename: Optional[str] = None
    extraction_id: Optional[str] = None


class PnlExtractionResponse(BaseModel):
    """External JSON shape of a P&L extraction."""

    income: IncomeSectionResponse
    expense: ExpenseSectionResponse
    other_expense: OtherExpenseSectionResponse
    net_income: float
    category_suggestions: Dict[str, CategorySuggestionResponse] = Field(default_factory=dict)
    unmapped: List[str] = Field(default_factory=list)
    metadata: PnlMetadata

    @staticmethod
    def _items(section: "Section") -> List[LineItemResponse]:
        return [LineItemResponse(label=item.label, amount=float(item.amount)) for item in section]

    @classmethod
    def from_result(cls, result: "ExtractionResult") -> "PnlExtractionResponse":
        """Build the response from an ExtractionResult."""
        statement = result.statement
        meta = result.metadata

        return cls(
            income=IncomeSectionResponse(
                individual_items=cls._items(statement.income),
                total_income=float(statement.income.total),
            ),
            expense=ExpenseSectionResponse(
                individual_items=cls._items(statement.expense),
                total_expense=float(statement.expense.total),
            ),
            other_expense=OtherExpenseSectionResponse(
                individual_items=cls._items(statement.other_expense),
                total_other_expense=float(statement.other_expense.total),
            ),
            net_income=float(statement.net_income),
            category_suggestions={
                key: CategorySuggestionResponse(**suggestion.to_dict())
                for key, suggestion in result.category_suggestions.items()
            },
            unmapped=list(result.unmapped),
            metadata=PnlMetadata(
                extraction_strategy=result.strategy.value,
                confidence_score=result.confidence,
                structured_rows=meta.get("structured_rows", 0),
                rule_rows=meta.get("rule_rows", 0),
                fallback_rows=meta.get("fallback_rows", 0),
                parse_time_ms=meta.get("parse_time_ms", 0.0),
                warnings=list(result.warnings),
                diagnostics=[DiagnosticResponse(**d.to_dict()) for d in result.diagnostics],
                reported_net_income=(
                    float(statement.reported_net_income)
                    if statement.reported_net_income is not None else None
                ),
                source_filename=meta.get("source_filename"),
                extraction_id=meta.get("extraction_id"),
            ),
        )
