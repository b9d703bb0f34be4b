"""
Schemas for structured-extraction collaborator payloads.

Collaborator output is untrusted: every payload is validated here before
any of it reaches the reconciler. Line items whose amount cannot be
resolved are dropped rather than failing the whole payload.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from lotledger.services.numeric_parser import resolve_amount

logger = structlog.get_logger(__name__)


def coerce_amount(value: Any) -> Optional[Decimal]:
    """Resolve a JSON amount (number or formatted string) to a Decimal, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        try:
            amount = Decimal(str(value))
        except InvalidOperation:
            return None
        return amount if amount.is_finite() else None
    if isinstance(value, str):
        return resolve_amount(value)
    return None


class StructuredLineItem(BaseModel):
    """A line item as returned by the collaborator."""

    label: str = Field(..., min_length=1, description="Line item label")
    amount: Decimal = Field(..., description="Annual amount")

    @field_validator("label", mode="before")
    @classmethod
    def strip_label(cls, v: Any) -> str:
        if not isinstance(v, str):
            raise ValueError("label must be a string")
        return " ".join(v.split())

    @field_validator("amount", mode="before")
    @classmethod
    def resolve(cls, v: Any) -> Decimal:
        amount = coerce_amount(v)
        if amount is None:
            raise ValueError("amount is not numeric")
        return amount


def _valid_items(value: Any) -> List[Dict[str, Any]]:
    """
    Keep only well-formed line items.

    Accepts an array of ``{label, amount}`` objects or a keyed map of
    ``label -> amount``.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        value = [{"label": k, "amount": v} for k, v in value.items()]
    if not isinstance(value, list):
        raise ValueError("line items must be an array or an object")

    kept = []
    for raw in value:
        if not isinstance(raw, dict):
            continue
        label = raw.get("label") or raw.get("name")
        amount = coerce_amount(raw.get("amount", raw.get("value")))
        if not isinstance(label, str) or not label.strip() or amount is None:
            logger.debug("Dropping invalid structured item", item=str(raw)[:80])
            continue
        kept.append({"label": label, "amount": amount})
    return kept


class StructuredPnlPayload(BaseModel):
    """P&L payload: ``income[]``, ``expense[]``, ``other_expense[]``, ``net_income``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    income: List[StructuredLineItem] = Field(default_factory=list)
    expense: List[StructuredLineItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("expense", "expenses"),
    )
    other_expense: List[StructuredLineItem] = Field(
        default_factory=list,
        validation_alias=AliasChoices("other_expense", "other_expenses", "otherExpense"),
    )
    net_income: Optional[Decimal] = None

    @field_validator("income", "expense", "other_expense", mode="before")
    @classmethod
    def drop_invalid_items(cls, v: Any) -> List[Dict[str, Any]]:
        return _valid_items(v)

    @field_validator("net_income", mode="before")
    @classmethod
    def resolve_net_income(cls, v: Any) -> Optional[Decimal]:
        return coerce_amount(v)

    @property
    def row_count(self) -> int:
        return len(self.income) + len(self.expense) + len(self.other_expense)


class StructuredRentRollPayload(BaseModel):
    """Rent-roll payload: a list of loosely keyed per-lot records."""

    rows: List[Dict[str, Any]] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def unwrap(cls, data: Any) -> Dict[str, Any]:
        """Accept a top-level array or an object with ``rows`` or ``data``."""
        if isinstance(data, list):
            return {"rows": data}
        if isinstance(data, dict):
            for key in ("rows", "data", "lots"):
                if isinstance(data.get(key), list):
                    return {"rows": data[key]}
            return {"rows": []}
        raise ValueError("rent roll payload must be an array or an object")

    @field_validator("rows", mode="before")
    @classmethod
    def records_only(cls, v: Any) -> List[Dict[str, Any]]:
        return [r for r in v if isinstance(r, dict)]
