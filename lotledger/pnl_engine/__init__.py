"""
LotLedger P&L engine.

Deterministic-first extraction of Profit & Loss statements:
1. Rule parser over tokenized rows, monthly tables read through their summary column
2. Structured-extraction collaborator as an independent second source
3. Regex fallback scan when both return too few rows
4. Tiered-trust reconciliation into one statement with a confidence score
"""

from lotledger.pnl_engine.orchestrator import EngineOptions, extract_pnl, extract_pnl_async
from lotledger.pnl_engine.models import (
    ConfidenceLevel,
    ExtractionResult,
    ExtractionStrategy,
    LineItem,
    Section,
    SectionName,
    Statement,
)

__all__ = [
    "extract_pnl",
    "extract_pnl_async",
    "EngineOptions",
    "ExtractionResult",
    "ExtractionStrategy",
    "ConfidenceLevel",
    "LineItem",
    "Section",
    "SectionName",
    "Statement",
]
