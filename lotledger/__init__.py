"""
LotLedger - extraction and reconciliation engine for park financials.

Turns P&L statements and rent rolls (PDF text, OCR output or delimited
exports) into categorized, numerically validated records.
"""

__version__ = "0.4.0"
