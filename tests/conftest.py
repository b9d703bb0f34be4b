"""
Pytest configuration and fixtures.
"""
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from lotledger.config import get_settings


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def simple_pnl_text() -> str:
    """Three coded lines, one with an accounting negative."""
    return (
        "4105 Lot Rent Income  120,000.00\n"
        "6010 Payroll  45,000.00\n"
        "6200 Insurance  (1,200.00)"
    )


@pytest.fixture
def monthly_pnl_text() -> str:
    """Month-by-month P&L with a YTD column."""
    return (
        "Sunny Acres MHC\n"
        "Profit & Loss\n"
        "\n"
        "Account  Jan  Feb  Mar  Apr  May  Jun  Jul  Aug  Sep  Oct  Nov  Dec  YTD\n"
        "4105 Lot Rent  10,000  10,000  10,000  10,000  10,000  10,000  10,000  10,000  10,000  10,000  10,000  10,000  120,000\n"
        "6010 Payroll  1000  1100  1050  1000  1000  1050  1100  1000  1050  1050  1000  1100  12500\n"
        "Total Expenses  1000  1100  1050  1000  1000  1050  1100  1000  1050  1050  1000  1100  12500\n"
    )


@pytest.fixture
def sample_pdf_content() -> bytes:
    """Generate simple PDF content for testing."""
    # Minimal valid PDF
    pdf_content = b"""%PDF-1.4
1 0 obj
<< /Type /Catalog /Pages 2 0 R >>
endobj
2 0 obj
<< /Type /Pages /Kids [3 0 R] /Count 1 >>
endobj
3 0 obj
<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] /Contents 4 0 R >>
endobj
4 0 obj
<< /Length 44 >>
stream
BT /F1 12 Tf 100 700 Td (Lot Rent: $1,500,000) Tj ET
endstream
endobj
xref
0 5
0000000000 65535 f
0000000009 00000 n
0000000058 00000 n
0000000115 00000 n
0000000206 00000 n
trailer
<< /Size 5 /Root 1 0 R >>
startxref
300
%%EOF"""
    return pdf_content


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """Keep tests offline: no API key, fresh settings and singletons."""
    import lotledger.services.ocr_service as ocr_module

    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    ocr_module._loader_instance = None

    yield

    get_settings.cache_clear()
    ocr_module._loader_instance = None
