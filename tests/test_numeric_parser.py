"""
Unit tests for NumericParser service.
"""
from decimal import Decimal

import pytest

from lotledger.services.numeric_parser import NumericParser, ParsedNumber, resolve_amount


class TestNumericParser:
    """Tests for NumericParser class."""

    @pytest.fixture
    def parser(self) -> NumericParser:
        """Create parser instance."""
        return NumericParser()

    # Standard number tests
    def test_parse_integer(self, parser: NumericParser):
        """Test parsing simple integer."""
        result = parser.parse("1234")
        assert result.value == Decimal("1234")
        assert result.is_negative is False

    def test_parse_decimal(self, parser: NumericParser):
        """Test parsing decimal number."""
        assert parser.parse("1234.56").value == Decimal("1234.56")

    def test_parse_with_commas(self, parser: NumericParser):
        """Test parsing number with thousand separators."""
        assert parser.parse("1,234,567").value == Decimal("1234567")

    def test_parse_with_commas_and_decimal(self, parser: NumericParser):
        """Test parsing US format with commas and decimal."""
        assert parser.parse("1,234.50").value == Decimal("1234.50")

    # Currency tests
    def test_parse_usd(self, parser: NumericParser):
        """Test parsing USD currency."""
        result = parser.parse("$1,234.56")
        assert result.value == Decimal("1234.56")
        assert result.currency == "$"

    def test_parse_euro(self, parser: NumericParser):
        """Test parsing Euro currency."""
        result = parser.parse("€1234")
        assert result.value == Decimal("1234")
        assert result.currency == "€"

    # Negative number tests
    @pytest.mark.parametrize("token", ["$(1,234.50)", "1234.50-", "-1234.50", "(1,234.50)", "($1,234.50)"])
    def test_negative_notations(self, parser: NumericParser, token: str):
        """Test every negative convention resolves to the same value."""
        result = parser.parse(token)
        assert result.value == Decimal("-1234.50")
        assert result.is_negative is True

    def test_marker_does_not_double_negate(self, parser: NumericParser):
        """Test parentheses around an already negative value keep it negative."""
        assert parser.parse("(-5)").value == Decimal("-5")

    # Absent values
    @pytest.mark.parametrize("token", ["", "   ", None, "abc", "-", "N/A", "$"])
    def test_absent(self, parser: NumericParser, token):
        """Test non-numeric input is absent, never zero."""
        result = parser.parse(token)
        assert result.value is None
        assert result.is_absent

    def test_zero_is_not_absent(self, parser: NumericParser):
        """Test a real zero is a value."""
        result = parser.parse("0.00")
        assert result.value == Decimal("0.00")
        assert not result.is_absent

    def test_is_amount_token(self, parser: NumericParser):
        """Test detection of cells made of an amount only."""
        assert parser.is_amount_token("1,234.50")
        assert parser.is_amount_token("(1,200.00)")
        assert parser.is_amount_token("$(1,234.50)")
        assert parser.is_amount_token("500-")
        assert not parser.is_amount_token("Payroll")
        assert not parser.is_amount_token("6010 Payroll")
        assert not parser.is_amount_token("")

    def test_is_amount_token_spacing(self, parser: NumericParser):
        """Test whitespace is allowed after a sign or symbol, not between digit groups."""
        assert parser.is_amount_token("$ 1,234.50")
        assert parser.is_amount_token("- 500")
        assert parser.is_amount_token("( 1,200.00 )")
        assert not parser.is_amount_token("1000 1100 1050")
        assert not parser.is_amount_token("1 234")

    def test_split_amount_run(self, parser: NumericParser):
        """Test single-spaced month figures split into separate amounts."""
        assert parser.split_amount_run("1000 1100 (50) 12500") == ["1000", "1100", "(50)", "12500"]
        assert parser.split_amount_run("12500") is None
        assert parser.split_amount_run("$ 12500") is None
        assert parser.split_amount_run("1000 Payroll") is None

    def test_parse_batch(self, parser: NumericParser):
        """Test batch parsing."""
        results = parser.parse_batch(["100", "(50)", "x"])
        assert all(isinstance(r, ParsedNumber) for r in results)
        assert [r.value for r in results] == [Decimal("100"), Decimal("-50"), None]

    def test_raw_value_kept(self, parser: NumericParser):
        """Test the original token is kept."""
        assert parser.parse(" $1,000 ").raw_value == " $1,000 "


class TestResolveAmount:
    """Tests for the module-level helper."""

    def test_resolve(self):
        assert resolve_amount("$(1,234.50)") == Decimal("-1234.50")
        assert resolve_amount("") is None
