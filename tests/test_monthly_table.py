"""
Unit tests for the monthly-table state machine.
"""
import pytest

from lotledger.services.monthly_table import (
    MonthlyTableClassifier,
    RowRole,
    TableState,
    count_month_headers,
    has_summary_header,
    is_month_token,
)
from lotledger.services.row_tokenizer import RowTokenizer, TokenizedRow


class TestMonthTokens:
    """Tests for month and summary header detection."""

    @pytest.mark.parametrize("token", ["Jan", "January", "SEPT", "Sep 2023", "Dec-24", "mar."])
    def test_month_tokens(self, token: str):
        assert is_month_token(token)

    @pytest.mark.parametrize("token", ["Payroll", "Janitorial", "Total", ""])
    def test_non_month_tokens(self, token: str):
        assert not is_month_token(token)

    def test_counts_words_inside_single_cell(self):
        """Test single-space headers arriving as one cell still count."""
        row = TokenizedRow(cells=["Jan Feb Mar YTD"])
        assert count_month_headers(row) == 3
        assert has_summary_header(row)


class TestMonthlyTableClassifier:
    """Tests for MonthlyTableClassifier transitions."""

    @pytest.fixture
    def classifier(self) -> MonthlyTableClassifier:
        return MonthlyTableClassifier()

    @pytest.fixture
    def tokenizer(self) -> RowTokenizer:
        return RowTokenizer()

    def test_starts_outside_table(self, classifier: MonthlyTableClassifier):
        assert classifier.state == TableState.NOT_IN_TABLE

    def test_enters_on_three_months(self, classifier, tokenizer):
        """Test three month headers open a table."""
        result = classifier.feed(tokenizer.tokenize("Account  Jan  Feb  Mar"))
        assert result.role == RowRole.HEADER
        assert result.month_headers == 3
        assert classifier.state == TableState.IN_MONTHLY_TABLE

    def test_enters_on_month_plus_summary(self, classifier, tokenizer):
        """Test one month header plus YTD opens a table."""
        result = classifier.feed(tokenizer.tokenize("Account  Dec  YTD"))
        assert result.role == RowRole.HEADER

    def test_two_months_without_summary_do_not_enter(self, classifier, tokenizer):
        result = classifier.feed(tokenizer.tokenize("Account  Jan  Feb"))
        assert result.role == RowRole.PLAIN
        assert classifier.state == TableState.NOT_IN_TABLE

    def test_data_rows_inside_table(self, classifier, tokenizer):
        classifier.feed(tokenizer.tokenize("Account  Jan  Feb  Mar  YTD"))
        result = classifier.feed(tokenizer.tokenize("6010 Payroll  100  200  300  600"))
        assert result.role == RowRole.MONTHLY_DATA

    def test_exits_on_blank_row(self, classifier, tokenizer):
        """Test a blank row closes the table."""
        classifier.feed(tokenizer.tokenize("Account  Jan  Feb  Mar"))
        result = classifier.feed(tokenizer.tokenize(""))
        assert result.role == RowRole.BREAK
        assert classifier.state == TableState.NOT_IN_TABLE

    def test_exits_on_single_cell_row(self, classifier, tokenizer):
        """Test a heading-like single-cell row closes the table."""
        classifier.feed(tokenizer.tokenize("Account  Jan  Feb  Mar"))
        classifier.feed(tokenizer.tokenize("Expenses"))
        assert classifier.state == TableState.NOT_IN_TABLE

    def test_counts_tables(self, classifier, tokenizer):
        for line in ["Account  Jan  Feb  Mar", "Rent  1  2  3", "", "Account  Apr  May  Jun", ""]:
            classifier.feed(tokenizer.tokenize(line))
        assert classifier.tables_seen == 2

        classifier.reset()
        assert classifier.tables_seen == 0
        assert classifier.state == TableState.NOT_IN_TABLE
