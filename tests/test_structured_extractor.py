"""
Unit tests for the structured-extraction collaborator.
"""
import json
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from openai import OpenAIError

from lotledger.exceptions import CollaboratorUnavailableError, StructuredPayloadError
from lotledger.schemas.structured import (
    StructuredLineItem,
    StructuredPnlPayload,
    StructuredRentRollPayload,
    coerce_amount,
)
from lotledger.services.structured_extractor import (
    OpenAIStructuredExtractor,
    get_structured_extractor,
)


def _response(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    response.usage.total_tokens = 42
    return response


@pytest.fixture
def client() -> MagicMock:
    return MagicMock()


@pytest.fixture
def extractor(client: MagicMock) -> OpenAIStructuredExtractor:
    return OpenAIStructuredExtractor(model="gpt-4o", rent_roll_model="gpt-4o-mini", max_chars=8000, client=client)


class TestStructuredPnlPayload:
    """Tests for payload validation."""

    def test_expenses_alias(self):
        payload = StructuredPnlPayload.model_validate({
            "income": [{"label": "Lot Rent", "amount": 120000}],
            "expenses": [{"label": "Payroll", "amount": "45,000.00"}],
        })
        assert payload.expense[0].amount == Decimal("45000.00")
        assert payload.row_count == 2

    def test_invalid_items_dropped(self):
        """Test items without a usable label or amount are dropped, not fatal."""
        payload = StructuredPnlPayload.model_validate({
            "income": [
                {"label": "Lot Rent", "amount": 120000},
                {"label": "Laundry", "amount": "n/a"},
                {"label": "", "amount": 5},
                {"label": "Late Fees", "amount": True},
                "junk",
            ],
        })
        assert [i.label for i in payload.income] == ["Lot Rent"]

    def test_keyed_map_items(self):
        payload = StructuredPnlPayload.model_validate({"income": {"Lot Rent": "$120,000"}})
        assert payload.income[0].label == "Lot Rent"
        assert payload.income[0].amount == Decimal("120000")

    def test_decimal_amount_accepted(self):
        """Test an already-resolved Decimal passes item validation unchanged."""
        item = StructuredLineItem(label="Lot Rent", amount=Decimal("120000"))
        assert item.amount == Decimal("120000")
        assert coerce_amount(Decimal("-12.50")) == Decimal("-12.50")
        assert coerce_amount(Decimal("NaN")) is None
        assert coerce_amount(float("inf")) is None

    def test_net_income(self):
        payload = StructuredPnlPayload.model_validate({"net_income": "$(1,500.00)"})
        assert payload.net_income == Decimal("-1500.00")
        assert StructuredPnlPayload.model_validate({"net_income": "unknown"}).net_income is None


class TestStructuredRentRollPayload:
    """Tests for rent-roll payload unwrapping."""

    @pytest.mark.parametrize("data", [
        [{"lot": 1}],
        {"rows": [{"lot": 1}]},
        {"data": [{"lot": 1}]},
    ])
    def test_shapes(self, data):
        assert StructuredRentRollPayload.model_validate(data).rows == [{"lot": 1}]

    def test_unknown_object(self):
        assert StructuredRentRollPayload.model_validate({"other": 1}).rows == []


class TestOpenAIStructuredExtractor:
    """Tests for OpenAIStructuredExtractor with a mocked client."""

    def test_extract_pnl(self, extractor, client):
        client.chat.completions.create.return_value = _response(json.dumps({
            "income": [{"label": "Lot Rent Income", "amount": 120000}],
            "expense": [{"label": "Payroll", "amount": 45000}],
            "net_income": 75000,
        }))

        payload = extractor.extract_pnl("4105 Lot Rent Income 120,000.00")

        assert payload.income[0].label == "Lot Rent Income"
        assert payload.net_income == Decimal("75000")
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert extractor.get_usage_stats() == {"call_count": 1, "total_tokens": 42}

    def test_prompt_truncated(self, client):
        extractor = OpenAIStructuredExtractor(max_chars=10, client=client)
        client.chat.completions.create.return_value = _response("{}")

        extractor.extract_pnl("x" * 50)

        messages = client.chat.completions.create.call_args.kwargs["messages"]
        assert messages[-1]["content"] == "x" * 10

    def test_sdk_error(self, extractor, client):
        """Test transport errors become collaborator failures."""
        client.chat.completions.create.side_effect = OpenAIError("boom")
        with pytest.raises(CollaboratorUnavailableError) as exc_info:
            extractor.extract_pnl("text")
        assert exc_info.value.error_code == "LL-900"

    def test_empty_content(self, extractor, client):
        client.chat.completions.create.return_value = _response(None)
        with pytest.raises(CollaboratorUnavailableError):
            extractor.extract_pnl("text")

    def test_invalid_json(self, extractor, client):
        client.chat.completions.create.return_value = _response("not json")
        with pytest.raises(StructuredPayloadError) as exc_info:
            extractor.extract_pnl("text")
        assert exc_info.value.error_code == "LL-901"

    def test_non_object_payload(self, extractor, client):
        client.chat.completions.create.return_value = _response("[1, 2]")
        with pytest.raises(StructuredPayloadError):
            extractor.extract_pnl("text")

    def test_schema_violation(self, extractor, client):
        client.chat.completions.create.return_value = _response(json.dumps({"income": "lots"}))
        with pytest.raises(StructuredPayloadError):
            extractor.extract_pnl("text")

    def test_extract_rent_roll(self, extractor, client):
        client.chat.completions.create.return_value = _response(json.dumps({
            "rows": [{"lotNumber": "1", "tenantName": "A. Resident", "occupied": True, "rent": 450}],
        }))

        rows = extractor.extract_rent_roll("1 A. Resident 450")

        assert rows == [{"lotNumber": "1", "tenantName": "A. Resident", "occupied": True, "rent": 450}]
        assert client.chat.completions.create.call_args.kwargs["model"] == "gpt-4o-mini"

    def test_usage_stats_across_threads(self, extractor, client):
        """Test concurrent rent-roll chunks are all counted."""
        client.chat.completions.create.return_value = _response(json.dumps({"rows": []}))

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(extractor.extract_rent_roll, ["chunk"] * 64))

        assert extractor.get_usage_stats() == {"call_count": 64, "total_tokens": 64 * 42}

    def test_not_configured_without_key(self):
        """Test no extractor is built without an API key."""
        assert get_structured_extractor() is None
