"""
Structured-extraction collaborator.

Sends document text to an OpenAI chat model in JSON mode and validates the
reply. The collaborator is untrusted: every failure (transport, empty
reply, malformed JSON, schema violation) surfaces as
CollaboratorUnavailableError so the pipeline can fall back to a lower tier.
"""
import json
import threading
from typing import Any, Dict, List, Optional, Protocol

import structlog
from openai import OpenAI, OpenAIError
from pydantic import ValidationError

from lotledger.config import get_settings
from lotledger.exceptions import CollaboratorUnavailableError, StructuredPayloadError
from lotledger.schemas.structured import StructuredPnlPayload, StructuredRentRollPayload

logger = structlog.get_logger(__name__)

SERVICE_NAME = "openai"


class StructuredExtractor(Protocol):
    """Text-in / JSON-out extraction collaborator."""

    def extract_pnl(self, text: str) -> StructuredPnlPayload:
        ...

    def extract_rent_roll(self, text: str) -> List[Dict[str, Any]]:
        ...


class OpenAIStructuredExtractor:
    """
    Structured extractor backed by OpenAI chat completions.

    Prompts request annual totals only, so month-by-month columns are not
    returned as separate items.
    """

    TEMPERATURE = 0.1

    PNL_SYSTEM_PROMPT = """You are a financial statement parser for mobile home park and real estate Profit & Loss statements.

Return a JSON object in exactly this format:
{
  "income": [{"label": "string", "amount": number}],
  "expense": [{"label": "string", "amount": number}],
  "other_expense": [{"label": "string", "amount": number}],
  "net_income": number | null
}

Rules:
- Use the annual total (YTD or Total column) for each line item, never individual months.
- Do not include subtotal, total or net rows as line items.
- Amounts in parentheses are negative.
- Depreciation, amortization, interest and capital items belong in other_expense."""

    RENT_ROLL_PROMPT = """You are a document parser for mobile home park rent rolls.
Return a JSON object with a top-level property 'rows' that contains an array of lot entries in this format:
{
  "rows": [
    {"lotNumber": number | string, "tenantName": string | null, "occupied": boolean, "rent": number}
  ]
}
If no tenant name, use null. If rent missing, use 0.
Be lenient to messy data and extract all rows possible.

Text:
"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        rent_roll_model: Optional[str] = None,
        max_chars: Optional[int] = None,
        client: Optional[Any] = None,
    ):
        """
        Initialize structured extractor.

        Args:
            api_key: OpenAI API key (defaults to settings).
            model: Model used for P&L extraction.
            rent_roll_model: Model used for rent-roll extraction.
            max_chars: Prompt text is truncated to this many characters.
            client: Pre-built OpenAI-compatible client.
        """
        settings = get_settings()
        self._model = model or settings.structured_model
        self._rent_roll_model = rent_roll_model or settings.rent_roll_model
        self._max_chars = max_chars or settings.structured_max_chars
        self._client = client or OpenAI(api_key=api_key or settings.openai_api_key)
        self._call_count = 0
        self._total_tokens = 0
        self._stats_lock = threading.Lock()

    def _complete(self, model: str, messages: List[Dict[str, str]]) -> Any:
        """Run one JSON-mode completion and decode the reply."""
        try:
            response = self._client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.TEMPERATURE,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            logger.warning("Structured extraction call failed", model=model, error=str(e))
            raise CollaboratorUnavailableError(SERVICE_NAME, f"OpenAI request failed: {e}") from e

        # Rent-roll chunks complete on several executor threads
        with self._stats_lock:
            self._call_count += 1
            if getattr(response, "usage", None):
                self._total_tokens += response.usage.total_tokens

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CollaboratorUnavailableError(SERVICE_NAME, "OpenAI returned an empty response")

        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise StructuredPayloadError(SERVICE_NAME, errors=[f"invalid JSON: {e}"]) from e

    def extract_pnl(self, text: str) -> StructuredPnlPayload:
        """
        Extract P&L line items.

        Args:
            text: Normalized document text.

        Returns:
            Validated StructuredPnlPayload.

        Raises:
            CollaboratorUnavailableError: Call failed or reply is unusable.
        """
        data = self._complete(self._model, [
            {"role": "system", "content": self.PNL_SYSTEM_PROMPT},
            {"role": "user", "content": text[: self._max_chars]},
        ])
        if not isinstance(data, dict):
            raise StructuredPayloadError(SERVICE_NAME, errors=["expected a JSON object"])

        try:
            payload = StructuredPnlPayload.model_validate(data)
        except ValidationError as e:
            raise StructuredPayloadError(
                SERVICE_NAME, errors=[err["msg"] for err in e.errors()]
            ) from e

        logger.info(
            "Structured P&L extraction complete",
            model=self._model,
            income=len(payload.income),
            expense=len(payload.expense),
            other_expense=len(payload.other_expense),
        )
        return payload

    def extract_rent_roll(self, text: str) -> List[Dict[str, Any]]:
        """
        Extract rent-roll records.

        Returns:
            Raw per-lot records; keys are normalized downstream.
        """
        data = self._complete(self._rent_roll_model, [
            {"role": "user", "content": self.RENT_ROLL_PROMPT + text[: self._max_chars]},
        ])

        try:
            payload = StructuredRentRollPayload.model_validate(data)
        except ValidationError as e:
            raise StructuredPayloadError(
                SERVICE_NAME, errors=[err["msg"] for err in e.errors()]
            ) from e

        logger.info("Structured rent roll extraction complete", model=self._rent_roll_model, rows=len(payload.rows))
        return payload.rows

    def get_usage_stats(self) -> Dict[str, int]:
        """Get API usage statistics."""
        with self._stats_lock:
            return {
                "call_count": self._call_count,
                "total_tokens": self._total_tokens,
            }


def get_structured_extractor() -> Optional[OpenAIStructuredExtractor]:
    """Build the default extractor, or None when no API key is configured."""
    settings = get_settings()
    if not settings.structured_extraction_enabled:
        logger.info("Structured extraction disabled (no API key)")
        return None
    return OpenAIStructuredExtractor(api_key=settings.openai_api_key)
