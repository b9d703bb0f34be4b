"""
Synonym classifier for P&L line-item labels.

Uses substring containment of canonical category names, then of configured
synonyms, against the normalized label.
"""
import re
from typing import Iterable, List, Optional

import structlog

from lotledger.services.category_config import (
    CategoryConfig,
    CategoryDefinition,
    CategorySuggestion,
    SuggestionSource,
)

logger = structlog.get_logger(__name__)


class SynonymClassifier:
    """
    Two-tier synonym matcher.

    Matching cascade (first match wins):
    1. Canonical category name contained in the label
    2. Any configured synonym contained in the label

    When the label's section is known, that section's categories are tried
    before the rest of the table.
    """

    def __init__(self, config: CategoryConfig):
        """
        Initialize synonym classifier.

        Args:
            config: Immutable category table.
        """
        self._config = config

    @staticmethod
    def normalize(text: str) -> str:
        """
        Normalize text for containment matching.

        Args:
            text: Label or category text.

        Returns:
            Lowercased text with padded, single-spaced words.
        """
        if not text:
            return ""
        text = text.lower().strip()
        # Account codes carry no category meaning
        text = re.sub(r"^\d{3,6}[\s.\-]*", "", text)
        text = re.sub(r"\s*([/&])\s*", r"\1", text)
        text = re.sub(r"[^\w/&'\-]+", " ", text)
        return f" {' '.join(text.split())} "

    def _ordered(self, section: Optional[str]) -> List[CategoryDefinition]:
        categories = list(self._config.categories)
        if section:
            return [c for c in categories if c.section == section] + [
                c for c in categories if c.section != section
            ]
        return categories

    def _contains(self, label: str, terms: Iterable[str]) -> bool:
        return any(self.normalize(term) in label for term in terms if term)

    def classify(self, label: str, section: Optional[str] = None) -> Optional[CategorySuggestion]:
        """
        Map a raw label to a canonical category.

        Args:
            label: Raw line-item label.
            section: Optional statement section the label came from.

        Returns:
            CategorySuggestion, or None when the label stays unmapped.
        """
        normalized = self.normalize(label)
        if not normalized.strip():
            return None

        ordered = self._ordered(section)

        for category in ordered:
            if self._contains(normalized, [category.name]):
                return CategorySuggestion(category=category.name, source=SuggestionSource.SYNONYM)

        for category in ordered:
            if self._contains(normalized, category.synonyms):
                return CategorySuggestion(category=category.name, source=SuggestionSource.SYNONYM)

        return None
