"""
Category mapper combining the synonym table and the label-embedding store.

Cascade per label:
1. Synonym tier (category name, then synonyms) → authoritative suggestion
2. Embedding store (optional) → lower-priority suggestion above threshold
3. Otherwise the label is reported as unmapped
"""
import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from lotledger.exceptions import CollaboratorUnavailableError
from lotledger.policy import DEFAULT_POLICY, ExtractionPolicy
from lotledger.services.category_config import (
    CategoryConfig,
    CategorySuggestion,
    SuggestionSource,
)
from lotledger.services.classifiers.embedding_based import (
    EmbeddingMatch,
    LabelEmbeddingStore,
)
from lotledger.services.classifiers.synonym import SynonymClassifier

logger = structlog.get_logger(__name__)

LabelRef = Tuple[str, Optional[str]]  # (label, section)


@dataclass
class MappingStats:
    """Statistics for one mapping pass."""

    total: int = 0
    synonym: int = 0
    embedding: int = 0
    unmapped: int = 0

    @property
    def coverage_pct(self) -> float:
        return ((self.synonym + self.embedding) / self.total * 100) if self.total else 0


@dataclass
class MappingOutcome:
    """Suggestions keyed by lowercased label plus the labels left unmapped."""

    suggestions: Dict[str, CategorySuggestion] = field(default_factory=dict)
    unmapped: List[str] = field(default_factory=list)
    stats: MappingStats = field(default_factory=MappingStats)


class CategoryMapper:
    """
    Hybrid category mapper.

    The synonym tier always wins over an embedding hit for the same label.
    Embedding lookups are dispatched concurrently, one task per label, and
    joined before the outcome is built. A failing store only costs the
    embedding tier.
    """

    def __init__(
        self,
        config: CategoryConfig,
        embedding_store: Optional[LabelEmbeddingStore] = None,
        policy: ExtractionPolicy = DEFAULT_POLICY,
        max_concurrency: int = 4,
    ):
        """
        Initialize category mapper.

        Args:
            config: Immutable category table.
            embedding_store: Optional nearest-neighbor store.
            policy: Thresholds (embedding similarity).
            max_concurrency: Parallel embedding lookups.
        """
        self._config = config
        self._synonyms = SynonymClassifier(config)
        self._embedding_store = embedding_store
        self._policy = policy
        self._max_concurrency = max(1, max_concurrency)

    @property
    def config(self) -> CategoryConfig:
        return self._config

    @property
    def embedding_store(self) -> Optional[LabelEmbeddingStore]:
        return self._embedding_store

    def map_label(self, label: str, section: Optional[str] = None) -> Optional[CategorySuggestion]:
        """Synonym-tier suggestion for a single label."""
        return self._synonyms.classify(label, section)

    async def _lookup_embeddings(self, labels: List[str]) -> Dict[str, Optional[EmbeddingMatch]]:
        """Query the embedding store for each label concurrently."""
        semaphore = asyncio.Semaphore(self._max_concurrency)
        loop = asyncio.get_running_loop()

        async def lookup(label: str) -> Tuple[str, Optional[EmbeddingMatch]]:
            async with semaphore:
                try:
                    match = await loop.run_in_executor(None, self._embedding_store.match, label)
                    return label, match
                except CollaboratorUnavailableError as e:
                    logger.warning("Embedding lookup failed", label=label[:50], error=e.message)
                    return label, None

        results = await asyncio.gather(*(lookup(label) for label in labels))
        return dict(results)

    async def suggest_async(self, labels: Sequence[LabelRef]) -> MappingOutcome:
        """
        Suggest categories for labels.

        Args:
            labels: (label, section) pairs in statement order.

        Returns:
            MappingOutcome with suggestions and unmapped labels.
        """
        outcome = MappingOutcome()
        pending: List[str] = []
        seen = set()

        for label, section in labels:
            key = (label or "").strip().lower()
            if not key or key in seen:
                continue
            seen.add(key)
            outcome.stats.total += 1

            suggestion = self.map_label(label, section)
            if suggestion is not None:
                outcome.suggestions[key] = suggestion
                outcome.stats.synonym += 1
            else:
                pending.append(label)

        matches: Dict[str, Optional[EmbeddingMatch]] = {}
        if pending and self._embedding_store is not None:
            matches = await self._lookup_embeddings(pending)

        threshold = self._policy.embedding_similarity_threshold
        for label in pending:
            key = label.strip().lower()
            match = matches.get(label)
            if match is not None and match.score >= threshold and key not in outcome.suggestions:
                outcome.suggestions[key] = CategorySuggestion(
                    category=match.category,
                    source=SuggestionSource.EMBEDDING,
                    score=match.score,
                )
                outcome.stats.embedding += 1
            else:
                outcome.unmapped.append(label)
                outcome.stats.unmapped += 1

        logger.info(
            "Category mapping complete",
            total=outcome.stats.total,
            synonym=outcome.stats.synonym,
            embedding=outcome.stats.embedding,
            unmapped=outcome.stats.unmapped,
        )
        return outcome

    def suggest(self, labels: Sequence[LabelRef]) -> MappingOutcome:
        """Synchronous wrapper around ``suggest_async``."""
        return asyncio.run(self.suggest_async(labels))
