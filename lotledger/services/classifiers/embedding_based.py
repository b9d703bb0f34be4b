"""
Label-embedding store for category suggestions.

Uses SentenceTransformers (all-MiniLM-L6-v2) to embed labeled examples and
find the nearest labeled neighbor of a new line-item label by cosine
similarity. Matches are advisory only.
"""
import pickle
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

import numpy as np
import structlog

from lotledger.exceptions import CollaboratorUnavailableError
from lotledger.policy import EMBEDDING_SIMILARITY_THRESHOLD

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EmbeddingMatch:
    """Nearest labeled neighbor of a label."""

    label: str
    category: str
    score: float
    matched_label: str
    section: Optional[str] = None


class LabelEmbeddingStore(Protocol):
    """Anything that can suggest a category for a label by similarity."""

    def match(self, label: str) -> Optional[EmbeddingMatch]:
        ...


class SentenceTransformerLabelStore:
    """
    Embedding store backed by a pickled corpus of labeled examples.

    The corpus grows through ``add_examples`` (labels users mapped by hand)
    and is written back to ``embeddings_path`` after every addition.
    """

    MODEL_NAME = "all-MiniLM-L6-v2"
    SERVICE_NAME = "label-embedding-store"

    def __init__(
        self,
        embeddings_path: Optional[Path] = None,
        model_name: Optional[str] = None,
        threshold: float = EMBEDDING_SIMILARITY_THRESHOLD,
        model: Any = None,
    ):
        """
        Initialize the embedding store.

        Args:
            embeddings_path: Pickle holding the labeled corpus.
            model_name: SentenceTransformer model to load lazily.
            threshold: Minimum cosine similarity for a match.
            model: Preloaded encoder exposing ``encode``.
        """
        self._embeddings_path = Path(embeddings_path) if embeddings_path else None
        self._model_name = model_name or self.MODEL_NAME
        self._threshold = threshold
        self._model = model
        self._embeddings: Optional[np.ndarray] = None
        self._labels: List[str] = []
        self._categories: List[str] = []
        self._sections: List[Optional[str]] = []

        if self._embeddings_path and self._embeddings_path.exists():
            self._load_embeddings()

    @property
    def size(self) -> int:
        return len(self._labels)

    @property
    def threshold(self) -> float:
        return self._threshold

    def _load_embeddings(self) -> None:
        """Load the labeled corpus from the pickle file."""
        logger.info("Loading label embeddings", path=str(self._embeddings_path))

        try:
            with open(self._embeddings_path, "rb") as f:
                data = pickle.load(f)

            self._embeddings = data["embeddings"]
            self._labels = list(data["labels"])
            self._categories = list(data["categories"])
            self._sections = list(data.get("sections") or [None] * len(self._labels))

            logger.info("Label embeddings loaded", count=len(self._labels))
        except Exception as e:
            logger.error("Failed to load label embeddings", error=str(e))
            self._embeddings = None
            self._labels, self._categories, self._sections = [], [], []

    def _save_embeddings(self) -> None:
        """Save the labeled corpus to the pickle file."""
        if not self._embeddings_path:
            return

        logger.info("Saving label embeddings", path=str(self._embeddings_path))

        try:
            self._embeddings_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self._embeddings_path, "wb") as f:
                pickle.dump({
                    "embeddings": self._embeddings,
                    "labels": self._labels,
                    "categories": self._categories,
                    "sections": self._sections,
                    "model": self._model_name,
                }, f)

        except Exception as e:
            logger.error("Failed to save label embeddings", error=str(e))

    def _get_model(self) -> Any:
        """Get or load the sentence transformer model."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            self._model = SentenceTransformer(self._model_name)
        return self._model

    def _encode(self, texts: List[str]) -> np.ndarray:
        try:
            return np.asarray(
                self._get_model().encode(
                    texts,
                    convert_to_numpy=True,
                    show_progress_bar=False,
                    normalize_embeddings=True,  # For cosine similarity via dot product
                )
            )
        except Exception as e:
            raise CollaboratorUnavailableError(self.SERVICE_NAME, str(e)) from e

    def add_examples(self, examples: List[Dict[str, Any]]) -> int:
        """
        Add hand-mapped labels to the corpus.

        Args:
            examples: Dicts with ``label``, ``category`` and optional ``section``.

        Returns:
            Number of examples stored.
        """
        valid = [
            e for e in examples or []
            if isinstance(e, dict)
            and isinstance(e.get("label"), str) and e["label"].strip()
            and isinstance(e.get("category"), str) and e["category"].strip()
        ]
        if not valid:
            return 0

        vectors = self._encode([e["label"].strip() for e in valid])
        self._embeddings = vectors if self._embeddings is None else np.vstack([self._embeddings, vectors])
        self._labels.extend(e["label"].strip() for e in valid)
        self._categories.extend(e["category"].strip() for e in valid)
        self._sections.extend(e.get("section") or None for e in valid)

        self._save_embeddings()
        logger.info("Label examples stored", stored=len(valid), corpus=len(self._labels))
        return len(valid)

    def match(self, label: str) -> Optional[EmbeddingMatch]:
        """
        Find the nearest labeled example above the similarity threshold.

        Args:
            label: Raw line-item label.

        Returns:
            EmbeddingMatch, or None when nothing is similar enough.
        """
        if not label or not label.strip() or self._embeddings is None or not self._labels:
            return None

        query = self._encode([label.strip()])[0]
        similarities = np.dot(self._embeddings, query)
        best = int(np.argmax(similarities))
        score = float(similarities[best])

        if score < self._threshold:
            return None

        return EmbeddingMatch(
            label=label,
            category=self._categories[best],
            score=score,
            matched_label=self._labels[best],
            section=self._sections[best],
        )
