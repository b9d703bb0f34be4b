"""
Category configuration for label mapping.

Loads the canonical category/synonym table from YAML into an immutable
object that is passed explicitly to the category mapper.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
import yaml

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORY_CONFIG_PATH = Path(__file__).parent.parent / "data" / "categories.yaml"


class SuggestionSource(str, Enum):
    """Where a category suggestion came from."""
    SYNONYM = "synonym"
    EMBEDDING = "embedding"


@dataclass(frozen=True)
class CategorySuggestion:
    """Advisory category for a raw label; consumers may override."""

    category: str
    source: SuggestionSource
    score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"category": self.category, "source": self.source.value}
        if self.score is not None:
            data["score"] = round(self.score, 4)
        return data


@dataclass(frozen=True)
class CategoryDefinition:
    """A canonical category with its synonyms."""

    name: str
    section: str
    synonyms: Tuple[str, ...] = ()

    @property
    def name_lower(self) -> str:
        return self.name.lower()

    @property
    def synonyms_lower(self) -> Tuple[str, ...]:
        return tuple(s.lower() for s in self.synonyms)


@dataclass(frozen=True)
class CategoryConfig:
    """Immutable, ordered category table."""

    categories: Tuple[CategoryDefinition, ...] = field(default_factory=tuple)

    def for_section(self, section: str) -> Tuple[CategoryDefinition, ...]:
        return tuple(c for c in self.categories if c.section == section)

    def names(self, section: Optional[str] = None) -> List[str]:
        return [c.name for c in self.categories if section is None or c.section == section]

    def get(self, name: str) -> Optional[CategoryDefinition]:
        lowered = name.lower()
        return next((c for c in self.categories if c.name_lower == lowered), None)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryConfig":
        """
        Build a config from ``{section: [{category, synonyms}]}``.

        Args:
            data: Parsed YAML/JSON mapping.

        Returns:
            CategoryConfig preserving file order.
        """
        categories: List[CategoryDefinition] = []
        for section, entries in (data or {}).items():
            if not isinstance(entries, list):
                continue
            for entry in entries:
                if not isinstance(entry, dict) or not entry.get("category"):
                    continue
                categories.append(
                    CategoryDefinition(
                        name=str(entry["category"]).strip(),
                        section=str(section),
                        synonyms=tuple(str(s).strip() for s in entry.get("synonyms") or [] if str(s).strip()),
                    )
                )
        return cls(categories=tuple(categories))


def load_category_config(path: Optional[Path] = None) -> CategoryConfig:
    """
    Load the category table from a YAML file.

    Args:
        path: YAML file; the packaged default when omitted.

    Returns:
        CategoryConfig instance.
    """
    path = Path(path) if path else DEFAULT_CATEGORY_CONFIG_PATH
    logger.info("Loading category config", path=str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except Exception as e:
        logger.error("Failed to load category config", path=str(path), error=str(e))
        raise

    config = CategoryConfig.from_dict(data)
    logger.info("Category config loaded", categories=len(config.categories))
    return config
