"""Bilingual search-term expansion for catalog queries."""

import logging
import re
from pathlib import Path
from typing import Dict, Optional, Union
import yaml

logger = logging.getLogger(__name__)

DEFAULT_SYNONYMS_PATH = Path(__file__).parent / "data" / "search_synonyms.yaml"

# Characters with meaning inside PostgREST filter strings
_FILTER_UNSAFE = re.compile(r"[,%]")


class QueryNormalizer:
    """
    Maps shopper vocabulary (Egyptian Arabic, Franco and English variants) onto
    the English terms used in the product catalog.

    The synonym table is plain data loaded from YAML so it can be extended
    without touching the expansion logic.
    """

    def __init__(
        self,
        synonyms: Optional[Dict[str, str]] = None,
        synonyms_path: Optional[Union[str, Path]] = None,
    ):
        """
        Initialize normalizer.

        Args:
            synonyms: Explicit term -> canonical term mapping (takes precedence)
            synonyms_path: YAML file with the mapping (default: bundled table)
        """
        if synonyms is None:
            synonyms = self._load_synonyms(synonyms_path or DEFAULT_SYNONYMS_PATH)

        self.synonyms = {
            str(term).strip().lower(): str(canonical).strip().lower()
            for term, canonical in synonyms.items()
        }

    def _load_synonyms(self, path: Union[str, Path]) -> Dict[str, str]:
        """Load synonym table from YAML."""
        with open(path, "r", encoding="utf-8") as f:
            table = yaml.safe_load(f) or {}
        logger.info(f"Loaded {len(table)} search synonyms from {path}")
        return table

    def expand(self, raw_query: str) -> str:
        """
        Expand a raw query into canonical catalog vocabulary.

        Whole-string matches win; otherwise each whitespace token is mapped
        independently and unmapped tokens pass through.

        Args:
            raw_query: Text as typed by the shopper

        Returns:
            Expanded query, or raw_query unchanged if nothing was mapped
        """
        normalized = raw_query.strip().lower()
        if not normalized:
            return raw_query

        if normalized in self.synonyms:
            expanded = self.synonyms[normalized]
        else:
            expanded = " ".join(
                self.synonyms.get(token, token) for token in normalized.split()
            )

        if expanded == " ".join(normalized.split()):
            return raw_query

        logger.debug(f"Expanded query {raw_query!r} -> {expanded!r}")
        return expanded

    @staticmethod
    def sanitize(text: str) -> str:
        """Strip characters that would break a catalog filter expression."""
        return _FILTER_UNSAFE.sub(" ", text).strip()
