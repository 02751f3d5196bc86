"""
Surface Classification Normalization

Maps free-form surface labels ("Hard-Surface", "hard_surface", "CARPET",
"both", ...) onto the three canonical classifications.
"""

import re
from enum import Enum
from typing import Dict, Optional


class Classification(str, Enum):
    """Canonical surface classifications"""
    CARPET = "carpet"
    HARD_SURFACE = "hard_surface"
    MIXED = "mixed"


DISPLAY_LABELS: Dict[Classification, str] = {
    Classification.CARPET: "Carpet",
    Classification.HARD_SURFACE: "Hard Surface",
    Classification.MIXED: "Mixed",
}

_SEPARATORS = re.compile(r"[\s_\-]+")


class ClassificationNormalizer:
    """
    Total, idempotent label normalizer.

    Anything that is not recognised as carpet or hard surface falls back to
    ``mixed``; the normalizer never fails.
    """

    def __init__(self, aliases: Optional[Dict[str, Classification]] = None):
        self.aliases = aliases or {
            "hard surface": Classification.HARD_SURFACE,
            "carpet": Classification.CARPET,
        }

    @staticmethod
    def canonical_text(raw: str) -> str:
        """Case-fold and collapse ``_``, ``-`` and whitespace runs into one space"""
        return _SEPARATORS.sub(" ", raw.lower()).strip()

    def normalize(self, raw: Optional[str] = None) -> Classification:
        if isinstance(raw, Classification):
            return raw
        if not isinstance(raw, str):
            return Classification.MIXED
        return self.aliases.get(self.canonical_text(raw), Classification.MIXED)


_default_normalizer = ClassificationNormalizer()


def normalize_classification(raw: Optional[str] = None) -> Classification:
    """Convenience wrapper around the default ClassificationNormalizer"""
    return _default_normalizer.normalize(raw)


def display_label(classification: Classification) -> str:
    """Human readable label for report output"""
    return DISPLAY_LABELS[classification]
