"""
Unit Tests - Classification Normalization
"""
import pytest

from surface_analytics.analytics.classification import (
    Classification,
    ClassificationNormalizer,
    display_label,
    normalize_classification,
)


class TestClassificationNormalizer:
    """Tests for ClassificationNormalizer"""

    @pytest.mark.parametrize("raw", [
        "hard_surface", "Hard-Surface", "HARD SURFACE", "hard  surface", " hard__surface ",
    ])
    def test_hard_surface_spellings(self, raw):
        """Test hard surface variants"""
        assert normalize_classification(raw) == Classification.HARD_SURFACE

    @pytest.mark.parametrize("raw", ["carpet", "Carpet", " CARPET "])
    def test_carpet_spellings(self, raw):
        """Test carpet variants"""
        assert normalize_classification(raw) == Classification.CARPET

    @pytest.mark.parametrize("raw", ["", "unknown", "mixed", "both", "tile", None, 7])
    def test_everything_else_is_mixed(self, raw):
        """Test fallback to mixed"""
        assert normalize_classification(raw) == Classification.MIXED

    @pytest.mark.parametrize("raw", ["Hard-Surface", "carpet", "both", "", None])
    def test_idempotent(self, raw):
        """Test normalize(normalize(x)) == normalize(x)"""
        normalizer = ClassificationNormalizer()
        once = normalizer.normalize(raw)

        assert normalizer.normalize(once) == once
        assert normalizer.normalize(once.value) == once

    def test_canonical_text(self):
        """Test separator collapsing"""
        assert ClassificationNormalizer.canonical_text("Hard_-  Surface") == "hard surface"

    def test_display_labels(self):
        """Test report labels"""
        assert display_label(Classification.HARD_SURFACE) == "Hard Surface"
        assert display_label(Classification.CARPET) == "Carpet"
        assert display_label(Classification.MIXED) == "Mixed"
