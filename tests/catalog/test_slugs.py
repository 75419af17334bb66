"""Tests for SKU and option summary helpers."""

import pytest

from dairycart.catalog.slugs import build_option_summary, build_sku, require_slug, slugify
from dairycart.domain.exceptions import InvariantViolationError


class TestSlugify:
    """Tests for slugify."""

    def test_lowercases(self) -> None:
        assert slugify("Red") == "red"

    def test_collapses_non_alphanumeric_runs(self) -> None:
        assert slugify("Extra  Large!!") == "extra-large"

    def test_strips_leading_and_trailing_separators(self) -> None:
        assert slugify("  (Navy) ") == "navy"

    def test_keeps_digits(self) -> None:
        assert slugify("32 oz") == "32-oz"

    def test_punctuation_only_gives_empty_slug(self) -> None:
        assert slugify("!!!") == ""

    def test_require_slug_rejects_empty(self) -> None:
        with pytest.raises(InvariantViolationError):
            require_slug("***")

    def test_require_slug_returns_slug(self) -> None:
        assert require_slug("Dark Blue") == "dark-blue"


class TestBuildSku:
    """Tests for build_sku."""

    def test_joins_prefix_and_values(self) -> None:
        assert build_sku("tshirt", ["Red", "S"]) == "tshirt-red-s"

    def test_no_values_gives_prefix(self) -> None:
        assert build_sku("mug", []) == "mug"

    def test_values_are_slugified(self) -> None:
        assert build_sku("tshirt", ["Dark Blue", "XL"]) == "tshirt-dark-blue-xl"


class TestBuildOptionSummary:
    """Tests for build_option_summary."""

    def test_renders_pairs_in_order(self) -> None:
        summary = build_option_summary([("Color", "Red"), ("Size", "S")])
        assert summary == "Color: Red, Size: S"

    def test_keeps_original_value_text(self) -> None:
        assert build_option_summary([("Size", "Extra Large")]) == "Size: Extra Large"

    def test_empty(self) -> None:
        assert build_option_summary([]) == ""
