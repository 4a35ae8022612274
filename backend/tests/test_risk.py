"""Unit tests for category risk resolution."""

import logging

import pytest

from age_policy.risk import (
    CATEGORY_RISK_MAP,
    STANDARD_CATEGORY_RISK_MAP,
    CategoryRiskResolver,
    RiskSource,
    UnmappedCategory,
    resolve_risk,
)
from age_policy.types import RiskCategory


class TestLookupTables:
    @pytest.mark.parametrize("category,expected", sorted(CATEGORY_RISK_MAP.items()))
    def test_every_legacy_category_resolves(self, category, expected):
        assert resolve_risk(legacy_category=category) == expected

    @pytest.mark.parametrize("slug,expected", sorted(STANDARD_CATEGORY_RISK_MAP.items()))
    def test_every_slug_resolves(self, slug, expected):
        assert resolve_risk(standard_slug=slug) == expected

    def test_known_assignments(self):
        assert CATEGORY_RISK_MAP["BABYSITTING"] == RiskCategory.HIGH_RISK
        assert CATEGORY_RISK_MAP["DOG_WALKING"] == RiskCategory.MEDIUM_RISK
        assert CATEGORY_RISK_MAP["TECH_HELP"] == RiskCategory.LOW_RISK
        assert STANDARD_CATEGORY_RISK_MAP["child-family-support"] == RiskCategory.HIGH_RISK
        assert STANDARD_CATEGORY_RISK_MAP["pet-animal-care"] == RiskCategory.MEDIUM_RISK


class TestPrecedence:
    def test_slug_wins_over_legacy_category(self):
        resolver = CategoryRiskResolver()
        resolution = resolver.resolve("TECH_HELP", "child-family-support")

        assert resolution.risk == RiskCategory.HIGH_RISK
        assert resolution.source == RiskSource.STANDARD_SLUG
        assert resolution.matched_key == "child-family-support"

    def test_unknown_slug_falls_back_to_legacy(self):
        resolution = CategoryRiskResolver().resolve("BABYSITTING", "no-such-slug")

        assert resolution.risk == RiskCategory.HIGH_RISK
        assert resolution.source == RiskSource.LEGACY_CATEGORY

    def test_inputs_are_normalized(self):
        assert resolve_risk(legacy_category="  babysitting ") == RiskCategory.HIGH_RISK
        assert resolve_risk(standard_slug="Pet-Animal-Care") == RiskCategory.MEDIUM_RISK

    def test_blank_inputs_treated_as_missing(self):
        resolution = CategoryRiskResolver().resolve("", "   ")
        assert resolution.source == RiskSource.DEFAULT


class TestUnmapped:
    def test_unmapped_defaults_to_low_risk_and_signals(self, caplog):
        signals: list[UnmappedCategory] = []
        resolver = CategoryRiskResolver(on_unmapped=signals.append)

        with caplog.at_level(logging.WARNING):
            resolution = resolver.resolve("UNDERWATER_WELDING", "deep-sea")

        assert resolution.risk == RiskCategory.LOW_RISK
        assert resolution.needs_manual_classification
        assert signals == [
            UnmappedCategory(
                legacy_category="UNDERWATER_WELDING",
                standard_slug="deep-sea",
                assigned_risk=RiskCategory.LOW_RISK,
            )
        ]
        assert "Unmapped job category" in caplog.text

    def test_nothing_supplied_resolves(self):
        assert resolve_risk() == RiskCategory.LOW_RISK

    def test_mapped_input_does_not_signal(self):
        signals = []
        resolver = CategoryRiskResolver(on_unmapped=signals.append)
        resolver.resolve("CLEANING")
        assert signals == []

    @pytest.mark.parametrize(
        "category,slug",
        [(None, None), ("X", None), (None, "y"), ("CLEANING", "tech-digital-help"), ("?", "!")],
    )
    def test_resolution_is_total_and_deterministic(self, category, slug):
        first = resolve_risk(category, slug)
        assert first in RiskCategory
        assert all(resolve_risk(category, slug) == first for _ in range(5))

    def test_custom_tables(self):
        resolver = CategoryRiskResolver(
            legacy_map={"WELDING": RiskCategory.HIGH_RISK},
            standard_map={},
            default_risk=RiskCategory.MEDIUM_RISK,
        )
        assert resolver.resolve_risk("welding") == RiskCategory.HIGH_RISK
        assert resolver.resolve_risk("BABYSITTING") == RiskCategory.MEDIUM_RISK
