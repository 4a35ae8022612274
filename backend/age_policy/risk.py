"""Category to risk tier resolution.

Standardized taxonomy slugs take priority over legacy categories. Inputs
matching neither table fall back to LOW_RISK and raise an UnmappedCategory
signal so the job can be classified by hand.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Optional

from .types import RiskCategory

# Legacy JobCategory values
CATEGORY_RISK_MAP: dict[str, RiskCategory] = {
    # HIGH_RISK (18+): vulnerable people, tools, ladders, electrical work
    "BABYSITTING": RiskCategory.HIGH_RISK,
    "DIY_HELP": RiskCategory.HIGH_RISK,
    # MEDIUM_RISK (16+): physical outdoor work, animal handling, chemicals
    "DOG_WALKING": RiskCategory.MEDIUM_RISK,
    "SNOW_CLEARING": RiskCategory.MEDIUM_RISK,
    "CLEANING": RiskCategory.MEDIUM_RISK,
    # LOW_RISK (15+): indoor and digital tasks
    "TECH_HELP": RiskCategory.LOW_RISK,
    "ERRANDS": RiskCategory.LOW_RISK,
    "OTHER": RiskCategory.LOW_RISK,
}

# Standardized taxonomy slugs
STANDARD_CATEGORY_RISK_MAP: dict[str, RiskCategory] = {
    "child-family-support": RiskCategory.HIGH_RISK,
    "home-yard-help": RiskCategory.HIGH_RISK,
    "pet-animal-care": RiskCategory.MEDIUM_RISK,
    "cleaning-organizing": RiskCategory.MEDIUM_RISK,
    "fitness-activity-help": RiskCategory.MEDIUM_RISK,
    "tech-digital-help": RiskCategory.LOW_RISK,
    "errands-local-tasks": RiskCategory.LOW_RISK,
    "events-community-help": RiskCategory.LOW_RISK,
    "creative-media-gigs": RiskCategory.LOW_RISK,
    "education-learning-support": RiskCategory.LOW_RISK,
    "retail-microbusiness-help": RiskCategory.LOW_RISK,
    "online-ai-age-jobs": RiskCategory.LOW_RISK,
}

DEFAULT_RISK_CATEGORY = RiskCategory.LOW_RISK


class RiskSource(str, Enum):
    """Which lookup produced a risk tier."""
    STANDARD_SLUG = "STANDARD_SLUG"
    LEGACY_CATEGORY = "LEGACY_CATEGORY"
    DEFAULT = "DEFAULT"


@dataclass(frozen=True)
class UnmappedCategory:
    """Signal for a category/slug pair that matched no table entry."""
    legacy_category: Optional[str]
    standard_slug: Optional[str]
    assigned_risk: RiskCategory


@dataclass(frozen=True)
class RiskResolution:
    risk: RiskCategory
    source: RiskSource
    matched_key: Optional[str] = None

    @property
    def needs_manual_classification(self) -> bool:
        return self.source == RiskSource.DEFAULT


def normalize_slug(slug: Optional[str]) -> Optional[str]:
    if slug is None:
        return None
    slug = slug.strip().lower()
    return slug or None


def normalize_category(category: Optional[str]) -> Optional[str]:
    if category is None:
        return None
    category = category.strip().upper()
    return category or None


class CategoryRiskResolver:
    """
    Resolves a job's risk tier from its legacy category and/or taxonomy slug.

    Precedence is fixed: standard slug, then legacy category, then the
    default tier. Every input combination resolves.
    """

    def __init__(
        self,
        legacy_map: Optional[Mapping[str, RiskCategory]] = None,
        standard_map: Optional[Mapping[str, RiskCategory]] = None,
        default_risk: RiskCategory = DEFAULT_RISK_CATEGORY,
        on_unmapped: Optional[Callable[[UnmappedCategory], None]] = None,
    ):
        self.legacy_map = dict(legacy_map if legacy_map is not None else CATEGORY_RISK_MAP)
        self.standard_map = dict(standard_map if standard_map is not None else STANDARD_CATEGORY_RISK_MAP)
        self.default_risk = default_risk
        self.on_unmapped = on_unmapped

    def resolve(
        self,
        legacy_category: Optional[str] = None,
        standard_slug: Optional[str] = None,
    ) -> RiskResolution:
        slug = normalize_slug(standard_slug)
        if slug and slug in self.standard_map:
            return RiskResolution(self.standard_map[slug], RiskSource.STANDARD_SLUG, slug)

        category = normalize_category(legacy_category)
        if category and category in self.legacy_map:
            return RiskResolution(self.legacy_map[category], RiskSource.LEGACY_CATEGORY, category)

        signal = UnmappedCategory(
            legacy_category=legacy_category,
            standard_slug=standard_slug,
            assigned_risk=self.default_risk,
        )
        logging.warning(
            f"Unmapped job category (category={legacy_category!r}, slug={standard_slug!r}); "
            f"defaulting to {self.default_risk.value}, needs manual classification"
        )
        if self.on_unmapped is not None:
            self.on_unmapped(signal)

        return RiskResolution(self.default_risk, RiskSource.DEFAULT)

    def resolve_risk(
        self,
        legacy_category: Optional[str] = None,
        standard_slug: Optional[str] = None,
    ) -> RiskCategory:
        return self.resolve(legacy_category, standard_slug).risk


_default_resolver = CategoryRiskResolver()


def resolve_risk(
    legacy_category: Optional[str] = None,
    standard_slug: Optional[str] = None,
) -> RiskCategory:
    """Resolve using the built-in tables."""
    return _default_resolver.resolve_risk(legacy_category, standard_slug)
