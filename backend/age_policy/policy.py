"""
Versioned age policy: value objects, the default policy and the PolicyStore.

RULES:
- A published AgePolicy is never mutated or deleted; newer versions supersede it.
- Baseline minimum ages may only tighten from one version to the next and
  never drop below the platform floor.
- Employers may raise a job's minimum age, never lower it below the baseline.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from utils import ensure_utc, utc_now

from .errors import (
    PolicyNotFoundError,
    PolicyRegressionError,
    PolicyValidationError,
    PolicyVersionConflictError,
)
from .risk import normalize_category, normalize_slug
from .types import ALL_BRACKETS, MINOR_BRACKETS, AgeBracket, RiskCategory

# Platform-wide absolute floor
PLATFORM_MINIMUM_AGE = 15


# ============================================================================
# Rule value objects
# ============================================================================


@dataclass(frozen=True)
class DailyHourCaps:
    """Maximum hours per day, by kind of day."""
    school_day: float
    non_school_day: float
    holiday: float


@dataclass(frozen=True)
class WeeklyHourCaps:
    """Maximum hours per week during school term and school holidays."""
    school_term: float
    holiday: float


@dataclass(frozen=True)
class TimeWindow:
    """Allowed working window as hours of day on a 24h clock (end may be 24)."""
    start_hour: int
    end_hour: int

    @property
    def is_unrestricted(self) -> bool:
        return self.start_hour == 0 and self.end_hour == 24


UNRESTRICTED_WINDOW = TimeWindow(0, 24)


@dataclass(frozen=True)
class WageFloor:
    """Minimum hourly wage in two tiers."""
    youth: float
    adult: float

    def for_worker(self, is_minor: bool) -> float:
        return self.youth if is_minor else self.adult


@dataclass(frozen=True)
class CategoryRule:
    """Labor rules for a risk tier, or an override for one category/slug."""
    risk_category: RiskCategory
    max_daily_hours_by_band: Mapping[AgeBracket, DailyHourCaps]
    max_weekly_hours_by_band: Mapping[AgeBracket, WeeklyHourCaps]
    allowed_time_window_by_band: Mapping[AgeBracket, TimeWindow]
    minimum_hourly_wage: WageFloor
    requires_adult_present_if_alone: bool = False
    min_age: Optional[int] = None  # May only raise the tier baseline
    prohibited_keywords: tuple[str, ...] = ()  # Screened for minors only
    notes: str = ""

    def __post_init__(self):
        for name in ("max_daily_hours_by_band", "max_weekly_hours_by_band", "allowed_time_window_by_band"):
            mapping = {AgeBracket(k): v for k, v in dict(getattr(self, name)).items()}
            missing = [b.value for b in ALL_BRACKETS if b not in mapping]
            if missing:
                raise PolicyValidationError(f"{name} is missing bands: {', '.join(missing)}")
            object.__setattr__(self, name, MappingProxyType(mapping))
        object.__setattr__(self, "prohibited_keywords", tuple(self.prohibited_keywords))

        for band, window in self.allowed_time_window_by_band.items():
            if not 0 <= window.start_hour < window.end_hour <= 24:
                raise PolicyValidationError(
                    f"Invalid time window {window.start_hour}-{window.end_hour} for {band.value}"
                )
        if not self.allowed_time_window_by_band[AgeBracket.AGE_18_PLUS].is_unrestricted:
            raise PolicyValidationError("AGE_18_PLUS must have the unrestricted 0-24 window")

        for band, caps in self.max_daily_hours_by_band.items():
            if min(caps.school_day, caps.non_school_day, caps.holiday) <= 0:
                raise PolicyValidationError(f"Daily hour caps for {band.value} must be positive")
        for band, caps in self.max_weekly_hours_by_band.items():
            if min(caps.school_term, caps.holiday) <= 0:
                raise PolicyValidationError(f"Weekly hour caps for {band.value} must be positive")
        if self.minimum_hourly_wage.youth <= 0 or self.minimum_hourly_wage.adult <= 0:
            raise PolicyValidationError("Minimum hourly wages must be positive")

    def max_daily_hours(self, band: AgeBracket, is_school_day: bool, is_school_holiday: bool) -> tuple[float, str]:
        """
        Daily cap and the kind of day it was selected for.

        A school day uses the school-day cap even if the holiday flag is
        also set, since it is always the lowest cap.
        """
        caps = self.max_daily_hours_by_band[band]
        if is_school_day:
            return caps.school_day, "school_day"
        if is_school_holiday:
            return caps.holiday, "holiday"
        return caps.non_school_day, "non_school_day"

    def max_weekly_hours(self, band: AgeBracket, is_school_holiday: bool) -> float:
        caps = self.max_weekly_hours_by_band[band]
        return caps.holiday if is_school_holiday else caps.school_term

    def time_window(self, band: AgeBracket) -> TimeWindow:
        return self.allowed_time_window_by_band[band]


@dataclass(frozen=True)
class AgePolicy:
    """
    A published, immutable policy version.

    Fields:
        version:                  Strictly increasing integer.
        baseline_min_age_by_risk: Minimum age per risk tier.
        rules_by_risk:            CategoryRule applied to each tier.
        category_rules:           Overrides keyed by taxonomy slug (lower-case)
                                  or legacy category (upper-case).
        guardian_consent_bands:   Minor bands that need guardian consent.
        prohibited_keywords:      Global keywords screened for minors.
        effective_from:           When this version comes into force.
    """
    version: int
    baseline_min_age_by_risk: Mapping[RiskCategory, int]
    rules_by_risk: Mapping[RiskCategory, CategoryRule]
    category_rules: Mapping[str, CategoryRule] = field(default_factory=dict)
    guardian_consent_bands: frozenset = frozenset(MINOR_BRACKETS)
    prohibited_keywords: tuple[str, ...] = ()
    effective_from: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc)
    description: str = ""

    def __post_init__(self):
        if self.version < 1:
            raise PolicyValidationError("Policy version must be a positive integer")

        baselines = {RiskCategory(k): int(v) for k, v in dict(self.baseline_min_age_by_risk).items()}
        rules = {RiskCategory(k): v for k, v in dict(self.rules_by_risk).items()}
        for risk in RiskCategory:
            if risk not in baselines:
                raise PolicyValidationError(f"Missing baseline minimum age for {risk.value}")
            if risk not in rules:
                raise PolicyValidationError(f"Missing category rule for {risk.value}")
            if rules[risk].risk_category != risk:
                raise PolicyValidationError(
                    f"Rule registered for {risk.value} declares {rules[risk].risk_category.value}"
                )

        category_rules = dict(self.category_rules)
        for key, rule in category_rules.items():
            if rule.min_age is not None and rule.min_age < baselines[rule.risk_category]:
                raise PolicyValidationError(
                    f"Category rule {key} sets min_age {rule.min_age} below the "
                    f"{rule.risk_category.value} baseline {baselines[rule.risk_category]}"
                )

        consent_bands = frozenset(AgeBracket(b) for b in self.guardian_consent_bands)
        if AgeBracket.AGE_18_PLUS in consent_bands:
            raise PolicyValidationError("Guardian consent cannot be required for AGE_18_PLUS")

        object.__setattr__(self, "baseline_min_age_by_risk", MappingProxyType(baselines))
        object.__setattr__(self, "rules_by_risk", MappingProxyType(rules))
        object.__setattr__(self, "category_rules", MappingProxyType(category_rules))
        object.__setattr__(self, "guardian_consent_bands", consent_bands)
        object.__setattr__(self, "prohibited_keywords", tuple(self.prohibited_keywords))
        object.__setattr__(self, "effective_from", ensure_utc(self.effective_from))

    def baseline_min_age(self, risk: RiskCategory) -> int:
        return self.baseline_min_age_by_risk[risk]

    def category_override(
        self,
        legacy_category: Optional[str] = None,
        standard_slug: Optional[str] = None,
    ) -> Optional[CategoryRule]:
        """Override for the slug first, then for the legacy category."""
        slug = normalize_slug(standard_slug)
        if slug and slug in self.category_rules:
            return self.category_rules[slug]
        category = normalize_category(legacy_category)
        if category and category in self.category_rules:
            return self.category_rules[category]
        return None

    def rule_for(
        self,
        risk: RiskCategory,
        legacy_category: Optional[str] = None,
        standard_slug: Optional[str] = None,
    ) -> CategoryRule:
        override = self.category_override(legacy_category, standard_slug)
        return override if override is not None else self.rules_by_risk[risk]

    def minimum_age_for(
        self,
        risk: RiskCategory,
        legacy_category: Optional[str] = None,
        standard_slug: Optional[str] = None,
    ) -> int:
        """Strictest of the tier baseline and any category override."""
        minimum = self.baseline_min_age(risk)
        override = self.category_override(legacy_category, standard_slug)
        if override is not None:
            minimum = max(minimum, self.baseline_min_age(override.risk_category), override.min_age or 0)
        return minimum

    def requires_guardian_consent(self, band: AgeBracket) -> bool:
        return band in self.guardian_consent_bands


# ============================================================================
# Default policy (version 1)
# ============================================================================

MINIMUM_HOURLY_WAGE_YOUTH = 130.0
MINIMUM_HOURLY_WAGE_ADULT = 175.0

DEFAULT_BASELINE_MIN_AGE_BY_RISK = {
    RiskCategory.LOW_RISK: 15,
    RiskCategory.MEDIUM_RISK: 16,
    RiskCategory.HIGH_RISK: 18,
}

MINOR_DAILY_CAPS = DailyHourCaps(school_day=2, non_school_day=7, holiday=7)
MINOR_WEEKLY_CAPS = WeeklyHourCaps(school_term=12, holiday=35)
ADULT_DAILY_CAPS = DailyHourCaps(school_day=9, non_school_day=9, holiday=9)
ADULT_WEEKLY_CAPS = WeeklyHourCaps(school_term=40, holiday=40)

DEFAULT_TIME_WINDOWS = {
    AgeBracket.UNDER_15: TimeWindow(6, 20),
    AgeBracket.AGE_15: TimeWindow(6, 20),
    AgeBracket.AGE_16: TimeWindow(6, 21),
    AgeBracket.AGE_17: TimeWindow(6, 21),
    AgeBracket.AGE_18_PLUS: UNRESTRICTED_WINDOW,
}

PROHIBITED_KEYWORDS_MINORS = (
    # Heavy machinery
    "forklift", "gaffeltruck", "traktor", "crane", "kran", "excavator", "gravemaskin", "bulldozer",
    # Construction and heights
    "construction", "demolition", "riving", "scaffolding", "stillas", "roofing", "høydearbeid",
    "height work",
    # Hazardous materials
    "chemicals", "kjemikalier", "hazardous", "toxic", "giftig", "asbestos", "asbest", "radiation",
    # Alcohol and adult venues
    "alcohol", "alkohol", "nightclub", "nattklubb", "casino", "gambling",
    # Cash and transport of people
    "cash handling", "kontanthåndtering", "taxi", "chauffeur", "sjåfør", "passenger", "passasjer",
)


def _band_map(minor_value, adult_value) -> dict:
    return {band: (adult_value if band == AgeBracket.AGE_18_PLUS else minor_value) for band in ALL_BRACKETS}


def default_tier_rule(risk: RiskCategory, **overrides) -> CategoryRule:
    """Rule with the statutory youth limits for the given tier."""
    rule = CategoryRule(
        risk_category=risk,
        max_daily_hours_by_band=_band_map(MINOR_DAILY_CAPS, ADULT_DAILY_CAPS),
        max_weekly_hours_by_band=_band_map(MINOR_WEEKLY_CAPS, ADULT_WEEKLY_CAPS),
        allowed_time_window_by_band=DEFAULT_TIME_WINDOWS,
        minimum_hourly_wage=WageFloor(youth=MINIMUM_HOURLY_WAGE_YOUTH, adult=MINIMUM_HOURLY_WAGE_ADULT),
    )
    return replace(rule, **overrides) if overrides else rule


def default_category_rules() -> dict[str, CategoryRule]:
    babysitting = default_tier_rule(
        RiskCategory.HIGH_RISK,
        requires_adult_present_if_alone=True,
        prohibited_keywords=("overnight", "over natten", "night shift", "nattskift"),
        notes="Adult must be reachable; no overnight work",
    )
    return {
        "BABYSITTING": babysitting,
        "child-family-support": babysitting,
        "SNOW_CLEARING": default_tier_rule(
            RiskCategory.MEDIUM_RISK,
            prohibited_keywords=("plow", "plog", "snowblower", "snøfreser", "tractor"),
            notes="Manual snow removal only",
        ),
        "CLEANING": default_tier_rule(
            RiskCategory.MEDIUM_RISK,
            prohibited_keywords=("industrial", "industriell", "chemical", "kjemisk", "heights", "høyde"),
            notes="Non-toxic products only, no work at heights",
        ),
        "DIY_HELP": default_tier_rule(
            RiskCategory.HIGH_RISK,
            prohibited_keywords=(
                "electrical", "elektrisk", "plumbing", "rørlegger", "roof", "chainsaw", "motorsag",
            ),
            notes="Light DIY only, no certified power tools",
        ),
        "ERRANDS": default_tier_rule(
            RiskCategory.LOW_RISK,
            prohibited_keywords=("alcohol", "alkohol", "drive", "kjøre", "heavy", "tungt"),
            notes="No alcohol purchases, no driving, nothing over 12kg",
        ),
    }


def build_default_policy(
    version: int = 1,
    effective_from: datetime = datetime(2025, 1, 1, tzinfo=timezone.utc),
) -> AgePolicy:
    return AgePolicy(
        version=version,
        baseline_min_age_by_risk=DEFAULT_BASELINE_MIN_AGE_BY_RISK,
        rules_by_risk={risk: default_tier_rule(risk) for risk in RiskCategory},
        category_rules=default_category_rules(),
        guardian_consent_bands=frozenset(MINOR_BRACKETS),
        prohibited_keywords=PROHIBITED_KEYWORDS_MINORS,
        effective_from=effective_from,
        description="Initial youth labor policy",
    )


# ============================================================================
# Employer minimum age
# ============================================================================


@dataclass(frozen=True)
class MinimumAgeCheck:
    """Outcome of validating an employer-declared minimum age."""
    requested_min_age: int
    baseline_min_age: int
    accepted: bool

    @property
    def adjusted_min_age(self) -> int:
        return max(self.requested_min_age, self.baseline_min_age)

    @property
    def was_adjusted(self) -> bool:
        return self.adjusted_min_age != self.requested_min_age


def validate_employer_minimum_age(
    policy: AgePolicy,
    risk: RiskCategory,
    requested_min_age: int,
    legacy_category: Optional[str] = None,
    standard_slug: Optional[str] = None,
    platform_min_age: int = PLATFORM_MINIMUM_AGE,
) -> MinimumAgeCheck:
    """Accept the employer floor only if it is at or above the baseline."""
    baseline = max(policy.minimum_age_for(risk, legacy_category, standard_slug), platform_min_age)
    return MinimumAgeCheck(
        requested_min_age=requested_min_age,
        baseline_min_age=baseline,
        accepted=requested_min_age >= baseline,
    )


def enforce_min_age_floor(
    policy: AgePolicy,
    risk: RiskCategory,
    requested_min_age: Optional[int] = None,
    legacy_category: Optional[str] = None,
    standard_slug: Optional[str] = None,
    platform_min_age: int = PLATFORM_MINIMUM_AGE,
) -> int:
    """Employer floor raised to the baseline, or the baseline if none was given."""
    if requested_min_age is None:
        return max(policy.minimum_age_for(risk, legacy_category, standard_slug), platform_min_age)
    check = validate_employer_minimum_age(
        policy, risk, requested_min_age, legacy_category, standard_slug, platform_min_age
    )
    if check.was_adjusted:
        logging.info(
            f"Raised employer minimum age {requested_min_age} to baseline {check.baseline_min_age} "
            f"for {risk.value}"
        )
    return check.adjusted_min_age


def effective_minimum_age(
    policy: AgePolicy,
    risk: RiskCategory,
    employer_min_age: Optional[int] = None,
    legacy_category: Optional[str] = None,
    standard_slug: Optional[str] = None,
    platform_min_age: int = PLATFORM_MINIMUM_AGE,
) -> int:
    """Max of the platform floor, the policy minimum and the employer floor."""
    minimum = max(policy.minimum_age_for(risk, legacy_category, standard_slug), platform_min_age)
    if employer_min_age is not None:
        minimum = max(minimum, employer_min_age)
    return minimum


# ============================================================================
# PolicyStore
# ============================================================================


class PolicyStore:
    """
    Holds every published policy version.

    Reads work on an immutable tuple snapshot; publish builds a new tuple
    under a lock, so readers never see a partially published version.
    """

    def __init__(
        self,
        policies: Iterable[AgePolicy] = (),
        platform_min_age: int = PLATFORM_MINIMUM_AGE,
    ):
        self.platform_min_age = platform_min_age
        self._policies: tuple[AgePolicy, ...] = ()
        self._lock = threading.Lock()
        for policy in sorted(policies, key=lambda p: p.version):
            self.publish(policy)

    @classmethod
    def with_default_policy(cls, platform_min_age: int = PLATFORM_MINIMUM_AGE) -> "PolicyStore":
        return cls([build_default_policy()], platform_min_age=platform_min_age)

    def history(self) -> tuple[AgePolicy, ...]:
        return self._policies

    def latest(self) -> Optional[AgePolicy]:
        policies = self._policies
        return policies[-1] if policies else None

    def get_active_policy(self, now: Optional[datetime] = None) -> AgePolicy:
        """Highest version already in force at ``now``."""
        now = ensure_utc(now) if now is not None else utc_now()
        for policy in reversed(self._policies):
            if policy.effective_from <= now:
                return policy
        raise PolicyNotFoundError(f"No policy in force at {now.isoformat()}")

    def get_policy_at(self, version: int) -> AgePolicy:
        for policy in self._policies:
            if policy.version == version:
                return policy
        raise PolicyNotFoundError(f"Policy version {version} not found")

    def get_baseline_min_age(self, risk: RiskCategory, now: Optional[datetime] = None) -> int:
        return max(self.get_active_policy(now).baseline_min_age(risk), self.platform_min_age)

    def check_publishable(self, policy: AgePolicy) -> None:
        """
        Raise if ``policy`` cannot be published on top of the current history.

        Raises:
            PolicyVersionConflictError: version is not above the latest
            PolicyRegressionError: a baseline or category floor would loosen
        """
        self._check_against(policy, self.latest())

    def _check_against(self, policy: AgePolicy, previous: Optional[AgePolicy]) -> None:
        if previous is not None and policy.version <= previous.version:
            raise PolicyVersionConflictError(policy.version, previous.version)

        regressions: list[tuple[str, int, int]] = []
        for risk in RiskCategory:
            new_min = policy.baseline_min_age(risk)
            if new_min < self.platform_min_age:
                regressions.append((risk.value, self.platform_min_age, new_min))
            elif previous is not None and new_min < previous.baseline_min_age(risk):
                regressions.append((risk.value, previous.baseline_min_age(risk), new_min))

        if previous is not None:
            # Tier baselines are covered above; only explicit category floors here
            for key, prev_rule in previous.category_rules.items():
                new_rule = policy.category_rules.get(key)
                if new_rule is None or prev_rule.min_age is None:
                    continue
                prev_min = max(previous.baseline_min_age(prev_rule.risk_category), prev_rule.min_age or 0)
                new_min = max(policy.baseline_min_age(new_rule.risk_category), new_rule.min_age or 0)
                if new_min < prev_min:
                    regressions.append((key, prev_min, new_min))

        if regressions:
            raise PolicyRegressionError(policy.version, regressions)

    def publish(self, policy: AgePolicy) -> AgePolicy:
        with self._lock:
            try:
                self._check_against(policy, self.latest())
            except (PolicyVersionConflictError, PolicyRegressionError) as e:
                logging.warning(f"Rejected age policy version {policy.version}: {e}")
                raise
            self._policies = self._policies + (policy,)

        logging.info(
            f"Published age policy version {policy.version} "
            f"(effective from {policy.effective_from.isoformat()})"
        )
        return policy
