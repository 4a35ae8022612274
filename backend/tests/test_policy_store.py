"""Unit tests for age policy versions and the PolicyStore."""

import pytest
from dataclasses import replace
from datetime import datetime, timezone

from age_policy.errors import (
    PolicyNotFoundError,
    PolicyRegressionError,
    PolicyValidationError,
    PolicyVersionConflictError,
)
from age_policy.policy import (
    AgePolicy,
    PolicyStore,
    TimeWindow,
    build_default_policy,
    default_tier_rule,
    effective_minimum_age,
    enforce_min_age_floor,
    validate_employer_minimum_age,
)
from age_policy.types import AgeBracket, RiskCategory


def next_version(policy, version=None, **overrides):
    """Copy of ``policy`` as a new version."""
    return replace(policy, version=version or policy.version + 1, **overrides)


class TestDefaultPolicy:
    def test_baselines(self, default_policy):
        assert default_policy.baseline_min_age(RiskCategory.LOW_RISK) == 15
        assert default_policy.baseline_min_age(RiskCategory.MEDIUM_RISK) == 16
        assert default_policy.baseline_min_age(RiskCategory.HIGH_RISK) == 18

    def test_every_band_has_limits(self, default_policy):
        for rule in default_policy.rules_by_risk.values():
            for band in AgeBracket:
                assert band in rule.max_daily_hours_by_band
                assert band in rule.max_weekly_hours_by_band
                assert band in rule.allowed_time_window_by_band

    def test_adults_unrestricted_and_need_no_consent(self, default_policy):
        for rule in default_policy.rules_by_risk.values():
            assert rule.time_window(AgeBracket.AGE_18_PLUS) == TimeWindow(0, 24)
        assert not default_policy.requires_guardian_consent(AgeBracket.AGE_18_PLUS)
        assert default_policy.requires_guardian_consent(AgeBracket.AGE_16)

    def test_minor_caps(self, default_policy):
        rule = default_policy.rules_by_risk[RiskCategory.LOW_RISK]
        assert rule.max_daily_hours(AgeBracket.AGE_15, True, False) == (2, "school_day")
        assert rule.max_daily_hours(AgeBracket.AGE_15, False, True) == (7, "holiday")
        assert rule.max_daily_hours(AgeBracket.AGE_15, False, False) == (7, "non_school_day")
        assert rule.max_weekly_hours(AgeBracket.AGE_15, False) == 12
        assert rule.max_weekly_hours(AgeBracket.AGE_15, True) == 35

    def test_school_day_cap_wins_when_both_flags_set(self, default_policy):
        rule = default_policy.rules_by_risk[RiskCategory.LOW_RISK]
        assert rule.max_daily_hours(AgeBracket.AGE_16, True, True) == (2, "school_day")

    def test_category_override_lookup(self, default_policy):
        rule = default_policy.rule_for(RiskCategory.HIGH_RISK, "babysitting")
        assert rule.requires_adult_present_if_alone
        assert default_policy.rule_for(RiskCategory.LOW_RISK, "TECH_HELP") is default_policy.rules_by_risk[
            RiskCategory.LOW_RISK
        ]

    def test_policy_is_immutable(self, default_policy):
        with pytest.raises(TypeError):
            default_policy.baseline_min_age_by_risk[RiskCategory.HIGH_RISK] = 10


class TestPolicyValidation:
    def test_missing_tier_rejected(self, default_policy):
        with pytest.raises(PolicyValidationError):
            AgePolicy(
                version=2,
                baseline_min_age_by_risk={RiskCategory.LOW_RISK: 15},
                rules_by_risk=default_policy.rules_by_risk,
            )

    def test_adult_window_must_be_unrestricted(self):
        windows = {band: TimeWindow(6, 20) for band in AgeBracket}
        with pytest.raises(PolicyValidationError):
            default_tier_rule(RiskCategory.LOW_RISK, allowed_time_window_by_band=windows)

    def test_override_below_baseline_rejected(self, default_policy):
        loose = default_tier_rule(RiskCategory.HIGH_RISK, min_age=16)
        with pytest.raises(PolicyValidationError):
            replace(default_policy, category_rules={"BABYSITTING": loose})

    def test_consent_for_adults_rejected(self, default_policy):
        with pytest.raises(PolicyValidationError):
            replace(default_policy, guardian_consent_bands=frozenset({AgeBracket.AGE_18_PLUS}))


class TestPolicyStore:
    def test_active_policy_is_default(self, policy_store):
        assert policy_store.get_active_policy().version == 1

    def test_empty_store_has_no_active_policy(self):
        with pytest.raises(PolicyNotFoundError):
            PolicyStore().get_active_policy()

    def test_future_policy_not_yet_active(self, policy_store, default_policy):
        future = next_version(default_policy, effective_from=datetime(2030, 1, 1, tzinfo=timezone.utc))
        policy_store.publish(future)

        assert policy_store.get_active_policy(datetime(2026, 1, 1, tzinfo=timezone.utc)).version == 1
        assert policy_store.get_active_policy(datetime(2030, 1, 2, tzinfo=timezone.utc)).version == 2
        assert policy_store.latest().version == 2

    def test_naive_now_is_treated_as_utc(self, policy_store):
        assert policy_store.get_active_policy(datetime(2026, 1, 1)).version == 1

    def test_get_policy_at(self, policy_store):
        assert policy_store.get_policy_at(1).version == 1
        with pytest.raises(PolicyNotFoundError):
            policy_store.get_policy_at(99)

    def test_publish_tighter_baseline(self, policy_store, default_policy):
        stricter = dict(default_policy.baseline_min_age_by_risk)
        stricter[RiskCategory.LOW_RISK] = 16
        policy_store.publish(next_version(default_policy, baseline_min_age_by_risk=stricter))

        assert policy_store.get_baseline_min_age(RiskCategory.LOW_RISK) == 16
        assert [p.version for p in policy_store.history()] == [1, 2]

    def test_publish_lower_baseline_fails(self, policy_store, default_policy):
        looser = dict(default_policy.baseline_min_age_by_risk)
        looser[RiskCategory.HIGH_RISK] = 17

        with pytest.raises(PolicyRegressionError) as exc_info:
            policy_store.publish(next_version(default_policy, baseline_min_age_by_risk=looser))

        assert exc_info.value.regressions == [("HIGH_RISK", 18, 17)]
        assert [p.version for p in policy_store.history()] == [1]

    def test_publish_below_platform_floor_fails(self):
        policy = build_default_policy()
        looser = dict(policy.baseline_min_age_by_risk)
        looser[RiskCategory.LOW_RISK] = 14
        store = PolicyStore()

        with pytest.raises(PolicyRegressionError):
            store.publish(replace(policy, baseline_min_age_by_risk=looser))
        assert store.latest() is None

    def test_regressions_listed_together(self, policy_store, default_policy):
        looser = {
            RiskCategory.LOW_RISK: 15,
            RiskCategory.MEDIUM_RISK: 15,
            RiskCategory.HIGH_RISK: 16,
        }
        with pytest.raises(PolicyRegressionError) as exc_info:
            policy_store.check_publishable(next_version(default_policy, baseline_min_age_by_risk=looser))

        keys = [key for key, _, _ in exc_info.value.regressions]
        assert keys == ["MEDIUM_RISK", "HIGH_RISK"]

    def test_category_override_may_not_loosen(self, default_policy):
        strict = dict(default_policy.category_rules)
        strict["ERRANDS"] = replace(strict["ERRANDS"], min_age=17)
        store = PolicyStore([replace(default_policy, category_rules=strict)])

        with pytest.raises(PolicyRegressionError) as exc_info:
            store.publish(next_version(default_policy))

        assert exc_info.value.regressions == [("ERRANDS", 17, 15)]

    def test_version_must_increase(self, policy_store, default_policy):
        with pytest.raises(PolicyVersionConflictError) as exc_info:
            policy_store.publish(replace(default_policy, description="duplicate"))

        assert exc_info.value.latest_version == 1
        assert policy_store.latest().description != "duplicate"

    def test_version_must_be_positive(self, default_policy):
        with pytest.raises(PolicyValidationError):
            replace(default_policy, version=0)

    def test_check_publishable_does_not_store(self, policy_store, default_policy):
        policy_store.check_publishable(next_version(default_policy))
        assert policy_store.latest().version == 1

    def test_baselines_never_decrease_across_history(self, policy_store, default_policy):
        stricter = dict(default_policy.baseline_min_age_by_risk)
        stricter[RiskCategory.MEDIUM_RISK] = 17
        policy_store.publish(next_version(default_policy, baseline_min_age_by_risk=stricter))

        history = policy_store.history()
        for older, newer in zip(history, history[1:]):
            for risk in RiskCategory:
                assert newer.baseline_min_age(risk) >= older.baseline_min_age(risk)


class TestEmployerMinimumAge:
    def test_higher_minimum_accepted(self, default_policy):
        check = validate_employer_minimum_age(default_policy, RiskCategory.LOW_RISK, 17)
        assert check.accepted
        assert check.adjusted_min_age == 17
        assert not check.was_adjusted

    def test_lower_minimum_rejected_and_raised(self, default_policy):
        check = validate_employer_minimum_age(default_policy, RiskCategory.MEDIUM_RISK, 15)
        assert not check.accepted
        assert check.baseline_min_age == 16
        assert check.adjusted_min_age == 16

    def test_enforce_floor(self, default_policy):
        assert enforce_min_age_floor(default_policy, RiskCategory.HIGH_RISK, 16) == 18
        assert enforce_min_age_floor(default_policy, RiskCategory.LOW_RISK, None) == 15
        assert enforce_min_age_floor(default_policy, RiskCategory.LOW_RISK, 16) == 16

    def test_effective_minimum_is_max(self, default_policy):
        assert effective_minimum_age(default_policy, RiskCategory.LOW_RISK) == 15
        assert effective_minimum_age(default_policy, RiskCategory.LOW_RISK, employer_min_age=17) == 17
        assert effective_minimum_age(default_policy, RiskCategory.HIGH_RISK, employer_min_age=16) == 18

    def test_platform_floor_applies(self, default_policy):
        assert effective_minimum_age(default_policy, RiskCategory.LOW_RISK, platform_min_age=16) == 16
