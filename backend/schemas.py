from pydantic import BaseModel
from datetime import datetime
from typing import Any

from age_policy.audit import AuditContext
from age_policy.policy import (
    AgePolicy,
    CategoryRule,
    DailyHourCaps,
    TimeWindow,
    WageFloor,
    WeeklyHourCaps,
)
from age_policy.types import AccountFlags, AgeBracket, JobSnapshot, PayType, RiskCategory


# ============================================================================
# Policy documents
# ============================================================================


class DailyHourCapsSchema(BaseModel):
    school_day: float
    non_school_day: float
    holiday: float


class WeeklyHourCapsSchema(BaseModel):
    school_term: float
    holiday: float


class TimeWindowSchema(BaseModel):
    start_hour: int
    end_hour: int


class WageFloorSchema(BaseModel):
    youth: float
    adult: float


class CategoryRuleSchema(BaseModel):
    risk_category: RiskCategory
    max_daily_hours_by_band: dict[AgeBracket, DailyHourCapsSchema]
    max_weekly_hours_by_band: dict[AgeBracket, WeeklyHourCapsSchema]
    allowed_time_window_by_band: dict[AgeBracket, TimeWindowSchema]
    minimum_hourly_wage: WageFloorSchema
    requires_adult_present_if_alone: bool = False
    min_age: int | None = None
    prohibited_keywords: list[str] = []
    notes: str = ""

    def to_domain(self) -> CategoryRule:
        return CategoryRule(
            risk_category=self.risk_category,
            max_daily_hours_by_band={
                band: DailyHourCaps(**caps.model_dump()) for band, caps in self.max_daily_hours_by_band.items()
            },
            max_weekly_hours_by_band={
                band: WeeklyHourCaps(**caps.model_dump()) for band, caps in self.max_weekly_hours_by_band.items()
            },
            allowed_time_window_by_band={
                band: TimeWindow(**window.model_dump()) for band, window in self.allowed_time_window_by_band.items()
            },
            minimum_hourly_wage=WageFloor(**self.minimum_hourly_wage.model_dump()),
            requires_adult_present_if_alone=self.requires_adult_present_if_alone,
            min_age=self.min_age,
            prohibited_keywords=tuple(self.prohibited_keywords),
            notes=self.notes,
        )

    @classmethod
    def from_domain(cls, rule: CategoryRule) -> "CategoryRuleSchema":
        return cls(
            risk_category=rule.risk_category,
            max_daily_hours_by_band={
                band: DailyHourCapsSchema(
                    school_day=caps.school_day, non_school_day=caps.non_school_day, holiday=caps.holiday
                )
                for band, caps in rule.max_daily_hours_by_band.items()
            },
            max_weekly_hours_by_band={
                band: WeeklyHourCapsSchema(school_term=caps.school_term, holiday=caps.holiday)
                for band, caps in rule.max_weekly_hours_by_band.items()
            },
            allowed_time_window_by_band={
                band: TimeWindowSchema(start_hour=window.start_hour, end_hour=window.end_hour)
                for band, window in rule.allowed_time_window_by_band.items()
            },
            minimum_hourly_wage=WageFloorSchema(
                youth=rule.minimum_hourly_wage.youth, adult=rule.minimum_hourly_wage.adult
            ),
            requires_adult_present_if_alone=rule.requires_adult_present_if_alone,
            min_age=rule.min_age,
            prohibited_keywords=list(rule.prohibited_keywords),
            notes=rule.notes,
        )


class AgePolicySchema(BaseModel):
    """Serialized AgePolicy, as published over the API and stored in MongoDB."""
    version: int
    baseline_min_age_by_risk: dict[RiskCategory, int]
    rules_by_risk: dict[RiskCategory, CategoryRuleSchema]
    category_rules: dict[str, CategoryRuleSchema] = {}
    guardian_consent_bands: list[AgeBracket]
    prohibited_keywords: list[str] = []
    effective_from: datetime
    description: str = ""

    def to_domain(self) -> AgePolicy:
        """Raises PolicyValidationError if the policy is inconsistent."""
        return AgePolicy(
            version=self.version,
            baseline_min_age_by_risk=dict(self.baseline_min_age_by_risk),
            rules_by_risk={risk: rule.to_domain() for risk, rule in self.rules_by_risk.items()},
            category_rules={key: rule.to_domain() for key, rule in self.category_rules.items()},
            guardian_consent_bands=frozenset(self.guardian_consent_bands),
            prohibited_keywords=tuple(self.prohibited_keywords),
            effective_from=self.effective_from,
            description=self.description,
        )

    @classmethod
    def from_domain(cls, policy: AgePolicy) -> "AgePolicySchema":
        return cls(
            version=policy.version,
            baseline_min_age_by_risk=dict(policy.baseline_min_age_by_risk),
            rules_by_risk={risk: CategoryRuleSchema.from_domain(rule) for risk, rule in policy.rules_by_risk.items()},
            category_rules={
                key: CategoryRuleSchema.from_domain(rule) for key, rule in policy.category_rules.items()
            },
            guardian_consent_bands=sorted(policy.guardian_consent_bands, key=lambda b: b.rank),
            prohibited_keywords=list(policy.prohibited_keywords),
            effective_from=policy.effective_from,
            description=policy.description,
        )


class PolicySummary(BaseModel):
    version: int
    effective_from: datetime
    description: str
    baseline_min_age_by_risk: dict[RiskCategory, int]
    is_active: bool = False


class PublishPolicyResponse(BaseModel):
    success: bool
    version: int
    message: str


# ============================================================================
# Jobs and requests
# ============================================================================


class JobSchema(BaseModel):
    """Job posting fields needed for age and labor checks."""
    job_id: str | None = None
    category: str | None = None  # Legacy category, e.g. "BABYSITTING"
    standard_slug: str | None = None  # e.g. "pet-animal-care"
    risk_category: RiskCategory | None = None
    minimum_age: int | None = None
    pay_amount: float = 0.0
    pay_type: PayType = PayType.HOURLY
    duration_minutes: int | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    is_school_day: bool = False
    is_school_holiday: bool = False
    requires_working_alone: bool = False
    involves_private_home: bool = False
    title: str = ""
    description: str = ""

    def to_snapshot(self) -> JobSnapshot:
        return JobSnapshot(**self.model_dump())

    @classmethod
    def from_snapshot(cls, job: JobSnapshot) -> "JobSchema":
        return cls(**{name: getattr(job, name) for name in cls.model_fields})


class AccountFlagsSchema(BaseModel):
    paused: bool = False
    banned: bool = False

    def to_domain(self) -> AccountFlags:
        return AccountFlags(paused=self.paused, banned=self.banned)


class EligibilityCheckRequest(BaseModel):
    job: JobSchema
    birth_date: str | None = None  # Parsed leniently, e.g. "2009-05-15"
    guardian_consent: bool = False
    account_flags: AccountFlagsSchema = AccountFlagsSchema()
    worker_id: str | None = None
    employer_id: str | None = None
    policy_version: int | None = None  # Replay under a past version

    def audit_context(self, action: str, ip_address: str | None = None) -> AuditContext:
        return AuditContext(
            action=action,
            worker_id=self.worker_id,
            job_id=self.job.job_id,
            employer_id=self.employer_id,
            ip_address=ip_address,
        )


class ComplianceValidateRequest(BaseModel):
    job: JobSchema
    target_age_band: AgeBracket
    worker_age: int | None = None
    worker_id: str | None = None
    employer_id: str | None = None
    policy_version: int | None = None


class MinimumAgeRequest(BaseModel):
    job: JobSchema
    requested_min_age: int | None = None


# ============================================================================
# Responses
# ============================================================================


class EligibilityDecisionSchema(BaseModel):
    outcome: str  # "ALLOWED", "BLOCKED", "NEEDS_GUARDIAN_CONSENT"
    reason_codes: list[str]
    policy_version_used: int
    evaluated_at: datetime
    required_min_age: int | None = None
    age_years: int | None = None
    age_bracket: str | None = None


class ComplianceFindingSchema(BaseModel):
    code: str
    message: str
    details: dict = {}


class ComplianceSuggestionSchema(BaseModel):
    field: str
    current_value: Any = None
    suggested_value: Any
    reason: str


class ComplianceResultSchema(BaseModel):
    compliant: bool
    age_band: str
    risk_category: str
    policy_version_used: int
    evaluated_at: datetime
    violations: list[ComplianceFindingSchema] = []
    warnings: list[ComplianceFindingSchema] = []
    suggestions: list[ComplianceSuggestionSchema] = []
    violation_count: int = 0
    warning_count: int = 0


class ApplicationEvaluationSchema(BaseModel):
    can_apply: bool
    risk_category: str
    effective_min_age: int
    decision: EligibilityDecisionSchema
    compliance: ComplianceResultSchema | None = None


class RiskResolutionSchema(BaseModel):
    risk_category: RiskCategory
    source: str  # "STANDARD_SLUG", "LEGACY_CATEGORY", "DEFAULT"
    matched_key: str | None = None
    needs_manual_classification: bool
    baseline_min_age: int


class MinimumAgeResponse(BaseModel):
    risk_category: RiskCategory
    baseline_min_age: int
    requested_min_age: int | None = None
    accepted: bool
    effective_min_age: int
    policy_version_used: int
    job: JobSchema  # Job with risk tier and minimum age filled in


class AuditEntrySchema(BaseModel):
    kind: str
    outcome: str
    reason_codes: list[str] = []
    policy_version: int
    evaluated_at: datetime
    recorded_at: datetime
    action: str = "check"
    worker_id: str | None = None
    job_id: str | None = None
    employer_id: str | None = None
    age_years: int | None = None
    age_bracket: str | None = None
    required_min_age: int | None = None
