"""Type definitions for the age policy engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class AgeBracket(str, Enum):
    """Coarse age grouping used to select rule variants."""
    UNDER_15 = "UNDER_15"
    AGE_15 = "AGE_15"
    AGE_16 = "AGE_16"
    AGE_17 = "AGE_17"
    AGE_18_PLUS = "AGE_18_PLUS"

    @property
    def rank(self) -> int:
        """Position in the ordered bracket sequence."""
        return _BRACKET_ORDER.index(self)

    @property
    def min_age(self) -> int:
        """Youngest age that falls in this bracket."""
        return _BRACKET_MIN_AGE[self]

    @property
    def is_minor(self) -> bool:
        return self is not AgeBracket.AGE_18_PLUS


_BRACKET_ORDER = (
    AgeBracket.UNDER_15,
    AgeBracket.AGE_15,
    AgeBracket.AGE_16,
    AgeBracket.AGE_17,
    AgeBracket.AGE_18_PLUS,
)

_BRACKET_MIN_AGE = {
    AgeBracket.UNDER_15: 0,
    AgeBracket.AGE_15: 15,
    AgeBracket.AGE_16: 16,
    AgeBracket.AGE_17: 17,
    AgeBracket.AGE_18_PLUS: 18,
}

ALL_BRACKETS = _BRACKET_ORDER
MINOR_BRACKETS = tuple(b for b in _BRACKET_ORDER if b.is_minor)


class RiskCategory(str, Enum):
    """Risk tier of a job, ordered by severity."""
    LOW_RISK = "LOW_RISK"
    MEDIUM_RISK = "MEDIUM_RISK"
    HIGH_RISK = "HIGH_RISK"

    @property
    def severity(self) -> int:
        return _RISK_SEVERITY[self]


_RISK_SEVERITY = {
    RiskCategory.LOW_RISK: 0,
    RiskCategory.MEDIUM_RISK: 1,
    RiskCategory.HIGH_RISK: 2,
}


class PayType(str, Enum):
    FIXED = "FIXED"
    HOURLY = "HOURLY"


class EligibilityOutcome(str, Enum):
    """Outcome of an eligibility check."""
    ALLOWED = "ALLOWED"
    BLOCKED = "BLOCKED"
    NEEDS_GUARDIAN_CONSENT = "NEEDS_GUARDIAN_CONSENT"


class ReasonCode(str, Enum):
    """Reason attached to an eligibility decision."""
    ELIGIBLE = "ELIGIBLE"
    ACCOUNT_RESTRICTED = "ACCOUNT_RESTRICTED"
    AGE_UNKNOWN = "AGE_UNKNOWN"
    INVALID_BIRTH_DATE = "INVALID_BIRTH_DATE"
    BELOW_MINIMUM_AGE = "BELOW_MINIMUM_AGE"
    GUARDIAN_CONSENT_REQUIRED = "GUARDIAN_CONSENT_REQUIRED"


BLOCKING_REASONS = frozenset({
    ReasonCode.ACCOUNT_RESTRICTED,
    ReasonCode.AGE_UNKNOWN,
    ReasonCode.INVALID_BIRTH_DATE,
    ReasonCode.BELOW_MINIMUM_AGE,
})


class ComplianceCode(str, Enum):
    """Codes for compliance violations and warnings."""
    # Violations (blocking)
    BELOW_MINIMUM_WAGE = "BELOW_MINIMUM_WAGE"
    UNPAID_WORK = "UNPAID_WORK"
    EXCESSIVE_DAILY_HOURS_SCHOOL = "EXCESSIVE_DAILY_HOURS_SCHOOL"
    EXCESSIVE_DAILY_HOURS = "EXCESSIVE_DAILY_HOURS"
    EXCESSIVE_HOLIDAY_HOURS = "EXCESSIVE_HOLIDAY_HOURS"
    EXCESSIVE_WEEKLY_HOURS = "EXCESSIVE_WEEKLY_HOURS"
    TOO_EARLY_START = "TOO_EARLY_START"
    TOO_LATE_END = "TOO_LATE_END"
    INVALID_SCHEDULE = "INVALID_SCHEDULE"
    PROHIBITED_CATEGORY = "PROHIBITED_CATEGORY"
    PROHIBITED_CONTENT = "PROHIBITED_CONTENT"
    CATEGORY_RESTRICTION = "CATEGORY_RESTRICTION"
    # Warnings (non-blocking)
    LOW_WAGE = "LOW_WAGE"
    EFFECTIVE_WAGE_BELOW_MINIMUM = "EFFECTIVE_WAGE_BELOW_MINIMUM"
    DURATION_UNKNOWN = "DURATION_UNKNOWN"
    WEEKLY_HOURS_REMINDER = "WEEKLY_HOURS_REMINDER"
    PRIVATE_HOME_ALONE = "PRIVATE_HOME_ALONE"


@dataclass(frozen=True)
class WorkerAgeInfo:
    """Age snapshot for a worker. Derived from a birth date, never stored."""
    age_years: int
    age_bracket: AgeBracket
    is_minor: bool

    def __post_init__(self):
        if self.is_minor != self.age_bracket.is_minor:
            raise ValueError(
                f"is_minor={self.is_minor} contradicts bracket {self.age_bracket.value}"
            )


@dataclass(frozen=True)
class AccountFlags:
    """Account standing supplied by the identity/session collaborator."""
    paused: bool = False
    banned: bool = False

    @property
    def is_restricted(self) -> bool:
        return self.paused or self.banned


@dataclass(frozen=True)
class JobSnapshot:
    """Read-only view of a job posting as supplied by job storage."""
    job_id: Optional[str] = None
    category: Optional[str] = None  # Legacy category, e.g. "BABYSITTING"
    standard_slug: Optional[str] = None  # Taxonomy slug, e.g. "pet-animal-care"
    risk_category: Optional[RiskCategory] = None  # Pinned tier, resolved if None
    minimum_age: Optional[int] = None  # Employer-declared floor
    pay_amount: float = 0.0
    pay_type: PayType = PayType.HOURLY
    duration_minutes: Optional[int] = None
    scheduled_start: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    is_school_day: bool = False
    is_school_holiday: bool = False
    requires_working_alone: bool = False
    involves_private_home: bool = False
    title: str = ""
    description: str = ""

    @property
    def duration_hours(self) -> Optional[float]:
        """Duration in hours, falling back to the scheduled span."""
        if self.duration_minutes is not None:
            return self.duration_minutes / 60
        if self.scheduled_start and self.scheduled_end and not self.has_mixed_timezones:
            if self.scheduled_end > self.scheduled_start:
                return (self.scheduled_end - self.scheduled_start).total_seconds() / 3600
        return None

    @property
    def has_mixed_timezones(self) -> bool:
        """True when exactly one of start and end carries a timezone."""
        if self.scheduled_start is None or self.scheduled_end is None:
            return False
        return (self.scheduled_start.tzinfo is None) != (self.scheduled_end.tzinfo is None)

    @property
    def screening_text(self) -> str:
        return f"{self.title} {self.description}".strip()


@dataclass
class ComplianceFinding:
    """A single compliance violation or warning."""
    code: ComplianceCode
    message: str
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class ComplianceSuggestion:
    """A corrective change to a job field that clears a violation."""
    field: str
    current_value: Any
    suggested_value: Any
    reason: str

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "field": self.field,
            "current_value": self.current_value,
            "suggested_value": self.suggested_value,
            "reason": self.reason,
        }


@dataclass
class ComplianceResult:
    """Result of compliance validation. Warnings never block."""
    age_band: AgeBracket
    risk_category: RiskCategory
    policy_version_used: int
    evaluated_at: datetime
    violations: list[ComplianceFinding] = field(default_factory=list)
    warnings: list[ComplianceFinding] = field(default_factory=list)
    suggestions: list[ComplianceSuggestion] = field(default_factory=list)

    @property
    def compliant(self) -> bool:
        return not self.violations

    def add_violation(self, code: ComplianceCode, message: str, **details: Any) -> None:
        self.violations.append(ComplianceFinding(code=code, message=message, details=details))

    def add_warning(self, code: ComplianceCode, message: str, **details: Any) -> None:
        self.warnings.append(ComplianceFinding(code=code, message=message, details=details))

    def suggest(self, field_name: str, current_value: Any, suggested_value: Any, reason: str) -> None:
        self.suggestions.append(ComplianceSuggestion(field_name, current_value, suggested_value, reason))

    @property
    def violation_codes(self) -> list[ComplianceCode]:
        return [v.code for v in self.violations]

    @property
    def warning_codes(self) -> list[ComplianceCode]:
        return [w.code for w in self.warnings]

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "compliant": self.compliant,
            "age_band": self.age_band.value,
            "risk_category": self.risk_category.value,
            "policy_version_used": self.policy_version_used,
            "evaluated_at": self.evaluated_at.isoformat(),
            "violations": [v.to_dict() for v in self.violations],
            "warnings": [w.to_dict() for w in self.warnings],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "violation_count": len(self.violations),
            "warning_count": len(self.warnings),
        }


@dataclass(frozen=True)
class EligibilityDecision:
    """
    Immutable outcome of an eligibility check.

    Use the ``allowed``, ``blocked`` and ``needs_guardian_consent``
    constructors. An ALLOWED decision carries exactly the ELIGIBLE reason and
    a BLOCKED decision at least one blocking reason; anything else is
    rejected at construction.
    """
    outcome: EligibilityOutcome
    reason_codes: tuple[ReasonCode, ...]
    policy_version_used: int
    evaluated_at: datetime
    required_min_age: Optional[int] = None
    age_years: Optional[int] = None
    age_bracket: Optional[AgeBracket] = None

    def __post_init__(self):
        if not self.reason_codes:
            raise ValueError("An eligibility decision needs at least one reason code")
        if self.outcome == EligibilityOutcome.ALLOWED:
            if self.reason_codes != (ReasonCode.ELIGIBLE,):
                raise ValueError("ALLOWED decisions carry only the ELIGIBLE reason")
        elif self.outcome == EligibilityOutcome.BLOCKED:
            if not all(code in BLOCKING_REASONS for code in self.reason_codes):
                raise ValueError("BLOCKED decisions carry only blocking reasons")
        elif self.reason_codes != (ReasonCode.GUARDIAN_CONSENT_REQUIRED,):
            raise ValueError("NEEDS_GUARDIAN_CONSENT decisions carry only GUARDIAN_CONSENT_REQUIRED")

    @classmethod
    def blocked(
        cls,
        reasons: list[ReasonCode],
        policy_version: int,
        evaluated_at: datetime,
        required_min_age: Optional[int] = None,
        worker: Optional[WorkerAgeInfo] = None,
    ) -> "EligibilityDecision":
        return cls(
            outcome=EligibilityOutcome.BLOCKED,
            reason_codes=tuple(reasons),
            policy_version_used=policy_version,
            evaluated_at=evaluated_at,
            required_min_age=required_min_age,
            age_years=worker.age_years if worker else None,
            age_bracket=worker.age_bracket if worker else None,
        )

    @classmethod
    def needs_guardian_consent(
        cls,
        policy_version: int,
        evaluated_at: datetime,
        required_min_age: int,
        worker: WorkerAgeInfo,
    ) -> "EligibilityDecision":
        return cls(
            outcome=EligibilityOutcome.NEEDS_GUARDIAN_CONSENT,
            reason_codes=(ReasonCode.GUARDIAN_CONSENT_REQUIRED,),
            policy_version_used=policy_version,
            evaluated_at=evaluated_at,
            required_min_age=required_min_age,
            age_years=worker.age_years,
            age_bracket=worker.age_bracket,
        )

    @classmethod
    def allowed(
        cls,
        policy_version: int,
        evaluated_at: datetime,
        required_min_age: int,
        worker: WorkerAgeInfo,
    ) -> "EligibilityDecision":
        return cls(
            outcome=EligibilityOutcome.ALLOWED,
            reason_codes=(ReasonCode.ELIGIBLE,),
            policy_version_used=policy_version,
            evaluated_at=evaluated_at,
            required_min_age=required_min_age,
            age_years=worker.age_years,
            age_bracket=worker.age_bracket,
        )

    @property
    def is_allowed(self) -> bool:
        return self.outcome == EligibilityOutcome.ALLOWED

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "outcome": self.outcome.value,
            "reason_codes": [code.value for code in self.reason_codes],
            "policy_version_used": self.policy_version_used,
            "evaluated_at": self.evaluated_at.isoformat(),
            "required_min_age": self.required_min_age,
            "age_years": self.age_years,
            "age_bracket": self.age_bracket.value if self.age_bracket else None,
        }
