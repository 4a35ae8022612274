"""Age eligibility and youth labor compliance policy engine."""

from .age_math import (
    compute_age_years,
    derive_age_bracket,
    parse_birth_date,
    worker_age_info,
    worker_age_info_from_birth_date,
)
from .audit import (
    AuditContext,
    AuditEntry,
    AuditRecorder,
    InMemoryAuditRecorder,
    LoggingAuditRecorder,
)
from .compliance import ComplianceValidator
from .engine import AgePolicyEngine, ApplicationEvaluation
from .errors import (
    AgePolicyError,
    InvalidDate,
    PolicyNotFoundError,
    PolicyPublishError,
    PolicyRegressionError,
    PolicyValidationError,
    PolicyVersionConflictError,
)
from .policy import (
    PLATFORM_MINIMUM_AGE,
    AgePolicy,
    CategoryRule,
    PolicyStore,
    build_default_policy,
)
from .risk import CategoryRiskResolver, RiskResolution, UnmappedCategory, resolve_risk
from .types import (
    AccountFlags,
    AgeBracket,
    ComplianceCode,
    ComplianceResult,
    ComplianceSuggestion,
    EligibilityDecision,
    EligibilityOutcome,
    JobSnapshot,
    PayType,
    ReasonCode,
    RiskCategory,
    WorkerAgeInfo,
)

__all__ = [
    "compute_age_years",
    "derive_age_bracket",
    "parse_birth_date",
    "worker_age_info",
    "worker_age_info_from_birth_date",
    "AuditContext",
    "AuditEntry",
    "AuditRecorder",
    "InMemoryAuditRecorder",
    "LoggingAuditRecorder",
    "ComplianceValidator",
    "AgePolicyEngine",
    "ApplicationEvaluation",
    "AgePolicyError",
    "InvalidDate",
    "PolicyNotFoundError",
    "PolicyPublishError",
    "PolicyRegressionError",
    "PolicyValidationError",
    "PolicyVersionConflictError",
    "PLATFORM_MINIMUM_AGE",
    "AgePolicy",
    "CategoryRule",
    "PolicyStore",
    "build_default_policy",
    "CategoryRiskResolver",
    "RiskResolution",
    "UnmappedCategory",
    "resolve_risk",
    "AccountFlags",
    "AgeBracket",
    "ComplianceCode",
    "ComplianceResult",
    "ComplianceSuggestion",
    "EligibilityDecision",
    "EligibilityOutcome",
    "JobSnapshot",
    "PayType",
    "ReasonCode",
    "RiskCategory",
    "WorkerAgeInfo",
]
