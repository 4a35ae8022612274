"""
Age policy engine: the facade used by the API layer.

Combines risk resolution, the policy store, eligibility, compliance and
auditing. Every operation is synchronous and works on immutable inputs;
pass ``policy=store.get_policy_at(version)`` to replay a past decision.
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Union

from utils import utc_now

from .age_math import parse_birth_date, worker_age_info_from_birth_date
from .audit import AuditContext, AuditOutcome, AuditRecorder
from .compliance import ComplianceValidator
from .eligibility import check_eligibility, is_job_visible
from .errors import InvalidDate
from .policy import (
    AgePolicy,
    MinimumAgeCheck,
    PolicyStore,
    effective_minimum_age,
    enforce_min_age_floor,
    validate_employer_minimum_age,
)
from .risk import CategoryRiskResolver, RiskResolution
from .types import (
    AccountFlags,
    AgeBracket,
    ComplianceResult,
    EligibilityDecision,
    JobSnapshot,
    ReasonCode,
    RiskCategory,
    WorkerAgeInfo,
)

BirthDateInput = Union[str, date, datetime, None]


@dataclass(frozen=True)
class ApplicationEvaluation:
    """Eligibility plus, when allowed, the compliance result for the worker's band."""
    decision: EligibilityDecision
    risk_category: RiskCategory
    effective_min_age: int
    compliance: Optional[ComplianceResult] = None

    @property
    def can_apply(self) -> bool:
        return self.decision.is_allowed and self.compliance is not None and self.compliance.compliant

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "can_apply": self.can_apply,
            "risk_category": self.risk_category.value,
            "effective_min_age": self.effective_min_age,
            "decision": self.decision.to_dict(),
            "compliance": self.compliance.to_dict() if self.compliance else None,
        }


class AgePolicyEngine:
    """
    Main entry point for age eligibility and labor compliance.

    Audit failures never change a decision: they are logged and counted in
    ``audit_failures``.
    """

    def __init__(
        self,
        store: PolicyStore,
        resolver: Optional[CategoryRiskResolver] = None,
        recorder: Optional[AuditRecorder] = None,
        validator: Optional[ComplianceValidator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.resolver = resolver or CategoryRiskResolver()
        self.recorder = recorder
        self.validator = validator or ComplianceValidator(platform_min_age=store.platform_min_age)
        self.clock = clock
        self.audit_failures = 0

    # ------------------------------------------------------------------
    # Risk and minimum age
    # ------------------------------------------------------------------

    def resolve_risk(self, category: Optional[str] = None, slug: Optional[str] = None) -> RiskCategory:
        return self.resolver.resolve_risk(category, slug)

    def resolve(self, category: Optional[str] = None, slug: Optional[str] = None) -> RiskResolution:
        return self.resolver.resolve(category, slug)

    def resolve_job_risk(self, job: JobSnapshot) -> RiskCategory:
        """Pinned tier if the job has one, otherwise resolved from its category."""
        if job.risk_category is not None:
            return job.risk_category
        return self.resolver.resolve_risk(job.category, job.standard_slug)

    def _minimum_age(self, job: JobSnapshot, risk: RiskCategory, policy: AgePolicy) -> int:
        return effective_minimum_age(
            policy,
            risk,
            employer_min_age=job.minimum_age,
            legacy_category=job.category,
            standard_slug=job.standard_slug,
            platform_min_age=self.store.platform_min_age,
        )

    def get_effective_minimum_age(self, job: JobSnapshot, policy: Optional[AgePolicy] = None) -> int:
        policy = policy or self.store.get_active_policy(self.clock())
        return self._minimum_age(job, self.resolve_job_risk(job), policy)

    def validate_minimum_age(
        self,
        job: JobSnapshot,
        requested_min_age: int,
        policy: Optional[AgePolicy] = None,
    ) -> MinimumAgeCheck:
        policy = policy or self.store.get_active_policy(self.clock())
        return validate_employer_minimum_age(
            policy,
            self.resolve_job_risk(job),
            requested_min_age,
            legacy_category=job.category,
            standard_slug=job.standard_slug,
            platform_min_age=self.store.platform_min_age,
        )

    def apply_age_policy_to_job(
        self,
        job: JobSnapshot,
        requested_min_age: Optional[int] = None,
        policy: Optional[AgePolicy] = None,
    ) -> JobSnapshot:
        """Fill in risk tier and minimum age for a job being created."""
        policy = policy or self.store.get_active_policy(self.clock())
        risk = self.resolve_job_risk(job)
        if requested_min_age is None:
            requested_min_age = job.minimum_age
        minimum_age = enforce_min_age_floor(
            policy,
            risk,
            requested_min_age,
            legacy_category=job.category,
            standard_slug=job.standard_slug,
            platform_min_age=self.store.platform_min_age,
        )
        return replace(job, risk_category=risk, minimum_age=minimum_age)

    # ------------------------------------------------------------------
    # Eligibility
    # ------------------------------------------------------------------

    def check_eligibility(
        self,
        worker_age_info: Optional[WorkerAgeInfo],
        job: JobSnapshot,
        guardian_consent: bool = False,
        account_flags: Optional[AccountFlags] = None,
        context: Optional[AuditContext] = None,
        policy: Optional[AgePolicy] = None,
    ) -> EligibilityDecision:
        evaluated_at = self.clock()
        policy = policy or self.store.get_active_policy(evaluated_at)
        min_age = self.get_effective_minimum_age(job, policy)
        return self._decide(
            worker_age_info, job, min_age, guardian_consent, account_flags, context, policy, evaluated_at
        )

    def _decide(
        self,
        worker_age_info: Optional[WorkerAgeInfo],
        job: JobSnapshot,
        min_age: int,
        guardian_consent: bool,
        account_flags: Optional[AccountFlags],
        context: Optional[AuditContext],
        policy: AgePolicy,
        evaluated_at: datetime,
    ) -> EligibilityDecision:
        decision = check_eligibility(
            worker_age_info,
            min_age,
            guardian_consent,
            account_flags or AccountFlags(),
            policy,
            evaluated_at=evaluated_at,
        )
        self._record(decision, self._context_for(job, context))
        return decision

    def check_eligibility_for_birth_date(
        self,
        birth_date: BirthDateInput,
        job: JobSnapshot,
        guardian_consent: bool = False,
        account_flags: Optional[AccountFlags] = None,
        context: Optional[AuditContext] = None,
        policy: Optional[AgePolicy] = None,
    ) -> EligibilityDecision:
        """
        Eligibility from a raw birth date.

        A missing birth date blocks with AGE_UNKNOWN; a malformed or future
        one blocks with INVALID_BIRTH_DATE.
        """
        evaluated_at = self.clock()
        policy = policy or self.store.get_active_policy(evaluated_at)
        min_age = self.get_effective_minimum_age(job, policy)
        return self._decide_for_birth_date(
            birth_date, job, min_age, guardian_consent, account_flags, context, policy, evaluated_at
        )

    def _decide_for_birth_date(
        self,
        birth_date: BirthDateInput,
        job: JobSnapshot,
        min_age: int,
        guardian_consent: bool,
        account_flags: Optional[AccountFlags],
        context: Optional[AuditContext],
        policy: AgePolicy,
        evaluated_at: datetime,
    ) -> EligibilityDecision:
        account_flags = account_flags or AccountFlags()
        try:
            worker = self._worker_from_birth_date(birth_date, evaluated_at)
        except InvalidDate as e:
            logging.warning(f"Blocking eligibility check on invalid birth date: {e}")
            reasons = [ReasonCode.INVALID_BIRTH_DATE]
            if account_flags.is_restricted:
                reasons.insert(0, ReasonCode.ACCOUNT_RESTRICTED)
            decision = EligibilityDecision.blocked(
                reasons,
                policy_version=policy.version,
                evaluated_at=evaluated_at,
                required_min_age=min_age,
            )
            self._record(decision, self._context_for(job, context))
            return decision

        return self._decide(
            worker, job, min_age, guardian_consent, account_flags, context, policy, evaluated_at
        )

    @staticmethod
    def _worker_from_birth_date(birth_date: BirthDateInput, now: datetime) -> Optional[WorkerAgeInfo]:
        if birth_date is None or (isinstance(birth_date, str) and not birth_date.strip()):
            return None
        return worker_age_info_from_birth_date(parse_birth_date(birth_date), as_of=now.date())

    def filter_visible_jobs(
        self,
        worker_age_info: Optional[WorkerAgeInfo],
        jobs: Iterable[JobSnapshot],
        policy: Optional[AgePolicy] = None,
    ) -> list[JobSnapshot]:
        """Jobs whose effective minimum age the worker meets."""
        policy = policy or self.store.get_active_policy(self.clock())
        age = worker_age_info.age_years if worker_age_info else None
        return [job for job in jobs if is_job_visible(age, self.get_effective_minimum_age(job, policy))]

    # ------------------------------------------------------------------
    # Compliance
    # ------------------------------------------------------------------

    def validate_compliance(
        self,
        job: JobSnapshot,
        target_age_band: AgeBracket,
        context: Optional[AuditContext] = None,
        policy: Optional[AgePolicy] = None,
        worker_age: Optional[int] = None,
    ) -> ComplianceResult:
        evaluated_at = self.clock()
        policy = policy or self.store.get_active_policy(evaluated_at)
        risk = self.resolve_job_risk(job)
        min_age = self._minimum_age(job, risk, policy)
        return self._validate(
            job, target_age_band, risk, min_age, context, policy, worker_age, evaluated_at
        )

    def _validate(
        self,
        job: JobSnapshot,
        target_age_band: AgeBracket,
        risk: RiskCategory,
        min_age: int,
        context: Optional[AuditContext],
        policy: AgePolicy,
        worker_age: Optional[int],
        evaluated_at: datetime,
    ) -> ComplianceResult:
        result = self.validator.validate(
            job,
            target_age_band,
            policy,
            risk,
            worker_age=worker_age,
            effective_min_age=min_age,
            evaluated_at=evaluated_at,
        )
        self._record(result, self._context_for(job, context))
        return result

    def evaluate_application(
        self,
        birth_date: BirthDateInput,
        job: JobSnapshot,
        guardian_consent: bool = False,
        account_flags: Optional[AccountFlags] = None,
        context: Optional[AuditContext] = None,
        policy: Optional[AgePolicy] = None,
    ) -> ApplicationEvaluation:
        """
        Full application flow: eligibility first, compliance only when allowed.

        Both steps run under the same policy version, risk tier and minimum age.
        """
        evaluated_at = self.clock()
        policy = policy or self.store.get_active_policy(evaluated_at)
        context = context or AuditContext(action="apply")
        risk = self.resolve_job_risk(job)
        min_age = self._minimum_age(job, risk, policy)

        decision = self._decide_for_birth_date(
            birth_date, job, min_age, guardian_consent, account_flags, context, policy, evaluated_at
        )

        compliance = None
        if decision.is_allowed:
            compliance = self._validate(
                job, decision.age_bracket, risk, min_age, context, policy, decision.age_years, evaluated_at
            )

        return ApplicationEvaluation(
            decision=decision,
            risk_category=risk,
            effective_min_age=min_age,
            compliance=compliance,
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    @staticmethod
    def _context_for(job: JobSnapshot, context: Optional[AuditContext]) -> AuditContext:
        context = context or AuditContext()
        if context.job_id is None and job.job_id is not None:
            context = replace(context, job_id=job.job_id)
        return context

    def _record(self, outcome: AuditOutcome, context: AuditContext) -> None:
        if self.recorder is None:
            return
        try:
            self.recorder.record(outcome, context)
        except Exception as e:
            self.audit_failures += 1
            logging.warning(f"Audit recording failed, continuing without audit: {e}")
