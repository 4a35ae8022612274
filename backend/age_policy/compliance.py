"""Compliance validation that orchestrates all validators."""

from datetime import datetime
from typing import Optional

from utils import utc_now

from .policy import PLATFORM_MINIMUM_AGE, AgePolicy, effective_minimum_age
from .types import AgeBracket, ComplianceResult, JobSnapshot, RiskCategory
from .validators import (
    AdultPresenceValidator,
    BaseValidator,
    CategoryEligibilityValidator,
    ComplianceContext,
    DailyHoursValidator,
    ProhibitedContentValidator,
    TimeWindowValidator,
    WageValidator,
    WeeklyHoursValidator,
)


class ComplianceValidator:
    """
    Runs every labor rule against a job for a target age band.

    All validators run; findings are collected, never short-circuited.
    """

    def __init__(
        self,
        validators: Optional[list[BaseValidator]] = None,
        platform_min_age: int = PLATFORM_MINIMUM_AGE,
    ):
        self.validators: list[BaseValidator] = validators if validators is not None else [
            WageValidator(),
            DailyHoursValidator(),
            WeeklyHoursValidator(),
            TimeWindowValidator(),
            CategoryEligibilityValidator(),
            ProhibitedContentValidator(),
            AdultPresenceValidator(),
        ]
        self.platform_min_age = platform_min_age

    def build_context(
        self,
        job: JobSnapshot,
        target_band: AgeBracket,
        policy: AgePolicy,
        risk: RiskCategory,
        worker_age: Optional[int] = None,
        effective_min_age: Optional[int] = None,
    ) -> ComplianceContext:
        if effective_min_age is None:
            effective_min_age = effective_minimum_age(
                policy,
                risk,
                employer_min_age=job.minimum_age,
                legacy_category=job.category,
                standard_slug=job.standard_slug,
                platform_min_age=self.platform_min_age,
            )
        return ComplianceContext(
            job=job,
            age_band=target_band,
            risk=risk,
            rule=policy.rule_for(risk, job.category, job.standard_slug),
            policy=policy,
            effective_min_age=effective_min_age,
            worker_age=worker_age,
        )

    def validate(
        self,
        job: JobSnapshot,
        target_band: AgeBracket,
        policy: AgePolicy,
        risk: RiskCategory,
        worker_age: Optional[int] = None,
        effective_min_age: Optional[int] = None,
        evaluated_at: Optional[datetime] = None,
    ) -> ComplianceResult:
        """
        Validate a job for a target age band under a policy version.

        Args:
            job: The job snapshot
            target_band: Age band of the worker (or of the intended audience)
            policy: Policy version to validate under
            risk: Resolved risk tier of the job
            worker_age: Exact age, when a specific worker is known
            effective_min_age: Pre-computed minimum age, derived if None

        Returns:
            ComplianceResult with all violations and warnings found
        """
        context = self.build_context(job, target_band, policy, risk, worker_age, effective_min_age)
        result = ComplianceResult(
            age_band=target_band,
            risk_category=risk,
            policy_version_used=policy.version,
            evaluated_at=evaluated_at or utc_now(),
        )

        for validator in self.validators:
            validator.validate(context, result)

        return result
