"""Eligibility decisions: may this worker apply for this job right now."""

import logging
from datetime import datetime
from typing import Optional

from utils import utc_now

from .policy import AgePolicy
from .types import (
    AccountFlags,
    EligibilityDecision,
    ReasonCode,
    WorkerAgeInfo,
)


def check_eligibility(
    worker: Optional[WorkerAgeInfo],
    effective_min_age: int,
    guardian_consent: bool,
    account_flags: AccountFlags,
    policy: AgePolicy,
    evaluated_at: Optional[datetime] = None,
) -> EligibilityDecision:
    """
    Decide eligibility for one worker and one job.

    Blocking reasons are collected in a fixed order (account, age unknown,
    below minimum) and reported together. Guardian consent is only
    considered once nothing blocks.

    Args:
        worker: Age snapshot, or None if the birth date is unknown
        effective_min_age: Minimum age for the job after employer overrides
        guardian_consent: Whether a guardian has consented
        account_flags: Paused/banned state of the account
        policy: Policy version the decision is made under

    Returns:
        EligibilityDecision stamped with the policy version
    """
    evaluated_at = evaluated_at or utc_now()
    blocking: list[ReasonCode] = []

    if account_flags.is_restricted:
        blocking.append(ReasonCode.ACCOUNT_RESTRICTED)

    if worker is None:
        blocking.append(ReasonCode.AGE_UNKNOWN)
    elif worker.age_years < effective_min_age:
        blocking.append(ReasonCode.BELOW_MINIMUM_AGE)

    if blocking:
        if ReasonCode.AGE_UNKNOWN in blocking:
            logging.info("Eligibility blocked: worker age unknown")
        return EligibilityDecision.blocked(
            blocking,
            policy_version=policy.version,
            evaluated_at=evaluated_at,
            required_min_age=effective_min_age,
            worker=worker,
        )

    if worker.is_minor and not guardian_consent and policy.requires_guardian_consent(worker.age_bracket):
        return EligibilityDecision.needs_guardian_consent(
            policy_version=policy.version,
            evaluated_at=evaluated_at,
            required_min_age=effective_min_age,
            worker=worker,
        )

    return EligibilityDecision.allowed(
        policy_version=policy.version,
        evaluated_at=evaluated_at,
        required_min_age=effective_min_age,
        worker=worker,
    )


def is_job_visible(age_years: Optional[int], effective_min_age: int) -> bool:
    """Whether a job should be listed for a worker of the given age."""
    if age_years is None:
        return False
    return age_years >= effective_min_age
