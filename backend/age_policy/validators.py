"""Compliance validators for youth labor rules."""

import math
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, Optional

from .policy import AgePolicy, CategoryRule
from .types import (
    AgeBracket,
    ComplianceCode,
    ComplianceResult,
    JobSnapshot,
    PayType,
    RiskCategory,
)

# Hourly pay below floor * LOW_WAGE_MARGIN draws a warning
LOW_WAGE_MARGIN = 1.1


@dataclass(frozen=True)
class ComplianceContext:
    """Everything a validator needs to judge one job for one age band."""
    job: JobSnapshot
    age_band: AgeBracket
    risk: RiskCategory
    rule: CategoryRule
    policy: AgePolicy
    effective_min_age: int
    worker_age: Optional[int] = None

    @property
    def is_minor(self) -> bool:
        return self.age_band.is_minor

    @property
    def duration_hours(self) -> Optional[float]:
        return self.job.duration_hours


class BaseValidator(ABC):
    """Base class for compliance validators."""

    @abstractmethod
    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        """Validate compliance and add findings to result."""
        pass


class WageValidator(BaseValidator):
    """Checks pay against the hourly wage floor for the band."""

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        job = context.job
        floor = context.rule.minimum_hourly_wage.for_worker(context.is_minor)

        if job.pay_amount <= 0:
            result.add_violation(
                ComplianceCode.UNPAID_WORK,
                "Job offers no pay",
                pay_amount=job.pay_amount,
            )
            return

        if job.pay_type == PayType.HOURLY:
            if job.pay_amount < floor:
                result.add_violation(
                    ComplianceCode.BELOW_MINIMUM_WAGE,
                    f"Hourly pay {job.pay_amount:g} is below the minimum of {floor:g}",
                    pay_amount=job.pay_amount,
                    minimum_hourly_wage=floor,
                )
                result.suggest("pay_amount", job.pay_amount, floor, "Raise the hourly rate to the minimum wage")
            elif job.pay_amount < floor * LOW_WAGE_MARGIN:
                result.add_warning(
                    ComplianceCode.LOW_WAGE,
                    f"Hourly pay {job.pay_amount:g} is close to the minimum of {floor:g}",
                    pay_amount=job.pay_amount,
                    minimum_hourly_wage=floor,
                )
            return

        # Fixed pay is only compared against the floor when the duration is known
        hours = context.duration_hours
        if hours:
            effective_rate = job.pay_amount / hours
            if effective_rate < floor:
                result.add_warning(
                    ComplianceCode.EFFECTIVE_WAGE_BELOW_MINIMUM,
                    f"Fixed pay works out to {effective_rate:.2f} per hour, below the minimum of {floor:g}",
                    effective_hourly_rate=round(effective_rate, 2),
                    minimum_hourly_wage=floor,
                )
                result.suggest(
                    "pay_amount",
                    job.pay_amount,
                    math.ceil(hours * floor),
                    "Raise the fixed payment to the minimum wage for the job length",
                )


class DailyHoursValidator(BaseValidator):
    """Validates job duration against the daily cap for the kind of day."""

    CODES = {
        "school_day": ComplianceCode.EXCESSIVE_DAILY_HOURS_SCHOOL,
        "holiday": ComplianceCode.EXCESSIVE_HOLIDAY_HOURS,
        "non_school_day": ComplianceCode.EXCESSIVE_DAILY_HOURS,
    }

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        hours = context.duration_hours
        if hours is None:
            if context.is_minor:
                result.add_warning(
                    ComplianceCode.DURATION_UNKNOWN,
                    "Job duration is unknown, hour limits could not be checked",
                )
            return

        job = context.job
        cap, day_kind = context.rule.max_daily_hours(context.age_band, job.is_school_day, job.is_school_holiday)
        if hours > cap:
            result.add_violation(
                self.CODES[day_kind],
                f"Job lasts {hours:g}h, exceeds the {day_kind.replace('_', ' ')} limit of {cap:g}h",
                hours=hours,
                max_allowed=cap,
                day_kind=day_kind,
            )
            current = job.duration_minutes if job.duration_minutes is not None else round(hours * 60)
            result.suggest("duration_minutes", current, int(cap * 60), f"Shorten the job to {cap:g}h or less")


class WeeklyHoursValidator(BaseValidator):
    """Validates job duration against the weekly cap."""

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        hours = context.duration_hours
        if hours is None:
            return

        job = context.job
        cap = context.rule.max_weekly_hours(context.age_band, job.is_school_holiday)
        if hours > cap:
            result.add_violation(
                ComplianceCode.EXCESSIVE_WEEKLY_HOURS,
                f"Job lasts {hours:g}h, exceeds the weekly limit of {cap:g}h",
                hours=hours,
                max_allowed=cap,
            )
            return

        school_day_cap = context.rule.max_daily_hours_by_band[context.age_band].school_day
        if context.is_minor and not job.is_school_holiday and hours > school_day_cap:
            result.add_warning(
                ComplianceCode.WEEKLY_HOURS_REMINDER,
                f"Remember the weekly limit of {cap:g}h during school term",
                hours=hours,
                weekly_limit=cap,
            )


class TimeWindowValidator(BaseValidator):
    """Validates the schedule against the allowed working window."""

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        start = context.job.scheduled_start
        end = context.job.scheduled_end
        if start is None or end is None:
            return

        # Naive and aware times cannot be ordered
        if context.job.has_mixed_timezones:
            result.add_violation(
                ComplianceCode.INVALID_SCHEDULE,
                "Scheduled start and end must both have a timezone or both have none",
                scheduled_start=start.isoformat(),
                scheduled_end=end.isoformat(),
            )
            return

        if end < start:
            result.add_violation(
                ComplianceCode.INVALID_SCHEDULE,
                "Scheduled end is before scheduled start",
                scheduled_start=start.isoformat(),
                scheduled_end=end.isoformat(),
            )
            return

        window = context.rule.time_window(context.age_band)
        if window.is_unrestricted:
            return

        start_of_day = start.replace(hour=0, minute=0, second=0, microsecond=0)
        start_hour = (start - start_of_day).total_seconds() / 3600
        # Past midnight counts as later than 24:00 of the start day
        end_hour = (end - start_of_day).total_seconds() / 3600

        if start_hour < window.start_hour:
            result.add_violation(
                ComplianceCode.TOO_EARLY_START,
                f"Job starts at {start:%H:%M}, before the allowed {window.start_hour:02d}:00",
                scheduled_start=start.isoformat(),
                earliest_start_hour=window.start_hour,
            )
            result.suggest("scheduled_start", start.isoformat(), f"{window.start_hour:02d}:00", "Start the job later")
        if end_hour > window.end_hour:
            result.add_violation(
                ComplianceCode.TOO_LATE_END,
                f"Job ends at {end:%H:%M}, after the allowed {window.end_hour:02d}:00",
                scheduled_end=end.isoformat(),
                latest_end_hour=window.end_hour,
            )
            result.suggest("scheduled_end", end.isoformat(), f"{window.end_hour:02d}:00", "End the job earlier")


class CategoryEligibilityValidator(BaseValidator):
    """Rejects workers (or bands, when no age is known) too young for the job's minimum age."""

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        age = context.worker_age if context.worker_age is not None else context.age_band.min_age
        if age < context.effective_min_age:
            result.add_violation(
                ComplianceCode.PROHIBITED_CATEGORY,
                f"{context.risk.value} job requires age {context.effective_min_age}+",
                age_band=context.age_band.value,
                required_min_age=context.effective_min_age,
            )


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", re.IGNORECASE)


def find_keywords(text: str, keywords: Iterable[str]) -> list[str]:
    """Keywords that occur in text as whole words, case-insensitive."""
    if not text:
        return []
    return [kw for kw in keywords if kw and _keyword_pattern(kw).search(text)]


class ProhibitedContentValidator(BaseValidator):
    """Screens title and description of jobs offered to minors."""

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        if not context.is_minor:
            return

        text = context.job.screening_text
        matched = find_keywords(text, context.policy.prohibited_keywords)
        if matched:
            result.add_violation(
                ComplianceCode.PROHIBITED_CONTENT,
                f"Job mentions tasks not allowed for minors: {', '.join(matched)}",
                keywords=matched,
            )

        matched = find_keywords(text, context.rule.prohibited_keywords)
        if matched:
            result.add_violation(
                ComplianceCode.CATEGORY_RESTRICTION,
                f"Job mentions tasks restricted in this category: {', '.join(matched)}",
                keywords=matched,
                notes=context.rule.notes,
            )


class AdultPresenceValidator(BaseValidator):
    """Warns when a minor would work alone in a private home."""

    def validate(self, context: ComplianceContext, result: ComplianceResult) -> None:
        job = context.job
        if context.is_minor and job.requires_working_alone and job.involves_private_home:
            result.add_warning(
                ComplianceCode.PRIVATE_HOME_ALONE,
                "Minor would work alone in a private home",
                requires_adult_present=context.rule.requires_adult_present_if_alone,
            )
