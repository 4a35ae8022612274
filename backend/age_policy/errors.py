"""Exceptions raised by the age policy engine.

Exceptions are reserved for programmer and configuration errors. Missing
birth dates, unmapped categories and borderline ages are reported as
decision values, never raised.
"""


class AgePolicyError(Exception):
    """Base class for age policy engine errors."""


class InvalidDate(AgePolicyError, ValueError):
    """Birth date is malformed or lies in the future."""


class PolicyValidationError(AgePolicyError, ValueError):
    """A policy value is internally inconsistent (missing bands, bad windows)."""


class PolicyNotFoundError(AgePolicyError, LookupError):
    """No policy version matches the lookup."""


class PolicyPublishError(AgePolicyError):
    """A new policy version was rejected at publish time."""


class PolicyVersionConflictError(PolicyPublishError):
    """Published version number is not greater than every stored version."""

    def __init__(self, version: int, latest_version: int):
        self.version = version
        self.latest_version = latest_version
        super().__init__(
            f"Policy version {version} must be greater than the latest published version {latest_version}"
        )


class PolicyRegressionError(PolicyPublishError):
    """A new policy version lowers an age floor.

    ``regressions`` lists ``(key, previous_min_age, new_min_age)`` tuples, one
    per offending risk tier or category override.
    """

    def __init__(self, version: int, regressions: list[tuple[str, int, int]]):
        self.version = version
        self.regressions = regressions
        details = ", ".join(f"{key}: {prev} -> {new}" for key, prev, new in regressions)
        super().__init__(f"Policy version {version} loosens minimum age floors ({details})")
