"""Append-only audit trail for eligibility and compliance outcomes."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union

from utils import utc_now

from .types import ComplianceResult, EligibilityDecision

AuditOutcome = Union[EligibilityDecision, ComplianceResult]


class AuditKind(str, Enum):
    ELIGIBILITY = "ELIGIBILITY"
    COMPLIANCE = "COMPLIANCE"


@dataclass(frozen=True)
class AuditContext:
    """Who and what a decision was made for."""
    action: str = "check"
    worker_id: Optional[str] = None
    job_id: Optional[str] = None
    employer_id: Optional[str] = None
    ip_address: Optional[str] = None
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class AuditEntry:
    """One recorded outcome. Never updated after creation."""
    kind: AuditKind
    outcome: str
    reason_codes: tuple[str, ...]
    policy_version: int
    evaluated_at: datetime
    recorded_at: datetime
    action: str = "check"
    worker_id: Optional[str] = None
    job_id: Optional[str] = None
    employer_id: Optional[str] = None
    ip_address: Optional[str] = None
    age_years: Optional[int] = None
    age_bracket: Optional[str] = None
    required_min_age: Optional[int] = None
    metadata: dict = field(default_factory=dict)

    @classmethod
    def from_outcome(cls, outcome: AuditOutcome, context: Optional[AuditContext] = None) -> "AuditEntry":
        context = context or AuditContext()
        common: dict[str, Any] = dict(
            recorded_at=utc_now(),
            action=context.action,
            worker_id=context.worker_id,
            job_id=context.job_id,
            employer_id=context.employer_id,
            ip_address=context.ip_address,
            metadata=dict(context.metadata),
        )

        if isinstance(outcome, EligibilityDecision):
            return cls(
                kind=AuditKind.ELIGIBILITY,
                outcome=outcome.outcome.value,
                reason_codes=tuple(code.value for code in outcome.reason_codes),
                policy_version=outcome.policy_version_used,
                evaluated_at=outcome.evaluated_at,
                age_years=outcome.age_years,
                age_bracket=outcome.age_bracket.value if outcome.age_bracket else None,
                required_min_age=outcome.required_min_age,
                **common,
            )

        if isinstance(outcome, ComplianceResult):
            return cls(
                kind=AuditKind.COMPLIANCE,
                outcome="COMPLIANT" if outcome.compliant else "NON_COMPLIANT",
                reason_codes=tuple(code.value for code in outcome.violation_codes),
                policy_version=outcome.policy_version_used,
                evaluated_at=outcome.evaluated_at,
                age_bracket=outcome.age_band.value,
                **common,
            )

        raise TypeError(f"Cannot audit {type(outcome).__name__}")

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "kind": self.kind.value,
            "outcome": self.outcome,
            "reason_codes": list(self.reason_codes),
            "policy_version": self.policy_version,
            "evaluated_at": self.evaluated_at.isoformat(),
            "recorded_at": self.recorded_at.isoformat(),
            "action": self.action,
            "worker_id": self.worker_id,
            "job_id": self.job_id,
            "employer_id": self.employer_id,
            "ip_address": self.ip_address,
            "age_years": self.age_years,
            "age_bracket": self.age_bracket,
            "required_min_age": self.required_min_age,
            "metadata": self.metadata,
        }


class AuditRecorder(ABC):
    """Base class for audit sinks."""

    def record(self, outcome: AuditOutcome, context: Optional[AuditContext] = None) -> AuditEntry:
        entry = AuditEntry.from_outcome(outcome, context)
        self.write(entry)
        return entry

    @abstractmethod
    def write(self, entry: AuditEntry) -> None:
        """Persist one entry. May raise; callers decide how to degrade."""
        pass


class InMemoryAuditRecorder(AuditRecorder):
    """Keeps entries in process memory."""

    def __init__(self):
        self._entries: list[AuditEntry] = []

    def write(self, entry: AuditEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> tuple[AuditEntry, ...]:
        return tuple(self._entries)

    def recent(self, limit: int = 50) -> list[AuditEntry]:
        """Newest first."""
        return list(reversed(self._entries[-limit:])) if limit > 0 else []


class LoggingAuditRecorder(AuditRecorder):
    """Writes each entry to the log."""

    def write(self, entry: AuditEntry) -> None:
        logging.info(
            f"AUDIT {entry.kind.value} {entry.outcome} reasons={','.join(entry.reason_codes)} "
            f"policy=v{entry.policy_version} action={entry.action} "
            f"worker={entry.worker_id} job={entry.job_id}"
        )
