from datetime import datetime
from typing import Optional

from beanie import Document, Indexed
from pydantic import Field
from pymongo import IndexModel

from utils import utc_now


class AgePolicyDoc(Document):
    """
    A published age policy version.
    Never updated or deleted; a new version supersedes it.
    """
    version: Indexed(int, unique=True)
    effective_from: datetime
    policy_json: dict  # Serialized AgePolicySchema
    published_at: datetime = Field(default_factory=utc_now)
    published_by: Optional[str] = None
    notes: Optional[str] = None

    class Settings:
        name = "age_policies"


class EligibilityAuditDoc(Document):
    """
    Append-only record of an eligibility decision or compliance result.
    Stores the policy version so the decision can be replayed.
    """
    kind: str  # "ELIGIBILITY" or "COMPLIANCE"
    outcome: str
    reason_codes: list[str] = []
    policy_version: int
    evaluated_at: datetime
    recorded_at: datetime = Field(default_factory=utc_now)

    # Who and what
    action: str = "check"
    worker_id: Optional[str] = None
    job_id: Optional[str] = None
    employer_id: Optional[str] = None
    ip_address: Optional[str] = None

    # Age snapshot at decision time
    age_years: Optional[int] = None
    age_bracket: Optional[str] = None
    required_min_age: Optional[int] = None

    metadata: dict = {}

    class Settings:
        name = "eligibility_audit"
        indexes = [
            IndexModel([("evaluated_at", -1)]),
            IndexModel([("worker_id", 1), ("evaluated_at", -1)]),
            IndexModel([("job_id", 1)]),
            IndexModel([("policy_version", 1)]),
        ]
