import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from age_policy.audit import InMemoryAuditRecorder
from age_policy.engine import AgePolicyEngine
from age_policy.policy import PolicyStore, build_default_policy
from age_policy.types import JobSnapshot, PayType
from age_policy.age_math import worker_age_info


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def default_policy():
    return build_default_policy()


@pytest.fixture
def policy_store():
    return PolicyStore.with_default_policy()


@pytest.fixture
def audit_recorder():
    return InMemoryAuditRecorder()


@pytest.fixture
def engine(policy_store, audit_recorder):
    return AgePolicyEngine(policy_store, recorder=audit_recorder, clock=lambda: NOW)


@pytest.fixture
def make_job():
    """Factory for job snapshots with compliant defaults."""
    def _make_job(**overrides):
        fields = dict(
            job_id="job-1",
            category="TECH_HELP",
            pay_amount=200.0,
            pay_type=PayType.HOURLY,
            duration_minutes=120,
            scheduled_start=datetime(2026, 3, 7, 10, 0),
            scheduled_end=datetime(2026, 3, 7, 12, 0),
            title="Help setting up a new laptop",
            description="Install updates and show how to use video calls",
        )
        fields.update(overrides)
        return JobSnapshot(**fields)
    return _make_job


@pytest.fixture
def make_worker():
    return worker_age_info
