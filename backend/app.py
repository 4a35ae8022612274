import logging
from contextlib import asynccontextmanager
from dataclasses import replace
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

import config
from age_policy import AgePolicyEngine, PolicyStore
from age_policy.audit import AuditContext
from age_policy.errors import (
    PolicyNotFoundError,
    PolicyPublishError,
    PolicyValidationError,
)
from age_policy.policy import AgePolicy
from db import (
    init_db,
    close_db,
    MongoAuditRecorder,
    load_policy_store,
    recent_audit_entries,
    save_policy,
)
from schemas import (
    AgePolicySchema,
    ApplicationEvaluationSchema,
    AuditEntrySchema,
    ComplianceResultSchema,
    ComplianceValidateRequest,
    EligibilityCheckRequest,
    EligibilityDecisionSchema,
    JobSchema,
    MinimumAgeRequest,
    MinimumAgeResponse,
    PolicySummary,
    PublishPolicyResponse,
    RiskResolutionSchema,
)
from utils import setup_logging

setup_logging(config.LOG_LEVEL)

policy_store = PolicyStore.with_default_policy(platform_min_age=config.PLATFORM_MINIMUM_AGE)
audit_recorder = MongoAuditRecorder(config.AUDIT_MAX_PENDING) if config.AUDIT_ENABLED else None
engine = AgePolicyEngine(policy_store, recorder=audit_recorder)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.validate_config()
    await init_db()
    await load_policy_store(policy_store)
    yield
    await flush_audit()
    await close_db()


app = FastAPI(title="agePolicy", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def flush_audit() -> None:
    if audit_recorder is not None:
        await audit_recorder.flush()


def client_ip(req: Request) -> str | None:
    return req.client.host if req.client else None


def policy_for_request(version: int | None) -> AgePolicy | None:
    """Pinned policy for replay, or None to use the active one."""
    if version is None:
        return None
    try:
        return policy_store.get_policy_at(version)
    except PolicyNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def active_policy() -> AgePolicy:
    try:
        return policy_store.get_active_policy()
    except PolicyNotFoundError as e:
        logging.error(f"No active age policy: {e}")
        raise HTTPException(status_code=503, detail="No age policy is in force")


# ============================================================================
# Eligibility and compliance
# ============================================================================


@app.post("/eligibility/check", response_model=EligibilityDecisionSchema)
async def check_eligibility(request: EligibilityCheckRequest, req: Request) -> EligibilityDecisionSchema:
    """Decide whether a worker may apply for a job."""
    policy = policy_for_request(request.policy_version) or active_policy()
    decision = engine.check_eligibility_for_birth_date(
        request.birth_date,
        request.job.to_snapshot(),
        guardian_consent=request.guardian_consent,
        account_flags=request.account_flags.to_domain(),
        context=request.audit_context("check", client_ip(req)),
        policy=policy,
    )
    await flush_audit()
    return EligibilityDecisionSchema(**decision.to_dict())


@app.post("/eligibility/evaluate", response_model=ApplicationEvaluationSchema)
async def evaluate_application(request: EligibilityCheckRequest, req: Request) -> ApplicationEvaluationSchema:
    """Eligibility, then compliance for the worker's age band if allowed."""
    policy = policy_for_request(request.policy_version) or active_policy()
    evaluation = engine.evaluate_application(
        request.birth_date,
        request.job.to_snapshot(),
        guardian_consent=request.guardian_consent,
        account_flags=request.account_flags.to_domain(),
        context=request.audit_context("apply", client_ip(req)),
        policy=policy,
    )
    await flush_audit()
    return ApplicationEvaluationSchema(**evaluation.to_dict())


@app.post("/compliance/validate", response_model=ComplianceResultSchema)
async def validate_compliance(request: ComplianceValidateRequest, req: Request) -> ComplianceResultSchema:
    """Validate a job against labor rules for a target age band."""
    policy = policy_for_request(request.policy_version) or active_policy()
    context = AuditContext(
        action="validate",
        worker_id=request.worker_id,
        job_id=request.job.job_id,
        employer_id=request.employer_id,
        ip_address=client_ip(req),
    )
    result = engine.validate_compliance(
        request.job.to_snapshot(),
        request.target_age_band,
        context=context,
        policy=policy,
        worker_age=request.worker_age,
    )
    await flush_audit()
    return ComplianceResultSchema(**result.to_dict())


@app.get("/risk/resolve", response_model=RiskResolutionSchema)
async def resolve_risk(category: str | None = None, slug: str | None = None) -> RiskResolutionSchema:
    """Resolve the risk tier of a legacy category and/or taxonomy slug."""
    policy = active_policy()
    resolution = engine.resolve(category, slug)
    return RiskResolutionSchema(
        risk_category=resolution.risk,
        source=resolution.source.value,
        matched_key=resolution.matched_key,
        needs_manual_classification=resolution.needs_manual_classification,
        baseline_min_age=max(policy.minimum_age_for(resolution.risk, category, slug), policy_store.platform_min_age),
    )


@app.post("/jobs/minimum-age", response_model=MinimumAgeResponse)
async def job_minimum_age(request: MinimumAgeRequest) -> MinimumAgeResponse:
    """Check an employer's minimum age and return the job with age defaults applied."""
    policy = active_policy()
    job = request.job.to_snapshot()
    # Resolve once so unmapped categories are reported once per request
    job = replace(job, risk_category=engine.resolve_job_risk(job))
    requested = request.requested_min_age if request.requested_min_age is not None else job.minimum_age

    if requested is not None:
        check = engine.validate_minimum_age(job, requested, policy=policy)
        baseline, accepted = check.baseline_min_age, check.accepted
    else:
        baseline = engine.get_effective_minimum_age(job, policy)
        accepted = True

    prepared = engine.apply_age_policy_to_job(job, requested, policy=policy)
    return MinimumAgeResponse(
        risk_category=prepared.risk_category,
        baseline_min_age=baseline,
        requested_min_age=requested,
        accepted=accepted,
        effective_min_age=prepared.minimum_age,
        policy_version_used=policy.version,
        job=JobSchema.from_snapshot(prepared),
    )


# ============================================================================
# Policies
# ============================================================================


@app.get("/policies", response_model=list[PolicySummary])
async def list_policies() -> list[PolicySummary]:
    """All published policy versions, oldest first."""
    try:
        active_version = policy_store.get_active_policy().version
    except PolicyNotFoundError:
        active_version = None

    return [
        PolicySummary(
            version=policy.version,
            effective_from=policy.effective_from,
            description=policy.description,
            baseline_min_age_by_risk=dict(policy.baseline_min_age_by_risk),
            is_active=policy.version == active_version,
        )
        for policy in policy_store.history()
    ]


@app.get("/policies/active", response_model=AgePolicySchema)
async def get_active_policy() -> AgePolicySchema:
    return AgePolicySchema.from_domain(active_policy())


@app.get("/policies/{version}", response_model=AgePolicySchema)
async def get_policy(version: int) -> AgePolicySchema:
    try:
        policy = policy_store.get_policy_at(version)
    except PolicyNotFoundError:
        raise HTTPException(status_code=404, detail=f"Policy version {version} not found")
    return AgePolicySchema.from_domain(policy)


@app.post("/policies", response_model=PublishPolicyResponse)
async def publish_policy(pass_key: str, request: AgePolicySchema) -> PublishPolicyResponse:
    """Publish a new policy version. Baselines may only tighten."""
    if not config.POLICY_ADMIN_PASS_KEY or pass_key != config.POLICY_ADMIN_PASS_KEY:
        raise HTTPException(status_code=422, detail="Invalid Credentials")

    try:
        policy = request.to_domain()
    except PolicyValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        policy_store.check_publishable(policy)
    except PolicyPublishError as e:
        raise HTTPException(status_code=409, detail=str(e))

    try:
        await save_policy(policy, published_by="admin", notes=policy.description or None)
    except Exception as e:
        logging.error(f"Failed to persist age policy version {policy.version}: {e}")
        raise HTTPException(status_code=503, detail="Policy storage unavailable")

    try:
        policy_store.publish(policy)
    except PolicyPublishError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return PublishPolicyResponse(
        success=True,
        version=policy.version,
        message=f"Policy version {policy.version} published",
    )


# ============================================================================
# Audit
# ============================================================================


@app.get("/audit", response_model=list[AuditEntrySchema])
async def get_audit_history(
    worker_id: str | None = None,
    job_id: str | None = None,
    limit: int = 50,
    skip: int = 0,
) -> list[AuditEntrySchema]:
    """Recent eligibility and compliance decisions, newest first."""
    await flush_audit()
    try:
        docs = await recent_audit_entries(worker_id=worker_id, job_id=job_id, limit=limit, skip=skip)
    except Exception as e:
        logging.error(f"Failed to read audit history: {e}")
        raise HTTPException(status_code=503, detail="Audit storage unavailable")

    return [
        AuditEntrySchema(
            kind=doc.kind,
            outcome=doc.outcome,
            reason_codes=doc.reason_codes,
            policy_version=doc.policy_version,
            evaluated_at=doc.evaluated_at,
            recorded_at=doc.recorded_at,
            action=doc.action,
            worker_id=doc.worker_id,
            job_id=doc.job_id,
            employer_id=doc.employer_id,
            age_years=doc.age_years,
            age_bracket=doc.age_bracket,
            required_min_age=doc.required_min_age,
        )
        for doc in docs
    ]
