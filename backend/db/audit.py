import logging

from age_policy.audit import AuditEntry, AuditRecorder

from .models import EligibilityAuditDoc

DEFAULT_MAX_PENDING = 10_000


def audit_entry_to_doc(entry: AuditEntry) -> EligibilityAuditDoc:
    return EligibilityAuditDoc(
        kind=entry.kind.value,
        outcome=entry.outcome,
        reason_codes=list(entry.reason_codes),
        policy_version=entry.policy_version,
        evaluated_at=entry.evaluated_at,
        recorded_at=entry.recorded_at,
        action=entry.action,
        worker_id=entry.worker_id,
        job_id=entry.job_id,
        employer_id=entry.employer_id,
        ip_address=entry.ip_address,
        age_years=entry.age_years,
        age_bracket=entry.age_bracket,
        required_min_age=entry.required_min_age,
        metadata=dict(entry.metadata),
    )


class MongoAuditRecorder(AuditRecorder):
    """
    Buffers audit entries and inserts them into MongoDB on flush().

    The engine records synchronously; the API flushes after each request.
    A failed flush keeps the entries for the next attempt. The buffer holds
    at most ``max_pending`` entries; the oldest are dropped and counted in
    ``dropped`` beyond that.
    """

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING):
        if max_pending < 1:
            raise ValueError("max_pending must be at least 1")
        self.max_pending = max_pending
        self.dropped = 0
        self._pending: list[AuditEntry] = []

    def write(self, entry: AuditEntry) -> None:
        self._pending.append(entry)
        self._trim()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _trim(self) -> None:
        overflow = len(self._pending) - self.max_pending
        if overflow <= 0:
            return
        del self._pending[:overflow]
        self.dropped += overflow
        logging.warning(
            f"Audit buffer full ({self.max_pending} entries), dropped {overflow} oldest; "
            f"{self.dropped} dropped in total"
        )

    async def flush(self) -> int:
        """Insert buffered entries. Returns the number written."""
        if not self._pending:
            return 0

        entries, self._pending = self._pending, []
        try:
            await EligibilityAuditDoc.insert_many([audit_entry_to_doc(e) for e in entries])
        except Exception as e:
            self._pending = entries + self._pending
            self._trim()
            logging.warning(
                f"Audit flush failed, keeping {len(self._pending)} entries in memory: {e}"
            )
            return 0

        logging.info(f"Flushed {len(entries)} audit entries")
        return len(entries)


async def recent_audit_entries(
    worker_id: str | None = None,
    job_id: str | None = None,
    limit: int = 50,
    skip: int = 0,
) -> list[EligibilityAuditDoc]:
    query = {}
    if worker_id:
        query["worker_id"] = worker_id
    if job_id:
        query["job_id"] = job_id

    return await EligibilityAuditDoc.find(query).sort(
        [("evaluated_at", -1)]
    ).skip(skip).limit(limit).to_list()
