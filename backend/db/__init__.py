from .database import init_db, get_database, close_db
from .models import AgePolicyDoc, EligibilityAuditDoc
from .audit import MongoAuditRecorder, recent_audit_entries
from .policies import load_policies, load_policy_store, save_policy

__all__ = [
    "init_db",
    "get_database",
    "close_db",
    "AgePolicyDoc",
    "EligibilityAuditDoc",
    "MongoAuditRecorder",
    "recent_audit_entries",
    "load_policies",
    "load_policy_store",
    "save_policy",
]
