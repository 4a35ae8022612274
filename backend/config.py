import os
from dotenv import load_dotenv

load_dotenv()

MONGODB_URL = os.getenv("MONGODB_URL", "mongodb://localhost:27017/age_policy")

POLICY_ADMIN_PASS_KEY = os.getenv("POLICY_ADMIN_PASS_KEY")

PLATFORM_MINIMUM_AGE = int(os.getenv("PLATFORM_MINIMUM_AGE", "15"))

AUDIT_ENABLED = os.getenv("AUDIT_ENABLED", "true").lower() in ("1", "true", "yes")

AUDIT_MAX_PENDING = int(os.getenv("AUDIT_MAX_PENDING", "10000"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def validate_config() -> None:
    missing = []
    if not MONGODB_URL:
        missing.append("MONGODB_URL")
    if not POLICY_ADMIN_PASS_KEY:
        missing.append("POLICY_ADMIN_PASS_KEY")

    if missing:
        raise RuntimeError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Please set these in your .env file."
        )
    if PLATFORM_MINIMUM_AGE < 0:
        raise RuntimeError("PLATFORM_MINIMUM_AGE must not be negative")
