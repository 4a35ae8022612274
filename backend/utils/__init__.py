from .time import utc_now, ensure_utc
from .log import setup_logging

__all__ = ["utc_now", "ensure_utc", "setup_logging"]
