# ai_review/core/logging_config.py
import logging

from ai_review.core.config import settings

_configured = False

def configure_logging(level: str = None) -> None:
    """Apply LOG_LEVEL once for the whole process."""
    global _configured
    if _configured:
        return
    name = (level or settings.LOG_LEVEL or "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    _configured = True
