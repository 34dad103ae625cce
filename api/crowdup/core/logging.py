"""Process-wide logging setup with secret redaction."""

from __future__ import annotations

import logging

from crowdup.core.config import settings
from crowdup.utils.redaction import redact_secrets

LOG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"


class RedactingFilter(logging.Filter):
    """Scrub tokens and credentials from rendered log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT, force=True)
    redactor = RedactingFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(redactor)
