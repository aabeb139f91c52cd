from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Tuple

from .signing import HEADER_PASS, HEADER_SIGN


_SENSITIVE = re.compile(
    r"(?i)(%s|%s|secret|passphrase)(['\"]?\s*[:=]\s*['\"]?)([^\s,'\"}]+)"
    % (re.escape(HEADER_SIGN), re.escape(HEADER_PASS))
)


class RedactingFilter(logging.Filter):
    """Masks signature, secret and passphrase values in formatted records."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _SENSITIVE.sub(r"\1\2[REDACTED]", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(logs_dir: str) -> Tuple[logging.Logger, logging.Logger]:
    Path(logs_dir).mkdir(parents=True, exist_ok=True)

    fmt = (
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    logging.basicConfig(level=logging.INFO, format=fmt)

    app_logger = logging.getLogger("coinbase_client")
    redact = RedactingFilter()
    # records from child loggers reach the console through root's handlers
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactingFilter) for f in handler.filters):
            handler.addFilter(redact)

    file_handler = RotatingFileHandler(
        str(Path(logs_dir) / "coinbase_client.log"), maxBytes=10 * 1024 * 1024, backupCount=5
    )
    file_handler.setFormatter(logging.Formatter(fmt))
    file_handler.addFilter(redact)
    app_logger.addHandler(file_handler)

    audit_logger = logging.getLogger("audit")
    audit_handler = RotatingFileHandler(
        str(Path(logs_dir) / "requests_audit.log"),
        maxBytes=10 * 1024 * 1024,
        backupCount=5,
    )
    audit_handler.setFormatter(logging.Formatter("%(asctime)s | %(message)s"))
    audit_handler.addFilter(redact)
    audit_logger.setLevel(logging.INFO)
    audit_logger.addHandler(audit_handler)

    return app_logger, audit_logger
