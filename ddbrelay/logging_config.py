"""
Logging setup with credential redaction.

Session credentials must never reach a log line. Code paths avoid logging
them, and the redaction filter installed on every root handler scrubs
anything that slips through:
- CobaltSession=<value> cookie fragments
- Bearer <token> fragments
- Any credential registered for the in-flight request
"""

import logging
import re
from contextvars import ContextVar

REDACTED = "[REDACTED]"

_COOKIE_PATTERN = re.compile(r"(CobaltSession=)[^;\s\"']+")
_BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*")

_active_secrets: ContextVar[tuple[str, ...]] = ContextVar("active_secrets", default=())


def register_secret(secret: str) -> None:
    """Redact this value from every log line produced in the current context."""
    if secret:
        _active_secrets.set((*_active_secrets.get(), secret))


def redact(text: str) -> str:
    text = _COOKIE_PATTERN.sub(rf"\1{REDACTED}", text)
    text = _BEARER_PATTERN.sub(rf"\1{REDACTED}", text)
    for secret in _active_secrets.get():
        text = text.replace(secret, REDACTED)
    return text


class CredentialRedactionFilter(logging.Filter):
    """Rewrites records so their rendered message contains no credentials."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging and install the redaction filter."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, CredentialRedactionFilter) for f in handler.filters):
            handler.addFilter(CredentialRedactionFilter())
