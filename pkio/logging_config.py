"""
Logging configuration for pkio.

Library modules log through logging.getLogger(__name__) and never
configure handlers themselves; the CLI calls configure_logging() once.
Audit events go to the "pkio.audit" logger with their fields attached to
the record, so StructuredFormatter emits them as top-level JSON keys.

Key material and shared secrets are never passed to a logger.
"""

import json
import logging
import sys
import time
from typing import Any, Dict, Iterable, List, Optional

AUDIT_LOGGER_NAME = "pkio.audit"
PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

SEVERITY_LEVELS = {
    "low": logging.INFO,
    "medium": logging.WARNING,
    "high": logging.ERROR,
    "critical": logging.CRITICAL,
}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, UTC timestamps."""

    converter = time.gmtime

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, '%Y-%m-%dT%H:%M:%SZ'),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if not record.name.startswith(AUDIT_LOGGER_NAME):
            entry["location"] = f"{record.module}:{record.funcName}:{record.lineno}"
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class AuditLogger:
    """
    Audit trail of entity operations.

    Successful seals, encryptions and decryptions are INFO; every failed
    signature or authentication check is a WARNING so it can be alerted on.
    """

    def __init__(self, name: str = AUDIT_LOGGER_NAME):
        self._logger = logging.getLogger(name)

    def _emit(self, level: int, event_type: str, summary: str, **fields) -> None:
        fields["event_type"] = event_type
        self._logger.log(level, "%s: %s", event_type, summary, extra={"extra_fields": fields})

    def keys_generated(self, entity_id: str, key_type: str) -> None:
        self._emit(logging.INFO, "KEYS_GENERATED", f"{key_type} signing and encryption keys",
                   entity_id=entity_id, key_type=key_type)

    def container_signed(self, entity_id: str, signature_mode: str) -> None:
        self._emit(logging.INFO, "CONTAINER_SIGNED", signature_mode,
                   entity_id=entity_id, signature_mode=signature_mode)

    def container_authenticated(self, entity_id: str, key_id: str) -> None:
        self._emit(logging.INFO, "CONTAINER_AUTHENTICATED", f"shared key {key_id}",
                   entity_id=entity_id, key_id=key_id)

    def container_encrypted(self, entity_id: str, recipient_ids: Iterable[str]) -> None:
        recipients: List[str] = sorted(recipient_ids)
        self._emit(logging.INFO, "CONTAINER_ENCRYPTED", f"{len(recipients)} recipient(s)",
                   entity_id=entity_id, recipients=recipients)

    def container_decrypted(self, entity_id: str, source: str) -> None:
        self._emit(logging.INFO, "CONTAINER_DECRYPTED", f"from {source or 'unknown source'}",
                   entity_id=entity_id, source=source)

    def verification_failed(self, entity_id: str, source: str, signature_mode: str, reason: str) -> None:
        self._emit(logging.WARNING, "VERIFICATION_FAILED", reason,
                   entity_id=entity_id, source=source,
                   signature_mode=signature_mode, reason=reason)

    def security_event(self, event: str, severity: str = "medium", **details) -> None:
        level = SEVERITY_LEVELS.get(severity, logging.WARNING)
        self._emit(level, "SECURITY_EVENT", event,
                   security_event=event, severity=severity, **details)


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Route all logging to stderr (and optionally a file).

    Args:
        level: Log level name
        json_format: StructuredFormatter when true, plain text otherwise
        log_file: Optional extra file destination
    """
    formatter = StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT)

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level.upper())


audit_log = AuditLogger()
