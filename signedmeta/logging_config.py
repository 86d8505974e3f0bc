"""
Logging configuration for signedmeta.

Provides structured JSON logging and an audit logger for verification and
signing decisions. Signatures and private key material are never logged.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import List, Optional

from .errors import ErrorKind, MetadataError

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for trust decisions.

    Every accepted or rejected document and every signing request produces
    exactly one decision event.
    """

    def __init__(self, name: str = "signedmeta.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def document_accepted(self, role: str, version: int, key_ids: List[str]) -> None:
        self._log(
            logging.INFO,
            "DOCUMENT_ACCEPTED",
            role=role,
            version=version,
            key_ids=key_ids,
            message=f"Accepted {role} version {version}"
        )

    def document_rejected(self, role: str, version: int, reason: MetadataError) -> None:
        self._log(
            logging.WARNING,
            "DOCUMENT_REJECTED",
            role=role,
            version=version,
            reason=reason.to_dict(),
            message=f"Rejected {role} version {version}: {reason}"
        )

    def ledger_advanced(self, role: str, version: int) -> None:
        self._log(
            logging.INFO,
            "LEDGER_ADVANCED",
            role=role,
            version=version,
            message=f"Ledger for {role} now at version {version}"
        )

    def key_rejected(self, key_id: str, reason: MetadataError) -> None:
        """Key material inconsistent with its descriptor; a tamper signal."""
        level = logging.INFO if reason.kind == ErrorKind.INVALID_KEY_LENGTH else logging.ERROR
        self._log(
            level,
            "KEY_REJECTED",
            key_id=key_id,
            reason=reason.to_dict(),
            message=f"Key {key_id} rejected: {reason}"
        )

    def signing_complete(self, role: str, key_ids: List[str]) -> None:
        self._log(
            logging.INFO,
            "SIGNING_COMPLETE",
            role=role,
            key_ids=key_ids,
            message=f"Signed {role} with {len(key_ids)} keys"
        )

    def signing_failed(self, role: str, reason: MetadataError) -> None:
        self._log(
            logging.WARNING,
            "SIGNING_FAILED",
            role=role,
            reason=reason.to_dict(),
            message=f"Signing {role} failed: {reason}"
        )

    def signer_error(self, role: str, key_id: str, error: str) -> None:
        self._log(
            logging.ERROR,
            "SIGNER_ERROR",
            role=role,
            key_id=key_id,
            error=error,
            message=f"Signer failed for key {key_id}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
