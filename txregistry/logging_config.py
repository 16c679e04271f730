"""
Logging configuration for TxRegistry.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional, TextIO

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
    Specialized logger for audit events.

    Every fully authenticated submission produces exactly one
    TRANSACTION_ACCEPTED or TRANSACTION_DUPLICATE record; rejected input
    produces INVALID_DESCRIPTOR or AUTHENTICATION_FAILED.
    """

    def __init__(self, name: str = "txregistry.audit"):
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

    def transaction_accepted(self, identity_key: str, signer: str, sequence: int) -> None:
        self._log(
            logging.INFO,
            "TRANSACTION_ACCEPTED",
            identity_key=identity_key,
            signer=signer,
            sequence=sequence,
            message=f"Transaction {identity_key} claimed by {signer}"
        )

    def transaction_duplicate(self, identity_key: str, signer: str, attempted_by: str) -> None:
        """Log a rejected resubmission of an already claimed key."""
        self._log(
            logging.WARNING,
            "TRANSACTION_DUPLICATE",
            identity_key=identity_key,
            signer=signer,
            attempted_by=attempted_by,
            message=f"Duplicate of {identity_key} from {attempted_by}; original signer {signer}"
        )

    def authentication_failed(self, reason: str, operation: Optional[str] = None) -> None:
        self._log(
            logging.WARNING,
            "AUTHENTICATION_FAILED",
            reason=reason,
            operation=operation,
            message=f"Authentication failed: {reason}"
        )

    def invalid_descriptor(self, field: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "INVALID_DESCRIPTOR",
            field=field,
            reason=reason,
            message=f"Invalid descriptor field {field}: {reason}"
        )

    def security_event(
        self,
        event: str,
        severity: str = "medium",
        **details
    ) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None,
    stream: Optional[TextIO] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting (recommended for production)
        log_file: Optional file path for log output
        stream: Console stream (default stdout)
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

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Returns:
        The request ID that was set (generated when None)
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
