"""
Logging configuration for the confidential scoring engine.

Provides structured JSON logging and an audit logger for security-relevant
events. Records carry ciphertext handles and addresses only; plaintext
financial values never reach a log record.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for transaction ID tracking
transaction_id_var: ContextVar[str] = ContextVar('transaction_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per record, suitable for log aggregation.
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

        transaction_id = transaction_id_var.get()
        if transaction_id:
            log_data["transaction_id"] = transaction_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    Covers input rejection, submissions, threshold changes, protocol
    mismatches and decryption requests.
    """

    def __init__(self, name: str = "encscore.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "transaction_id": transaction_id_var.get(),
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

    def input_rejected(
        self,
        submitter: str,
        handle: Optional[str],
        reason: str
    ) -> None:
        """Log a ciphertext/proof pair that failed verification."""
        self._log(
            logging.WARNING,
            "INPUT_REJECTED",
            submitter=submitter,
            handle=handle,
            reason=reason,
            message=f"Input rejected for {submitter}: {reason}"
        )

    def credit_data_submitted(
        self,
        account: str,
        first_submission: bool,
        score_handle: str,
        qualification_handle: str
    ) -> None:
        self._log(
            logging.INFO,
            "CREDIT_DATA_SUBMITTED",
            account=account,
            first_submission=first_submission,
            score_handle=score_handle,
            qualification_handle=qualification_handle,
            message=f"Credit data accepted for {account}"
        )

    def threshold_updated(
        self,
        sender: str,
        handle: str,
        bootstrap: bool = False
    ) -> None:
        self._log(
            logging.INFO,
            "THRESHOLD_UPDATED",
            sender=sender,
            handle=handle,
            bootstrap=bootstrap,
            message=f"Threshold set by {sender}"
        )

    def threshold_update_denied(self, sender: str, owner: str) -> None:
        self._log(
            logging.WARNING,
            "THRESHOLD_UPDATE_DENIED",
            sender=sender,
            owner=owner,
            message=f"Threshold update denied for {sender}"
        )

    def protocol_mismatch(
        self,
        chain_id: int,
        expected_protocol_id: Optional[int],
        backend_protocol_id: Optional[int]
    ) -> None:
        self._log(
            logging.ERROR,
            "PROTOCOL_MISMATCH",
            chain_id=chain_id,
            expected_protocol_id=expected_protocol_id,
            backend_protocol_id=backend_protocol_id,
            message=f"Confidential protocol unsupported on chain {chain_id}"
        )

    def decryption_served(self, principal: str, handle: str) -> None:
        self._log(
            logging.INFO,
            "DECRYPTION_SERVED",
            principal=principal,
            handle=handle,
            message=f"Decryption served to {principal}"
        )

    def decryption_denied(self, principal: str, handle: str, reason: str) -> None:
        self._log(
            logging.WARNING,
            "DECRYPTION_DENIED",
            principal=principal,
            handle=handle,
            reason=reason,
            message=f"Decryption denied to {principal}: {reason}"
        )

    def request_auth_denied(self, address: str, endpoint: str, reason: str) -> None:
        """Log a request whose signature did not prove the claimed account."""
        self._log(
            logging.WARNING,
            "REQUEST_AUTH_DENIED",
            address=address,
            endpoint=endpoint,
            reason=reason,
            message=f"Request as {address} on {endpoint} refused: {reason}"
        )

    def rate_limit_exceeded(self, client_id: str, endpoint: str) -> None:
        self._log(
            logging.WARNING,
            "RATE_LIMIT_EXCEEDED",
            client_id=client_id,
            endpoint=endpoint,
            message=f"Rate limit exceeded for {client_id} on {endpoint}"
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
        json_format: Use JSON formatting
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


def set_transaction_id(transaction_id: Optional[str] = None) -> str:
    """
    Set the transaction ID for the current context.

    Returns:
        The transaction ID that was set
    """
    if transaction_id is None:
        transaction_id = str(uuid.uuid4())
    transaction_id_var.set(transaction_id)
    return transaction_id


def get_transaction_id() -> str:
    return transaction_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
