"""Structured JSON logging for checkout observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from bdn_checkout.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_checkout_outcome(
    session_id: str,
    flow: str,
    outcome: str,
    amount: str,
    duration_ms: float,
    transaction_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    """Log structured settlement outcome for analysis"""
    logging.info(
        "Checkout settled" if outcome == "success" else "Checkout failed",
        extra={
            "session_id": session_id,
            "flow": flow,
            "step": "settlement_complete",
            "outcome": outcome,
            "amount": amount,
            "transaction_id": transaction_id,
            "reason": reason,
            "duration_ms": duration_ms,
        },
    )
