"""Structured JSON logging for the dashboard backend"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pythonjsonlogger.json import JsonFormatter


class CustomJsonFormatter(JsonFormatter):
    """JSON formatter with timestamp and service metadata"""

    def __init__(self, *args, service_name: str = "dwolla-dashboard", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_name = service_name

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = self.service_name


def setup_logging(level: str = "INFO", service_name: str = "dwolla-dashboard") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s",
        service_name=service_name,
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_token_refresh(expires_in: int) -> None:
    logging.info("Dwolla token obtained", extra={"step": "token_refresh", "expires_in": expires_in})


def log_customer_created(request_id: str, customer_id: str, status: str) -> None:
    logging.info(
        "Customer created",
        extra={
            "request_id": request_id,
            "step": "customer_created",
            "customer_id": customer_id,
            "customer_status": status,
        },
    )


def log_transfer_created(
    request_id: str,
    transfer_id: str,
    amount: str,
    currency: str,
    status: str,
    duration_ms: Optional[float] = None,
) -> None:
    """Log structured transfer outcome for later inspection"""
    logging.info(
        "Transfer created",
        extra={
            "request_id": request_id,
            "step": "transfer_created",
            "transfer_id": transfer_id,
            "amount": amount,
            "currency": currency,
            "transfer_status": status,
            "duration_ms": duration_ms,
        },
    )


def log_webhook(request_id: str, event_id: str, topic: Optional[str], applied: bool) -> None:
    logging.info(
        "Webhook received",
        extra={
            "request_id": request_id,
            "step": "webhook_received",
            "event_id": event_id,
            "topic": topic,
            "applied": applied,
        },
    )
