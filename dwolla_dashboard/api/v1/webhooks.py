"""Webhook endpoints - inbound Dwolla events and the event log"""

import json
import logging

from fastapi import APIRouter, Depends, Request

from dwolla_dashboard.api.dependencies import DashboardContext, get_context, get_request_id, get_webhook_store
from dwolla_dashboard.api.v1.schemas import ClearResponse, WebhookAck, WebhookListResponse, WebhookSchema
from dwolla_dashboard.domain.webhooks import SIGNATURE_HEADER, apply_webhook_event, build_webhook_record, verify_signature
from dwolla_dashboard.infrastructure.observability.logging import log_webhook
from dwolla_dashboard.infrastructure.observability.metrics import webhook_event_counter
from dwolla_dashboard.infrastructure.registry.stores import WebhookStore

router = APIRouter()


@router.post("/webhooks", response_model=WebhookAck)
async def receive_webhook(request: Request, context: DashboardContext = Depends(get_context)):
    """
    Acknowledge a Dwolla event.

    Always answers 200: Dwolla redelivers anything else, so processing
    failures are logged and dropped after acknowledging receipt. With a
    webhook secret configured, events failing signature verification are
    acknowledged but ignored.
    """
    request_id = get_request_id(request)

    try:
        raw_body = await request.body()

        secret = context.webhook_secret
        if secret and not verify_signature(secret, raw_body, request.headers.get(SIGNATURE_HEADER)):
            webhook_event_counter.labels(outcome="rejected").inc()
            logging.warning("Webhook signature mismatch, event ignored", extra={"request_id": request_id})
            return WebhookAck()

        event = json.loads(raw_body) if raw_body else {}
        if not isinstance(event, dict):
            raise ValueError("Webhook body is not a JSON object")

        record = build_webhook_record(event)
        context.webhooks.add(record)
        applied = apply_webhook_event(record, context.customers, context.transfers)

        webhook_event_counter.labels(outcome="stored").inc()
        log_webhook(request_id, record.id, record.topic, applied)

    except Exception:
        webhook_event_counter.labels(outcome="failed").inc()
        logging.exception("Failed to process webhook", extra={"request_id": request_id})

    return WebhookAck()


@router.get("/webhooks", response_model=WebhookListResponse)
def list_webhooks(webhooks: WebhookStore = Depends(get_webhook_store)):
    """Received events, newest first"""
    return WebhookListResponse(webhooks=[WebhookSchema.from_record(w) for w in webhooks.all()])


@router.delete("/webhooks", response_model=ClearResponse)
def clear_webhooks(webhooks: WebhookStore = Depends(get_webhook_store)):
    webhooks.clear()
    return ClearResponse(success=True, message="Webhooks cleared")
