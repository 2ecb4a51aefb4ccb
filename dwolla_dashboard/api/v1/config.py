"""POST /api/config and GET /api/config/status - credential setup"""

import logging

from fastapi import APIRouter, Depends, Request

from dwolla_dashboard.api.dependencies import DashboardContext, get_context, get_request_id
from dwolla_dashboard.api.v1.schemas import ConfigRequest, ConfigResponse, ConfigStatusResponse
from dwolla_dashboard.domain.exceptions import DashboardError, ValidationError

router = APIRouter()


@router.post("/config", response_model=ConfigResponse)
async def configure(
    request_body: ConfigRequest,
    request: Request,
    context: DashboardContext = Depends(get_context),
):
    """
    Store Dwolla credentials in memory and verify them with a token grant.

    Reconfiguring drops every registry: cached customers, transfers and
    webhooks belong to the previous credential pair.
    """
    if not request_body.key or not request_body.secret:
        raise ValidationError("Both API key and secret are required")

    token_manager = context.token_manager
    token_manager.configure(request_body.key, request_body.secret)

    try:
        token = await token_manager.get_valid_token()
    except DashboardError:
        token_manager.clear()
        raise

    context.webhook_secret = request_body.webhook_secret or None
    context.reset_registries()

    logging.info("Dwolla credentials configured", extra={"request_id": get_request_id(request)})

    return ConfigResponse(
        success=True,
        message="Dwolla credentials configured successfully",
        token_expires_in=token.expires_in,
    )


@router.get("/config/status", response_model=ConfigStatusResponse)
def config_status(context: DashboardContext = Depends(get_context)):
    token_state = context.token_manager.status()
    return ConfigStatusResponse(
        is_configured=context.token_manager.is_configured,
        has_token=token_state["has_token"],
        token_status=token_state["token_status"],
        remaining_token_time=token_state["remaining_token_time"],
    )
