"""
Session credential validation endpoint.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ddbrelay.api.deps import RelayDep, enforce_rate_limit, require_credential

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"], dependencies=[Depends(enforce_rate_limit)])


class CredentialRequest(BaseModel):
    """Any request carrying a session credential."""

    model_config = ConfigDict(populate_by_name=True)

    cobalt_cookie: Any = Field(
        default=None,
        alias="cobaltCookie",
        description="D&D Beyond CobaltSession cookie value",
    )


class ValidateCookieResponse(BaseModel):
    valid: bool
    message: str | None = None
    token: str | None = None


@router.post(
    "/validate-cookie",
    response_model=ValidateCookieResponse,
    response_model_exclude_none=True,
    responses={401: {"model": ValidateCookieResponse}},
)
async def validate_cookie(request: CredentialRequest, relay: RelayDep) -> Any:
    """
    Check a session credential against the platform.

    Returns 401 with valid=false if the platform rejects it. Platform
    outages surface as 500/504 so they are not mistaken for a bad cookie.
    """
    credential = require_credential(request.cobalt_cookie)

    check = await relay.token_exchange.validate_credential(credential)
    if not check.valid:
        logger.info("[AUTH] Cookie validation failed: %s", check.message)
        return JSONResponse(
            status_code=401,
            content={"valid": False, "message": "Cookie is invalid or expired"},
        )

    return ValidateCookieResponse(valid=True, token=check.token)
