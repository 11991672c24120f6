"""
Character service passthrough.

Relays an authenticated GET to the platform's character service. The
browser cannot call the platform directly because of origin restrictions.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from ddbrelay.api.credentials import CredentialRequest
from ddbrelay.api.deps import RelayDep, enforce_rate_limit, require_credential
from ddbrelay.config import CHARACTER_SERVICE_URL
from ddbrelay.services.upstream import get_json

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/character",
    tags=["character"],
    dependencies=[Depends(enforce_rate_limit)],
)


@router.post("/{endpoint:path}")
async def proxy_character(endpoint: str, request: CredentialRequest, relay: RelayDep) -> Any:
    """
    Proxy POST /api/character/{endpoint} to GET {character-service}/{endpoint}.

    The platform call carries the bearer token, never the raw credential.
    """
    credential = require_credential(request.cobalt_cookie)

    headers = await relay.token_exchange.auth_headers(credential)
    logger.info("[CHARACTER] Proxying /%s", endpoint)
    return await get_json(relay.client, f"{CHARACTER_SERVICE_URL}/{endpoint}", headers=headers)
