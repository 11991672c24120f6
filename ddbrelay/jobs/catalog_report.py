"""
Print a combined import report for one account.

Fetches items and spells with the credential from settings (COBALT_COOKIE)
and logs the per-source breakdown. Useful for checking what an account
actually owns without going through the browser plugin.
"""

import asyncio
import logging
import sys

import httpx

from ddbrelay.api.deps import build_services
from ddbrelay.config import Settings, settings
from ddbrelay.logging_config import configure_logging, register_secret
from ddbrelay.services.reports import format_report, generate_combined_report

logger = logging.getLogger(__name__)


async def run_catalog_report(config: Settings, client: httpx.AsyncClient | None = None) -> list[str]:
    """
    Fetch both catalogs and render the report.

    Args:
        config: Settings carrying the credential and timeouts
        client: Optional HTTP client; a private one is created otherwise

    Returns:
        The report lines

    Raises:
        CredentialInvalidError: If the credential is rejected
        UpstreamUnavailableError: If either catalog cannot be fetched
    """
    credential = config.cobalt_cookie
    register_secret(credential)

    if client is None:
        async with httpx.AsyncClient(
            timeout=config.request_timeout,
            follow_redirects=True,
        ) as own_client:
            return await run_catalog_report(config, own_client)

    relay = build_services(config, client)
    items, spells = await asyncio.gather(
        relay.item_fetcher.fetch_all_items(credential),
        relay.spell_fetcher.fetch_all_spells(credential),
    )

    lines = format_report(generate_combined_report(items, spells))
    for line in lines:
        logger.info("%s", line)
    return lines


def main() -> None:
    """CLI entry point."""
    configure_logging()

    if not settings.cobalt_cookie:
        logger.error("COBALT_COOKIE is not set; nothing to report on")
        sys.exit(1)

    try:
        asyncio.run(run_catalog_report(settings))
    except Exception as e:
        logger.error("Catalog report failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
