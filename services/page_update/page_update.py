"""One-shot page update runner.

Resolves PAGE_TARGET (page URL, server-relative path or page hint) and
writes the content of PAGE_CONTENT_FILE to it, publishing unless
PAGE_PUBLISH=false.

Usage:
    python -m services.page_update.page_update
"""

import asyncio
import sys
from pathlib import Path

from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.clients.cms.exceptions import ContentStoreError
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.update import PageRequest
from services.page_update.PipelineService import PipelineService


async def main() -> int:
    """Run a single resolve-then-update. Returns the process exit code."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    request = PageRequest(
        target=config.get_string_val("PAGE_TARGET"),
        content=Path(config.get_string_val("PAGE_CONTENT_FILE")).read_text(encoding="utf-8"),
        publish=config.get_bool_val("PAGE_PUBLISH", default=True),
    )

    cms_client = CMSClientManager(helper_config=config).get_client()
    try:
        # the client is required, there is nothing to do without it
        try:
            await cms_client.boot()
            await cms_client.do_healthcheck()
        except Exception as e:
            logger.error(f"Error booting CMS client {cms_client.get_engine_name()}: {e}. Aborting.")
            return 1

        pipeline = PipelineService(helper_config=config, cms_client=cms_client)
        try:
            outcome = await pipeline.run(request)
        except ContentStoreError as e:
            logger.error(f"Page update failed: {e}")
            return 1

        logger.info(
            "Done: %s (scheme: %s, published: %s, verified: %s)",
            outcome.resolved_path, outcome.addressing_scheme_used.value, outcome.published, outcome.verified,
            color="green",
        )
        return 0
    finally:
        await cms_client.close()

if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
