"""Resolve-then-update pipeline shared by the runner and the HTTP surface."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from shared.clients.cms.CMSClientInterface import CMSClientInterface
from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.helper.PathHelper import is_absolute_url, normalize, split_page_url
from shared.models.update import PageRequest, UpdateOutcome
from services.page_resolver.ResolverService import ResolverService
from services.page_update.UpdateService import UpdateService


class PipelineService:
    """Classifies a page target, resolves it when needed and runs the update.

    A target is one of
      - an absolute page URL: the site base address is taken from the URL,
      - a server-relative path starting with "/": used as-is,
      - anything else: a hint handed to the resolver.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        cms_client: CMSClientInterface,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._cms_client = cms_client
        self._transport = transport

    async def resolve(self, hint: str, site_base_address: str | None = None) -> str:
        """Resolve a hint on the given site (the configured one when omitted)."""
        async with self._client_for(site_base_address) as client:
            return await ResolverService(self._helper_config, client).resolve(hint)

    async def run(self, request: PageRequest) -> UpdateOutcome:
        """Resolve the request's target if needed and write its content.

        Raises:
            ValueError: If the target is blank or an unusable URL.
            NotFoundError: If a hint cannot be resolved.
            ContentStoreError: Any error of the update transaction.
        """
        site_base, path, hint = self._classify_target(request.target, request.site_base_address)
        async with self._client_for(site_base) as client:
            resolver = ResolverService(self._helper_config, client)
            if path is None:
                path = await resolver.resolve(hint)
            updater = UpdateService(self._helper_config, client, resolver=resolver)
            return await updater.update(path, request.content, publish=request.publish)

    ##########################################
    ################ HELPERS #################
    ##########################################

    def _classify_target(self, target: str, site_base_address: str | None) -> tuple[str | None, str | None, str | None]:
        """Return (site base, path, hint). Exactly one of path and hint is set."""
        target = (target or "").strip()
        if not target:
            raise ValueError("Page target must not be empty.")
        if is_absolute_url(target):
            site_base, path = split_page_url(target)
            self.logging.info("Target is a page URL on %s: %s", site_base, path)
            return site_base, path, None
        if target.startswith("/"):
            return site_base_address, normalize(target), None
        return site_base_address, None, target

    @asynccontextmanager
    async def _client_for(self, site_base_address: str | None) -> AsyncIterator[CMSClientInterface]:
        """Yield the configured client, or a short-lived one bound to another site."""
        if not site_base_address or site_base_address.rstrip("/").lower() == self._cms_client.get_base_url().rstrip("/").lower():
            yield self._cms_client
            return

        client = CMSClientManager(helper_config=self._helper_config, base_url=site_base_address.rstrip("/")).get_client()
        await client.boot(transport=self._transport)
        try:
            yield client
        finally:
            await client.close()
