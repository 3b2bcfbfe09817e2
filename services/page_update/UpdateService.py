"""Conditional page update.

Writes a content document to a page in one transaction:

    pre-probe → token → write (primary, then fallback on 404) → publish → verify

Only a 404 for a single attempt is handled (by switching the addressing
scheme or re-resolving the path); every other error fails the transaction and
propagates unchanged. Partial progress is never rolled back.
"""

import json

from shared.clients.cms.CMSClientInterface import CMSClientInterface
from shared.clients.cms.exceptions import (
    AttemptNotFoundError,
    NotFoundError,
    TargetNotFoundError,
    VerificationError,
    WriteTargetMissingError,
)
from shared.clients.cms.models.Addressing import AddressingScheme
from shared.helper.HelperConfig import HelperConfig
from shared.helper.PathHelper import leaf_name, normalize
from shared.models.update import UpdateOutcome, UpdateState
from services.page_resolver.ResolverService import ResolverService


def _same_document(stored: str | None, written: str) -> bool:
    """True if the stored field holds the written document.

    The server may re-serialize the canvas JSON on save, so JSON documents are
    compared by value and anything else with whitespace runs collapsed.
    """
    if stored is None:
        return False
    if stored == written:
        return True
    try:
        return json.loads(stored) == json.loads(written)
    except ValueError:
        return " ".join(stored.split()) == " ".join(written.split())


class _UpdateTransaction:
    """State of one update call. Never shared between calls."""

    def __init__(self, path: str, logging) -> None:
        self.path = path
        self.state = UpdateState.IDLE
        self.scheme: AddressingScheme | None = None
        self._logging = logging

    def transition(self, state: UpdateState) -> None:
        self._logging.debug("[Update] %s: %s → %s", self.path, self.state.value, state.value)
        self.state = state


class UpdateService:
    """Applies content updates through one CMS client."""

    def __init__(
        self,
        helper_config: HelperConfig,
        cms_client: CMSClientInterface,
        resolver: ResolverService | None = None,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._cms_client = cms_client
        self._resolver = resolver
        self._pre_probe = helper_config.get_bool_val("UPDATE_PRE_PROBE", default=True)
        self._auto_correct = helper_config.get_bool_val("UPDATE_AUTO_CORRECT", default=True)
        self._verify = helper_config.get_bool_val("UPDATE_VERIFY", default=True)
        self._layout_type = helper_config.get_string_val("UPDATE_LAYOUT_TYPE", default="Article")
        self._publish_comment = helper_config.get_string_val("UPDATE_PUBLISH_COMMENT", default="Programmatic update")

    ##########################################
    ################ UPDATE ##################
    ##########################################

    async def update(self, path: str, content: str, publish: bool = True) -> UpdateOutcome:
        """Replace the content of a page and optionally publish it.

        Args:
            path (str): The page path. Normalized before use.
            content (str): The content document, written verbatim.
            publish (bool): Publish the page after the write.

        Returns:
            UpdateOutcome: The path actually written, the addressing scheme that worked and the final state.

        Raises:
            TargetNotFoundError: If the pre-probe misses and the path cannot be corrected.
            WriteTargetMissingError: If every addressing scheme returned 404 for the write or the publish.
            AuthError: If no write-authorization token could be obtained.
            VerificationError: If the written content cannot be read back.
            TransportError: On any other non-2xx status.
        """
        tx = _UpdateTransaction(normalize(path), self.logging)
        try:
            if self._pre_probe:
                tx.path = await self._ensure_target(tx.path)

            token = await self._cms_client.do_acquire_token()
            tx.transition(UpdateState.TOKEN_ACQUIRED)

            await self._write(tx, content, token)
            tx.transition(UpdateState.WRITTEN)

            if publish:
                await self._publish(tx, token)
                tx.transition(UpdateState.PUBLISHED)

            verified = None
            if self._verify:
                await self._verify_content(tx, content)
                verified = True
                tx.transition(UpdateState.VERIFIED)
        except Exception as e:
            failed_in = tx.state
            tx.transition(UpdateState.FAILED)
            self.logging.error("Update of '%s' failed in state %s: %s", tx.path, failed_in.value, e)
            raise

        self.logging.info("Updated '%s' via %s scheme (published: %s)", tx.path, tx.scheme.value, publish, color="green")
        return UpdateOutcome(
            resolved_path=tx.path,
            addressing_scheme_used=tx.scheme,
            published=publish,
            verified=verified,
            state=tx.state,
        )

    ##########################################
    ################# STEPS ##################
    ##########################################

    async def _ensure_target(self, path: str) -> str:
        """Return a path that exists, re-resolving the leaf name when the given one is stale."""
        if await self._cms_client.do_probe(path):
            return path

        if not (self._auto_correct and self._resolver):
            raise TargetNotFoundError(path)

        self.logging.warning("[Probe] '%s' not found, re-resolving '%s'", path, leaf_name(path), color="yellow")
        try:
            corrected = await self._resolver.resolve(leaf_name(path))
        except (NotFoundError, ValueError) as e:
            raise TargetNotFoundError(path) from e
        self.logging.info("[Probe] corrected '%s' → '%s'", path, corrected)
        return corrected

    async def _write(self, tx: _UpdateTransaction, content: str, token: str) -> None:
        for scheme in self._cms_client.get_addressing_schemes():
            tx.transition(UpdateState.PRIMARY_ATTEMPTED if scheme is AddressingScheme.PRIMARY else UpdateState.FALLBACK_ATTEMPTED)
            try:
                await self._cms_client.do_write_content(tx.path, scheme, content, token, self._layout_type)
            except AttemptNotFoundError:
                continue
            tx.scheme = scheme
            return
        raise WriteTargetMissingError(tx.path, stage="write")

    async def _publish(self, tx: _UpdateTransaction, token: str) -> None:
        # the scheme that accepted the write goes first
        for scheme in (tx.scheme, tx.scheme.other()):
            try:
                await self._cms_client.do_publish(tx.path, scheme, token, self._publish_comment)
            except AttemptNotFoundError:
                continue
            return
        raise WriteTargetMissingError(tx.path, stage="publish")

    async def _verify_content(self, tx: _UpdateTransaction, content: str) -> None:
        try:
            stored = await self._cms_client.do_read_content(tx.path, tx.scheme)
        except AttemptNotFoundError as e:
            raise VerificationError(tx.path) from e
        if not _same_document(stored, content):
            raise VerificationError(tx.path)
