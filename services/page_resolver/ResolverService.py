"""Page resolution service.

Finds the exact path of a page from a loose hint (a bare name, a title-like
phrase or a leaf filename) by trying increasingly expensive strategies:

    1. exact leaf match in the root folder of every container
    2. fuzzy stem match in those same root listings
    3. breadth-first traversal of every container
    3b. title-field lookup (title-like hints only)
    4. full-text search

The first strategy that yields a candidate wins. Within a strategy the
server's listing order decides; nothing is re-sorted.
"""

from collections import deque

from shared.clients.cms.CMSClientInterface import CMSClientInterface
from shared.clients.cms.exceptions import AttemptNotFoundError, NotFoundError
from shared.clients.cms.models.Container import ContainerDescriptor
from shared.clients.cms.models.Entry import FileEntry
from shared.helper.HelperConfig import HelperConfig
from shared.helper.PathHelper import canonical_stem, stem_of
from shared.models.resolution import MatchCandidate, MatchKind, SearchHint

FORMS_FOLDER = "forms"  # system folder of every library, never holds pages


class ResolverService:
    """Resolves page hints to canonical paths against one CMS client."""

    def __init__(self, helper_config: HelperConfig, cms_client: CMSClientInterface) -> None:
        self.logging = helper_config.get_logger()
        self._cms_client = cms_client
        self._max_folders = int(helper_config.get_number_val("RESOLVER_MAX_FOLDERS", default=5000))
        self._preferred_host = helper_config.get_string_val("RESOLVER_PREFERRED_HOST", default="") or None
        self._title_lookup = helper_config.get_bool_val("RESOLVER_TITLE_LOOKUP", default=True)
        if self._max_folders < 1:
            raise ValueError("RESOLVER_MAX_FOLDERS must be at least 1.")

    ##########################################
    ################ RESOLVE #################
    ##########################################

    async def resolve(self, hint: str | SearchHint, containers: list[ContainerDescriptor] | None = None) -> str:
        """Resolve a hint to the canonical path of a page.

        Args:
            hint (str | SearchHint): The caller's page reference.
            containers (list[ContainerDescriptor] | None): The containers to search. Enumerated when omitted.

        Returns:
            str: The canonical path of the first match.

        Raises:
            ValueError: If the hint is blank.
            NotFoundError: If every strategy is exhausted.
        """
        candidate = await self.find_candidate(hint, containers)
        return candidate.path

    async def find_candidate(self, hint: str | SearchHint, containers: list[ContainerDescriptor] | None = None) -> MatchCandidate:
        """Like resolve(), but returns the winning candidate with its match kind."""
        if not isinstance(hint, SearchHint):
            hint = SearchHint.from_raw(hint, self._cms_client.get_page_extension())
        if containers is None:
            containers = await self._cms_client.do_fetch_containers()

        self.logging.info(
            "Resolving '%s' (%s) → leaf '%s' across %d container(s)",
            hint.raw, hint.kind.value, hint.leaf_name, len(containers),
        )

        # root listings are fetched once and shared by the first three passes
        root_listings: list[tuple[ContainerDescriptor, list[FileEntry]]] = []
        for container in containers:
            try:
                files = await self._cms_client.do_fetch_folder_files(container.root_path)
            except AttemptNotFoundError:
                self.logging.warning("Root folder of container '%s' not found. Skipping.", container.root_path)
                continue
            root_listings.append((container, files))

        for container, files in root_listings:
            candidate = self._match_exact(hint, files, container)
            if candidate:
                return self._found(candidate)

        for container, files in root_listings:
            candidate = self._match_fuzzy(hint, files, container)
            if candidate:
                return self._found(candidate)

        for container, files in root_listings:
            candidate = await self._traverse_container(hint, container, files)
            if candidate:
                return self._found(candidate)

        if self._title_lookup and not hint.is_file_like():
            for container, _ in root_listings:
                candidate = await self._lookup_title(hint, container)
                if candidate:
                    return self._found(candidate)

        candidate = await self._search(hint)
        if candidate:
            return self._found(candidate)

        self.logging.warning("No page found for '%s'.", hint.raw)
        raise NotFoundError(hint.raw)

    ##########################################
    ############### STRATEGIES ###############
    ##########################################

    def _match_exact(self, hint: SearchHint, files: list[FileEntry], container: ContainerDescriptor) -> MatchCandidate | None:
        target = hint.leaf_name.lower()
        for entry in files:
            if entry.name.lower() == target:
                return MatchCandidate(name=entry.name, path=entry.path, match_kind=MatchKind.EXACT, container=container.root_path)
        return None

    def _match_fuzzy(self, hint: SearchHint, files: list[FileEntry], container: ContainerDescriptor) -> MatchCandidate | None:
        """First page in listing order whose stem contains the hint's stem, its spaced variant or its canonical form."""
        extension = self._cms_client.get_page_extension()
        target_stem = hint.stem.lower()
        target_alt = hint.alt_stem.lower()
        for entry in files:
            if not self._cms_client.is_page(entry.name):
                continue
            stem = stem_of(entry.name, extension)
            lowered = stem.lower()
            if (target_stem and target_stem in lowered) or (target_alt and target_alt in lowered):
                return MatchCandidate(name=entry.name, path=entry.path, match_kind=MatchKind.CONTAINS_STEM, container=container.root_path)
            if hint.canonical_stem and hint.canonical_stem in canonical_stem(stem):
                return MatchCandidate(name=entry.name, path=entry.path, match_kind=MatchKind.CANONICAL_CONTAINS, container=container.root_path)
        return None

    def _match_listing(self, hint: SearchHint, files: list[FileEntry], container: ContainerDescriptor) -> MatchCandidate | None:
        return self._match_exact(hint, files, container) or self._match_fuzzy(hint, files, container)

    async def _traverse_container(self, hint: SearchHint, container: ContainerDescriptor, root_files: list[FileEntry]) -> MatchCandidate | None:
        """Breadth-first search below the container root.

        The root's own files were already matched by the first two passes, so
        only its subfolders are listed again. Every folder dequeued for the
        first time counts against the folder cap.
        """
        queue: deque[str] = deque([container.root_path])
        visited: set[str] = set()

        while queue:
            folder = queue.popleft()
            if folder in visited:
                continue
            if len(visited) >= self._max_folders:
                self.logging.warning(
                    "[BFS] Folder cap of %d reached in '%s' with %d folder(s) left unexplored.",
                    self._max_folders, container.root_path, len(queue) + 1,
                )
                return None
            visited.add(folder)

            try:
                if folder != container.root_path:
                    files = await self._cms_client.do_fetch_folder_files(folder)
                    candidate = self._match_listing(hint, files, container)
                    if candidate:
                        return candidate
                subfolders = await self._cms_client.do_fetch_subfolders(folder)
            except AttemptNotFoundError:
                self.logging.debug("[BFS] Folder '%s' vanished. Skipping.", folder)
                continue

            self.logging.debug("[BFS] %s: %d subfolder(s)", folder, len(subfolders))
            for subfolder in subfolders:
                if subfolder.name.lower() == FORMS_FOLDER:
                    continue
                if subfolder.path not in visited:
                    queue.append(subfolder.path)

        return None

    async def _lookup_title(self, hint: SearchHint, container: ContainerDescriptor) -> MatchCandidate | None:
        try:
            items = await self._cms_client.do_fetch_items_by_title(container, hint.raw)
        except AttemptNotFoundError:
            return None
        if not items:
            return None
        item = items[0]
        return MatchCandidate(name=item.name, path=item.path, match_kind=MatchKind.TITLE_FIELD, container=container.root_path)

    async def _search(self, hint: SearchHint) -> MatchCandidate | None:
        query = f"filename:{hint.leaf_name}" if hint.is_file_like() else hint.stem
        path = await self._cms_client.do_search(query, preferred_host=self._preferred_host)
        if not path:
            return None
        return MatchCandidate(name=path.rsplit("/", 1)[-1], path=path, match_kind=MatchKind.FULL_TEXT_HIT)

    ##########################################
    ################ HELPERS #################
    ##########################################

    def _found(self, candidate: MatchCandidate) -> MatchCandidate:
        self.logging.info("Resolved via %s: %s", candidate.match_kind.value, candidate.path, color="green")
        return candidate
