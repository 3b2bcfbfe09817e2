from abc import abstractmethod
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.cms.exceptions import AttemptNotFoundError
from shared.clients.cms.models.Addressing import AddressingScheme
from shared.clients.cms.models.Container import ContainerDescriptor
from shared.clients.cms.models.Entry import FileEntry, FolderEntry


class CMSClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "cms"
        """
        return "cms"

    @abstractmethod
    def get_page_extension(self) -> str:
        """
        Returns the file extension of page resources, including the dot. E.g. ".aspx"
        """
        pass

    @abstractmethod
    def get_container_type_tags(self) -> list[int]:
        """
        Returns the default allow-set of container type tags that hold pages.
        """
        pass

    def get_addressing_schemes(self) -> list[AddressingScheme]:
        """
        Returns the addressing schemes in the order they are tried.
        """
        return [AddressingScheme.PRIMARY, AddressingScheme.FALLBACK]

    def get_base_url(self) -> str:
        return self._get_base_url()

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_context_info(self) -> str:
        """
        Returns the endpoint path that hands out the write-authorization token.
        """
        pass

    @abstractmethod
    def _get_endpoint_containers(self, type_tags: list[int]) -> str:
        """
        Returns the endpoint path for listing containers whose type tag is in the allow-set.

        Args:
            type_tags (list[int]): The container type tags to include.
        """
        pass

    @abstractmethod
    def _get_endpoint_folder_files(self, folder_path: str) -> str:
        """
        Returns the endpoint path listing the files directly inside a folder.
        """
        pass

    @abstractmethod
    def _get_endpoint_folder_folders(self, folder_path: str) -> str:
        """
        Returns the endpoint path listing the subfolders directly inside a folder.
        """
        pass

    @abstractmethod
    def _get_endpoint_file(self, path: str, scheme: AddressingScheme) -> str:
        """
        Returns the address of a file under the given addressing scheme. All file
        operations below are suffixes of this address.

        Args:
            path (str): The canonical path of the file.
            scheme (AddressingScheme): The URL-construction convention to use.
        """
        pass

    @abstractmethod
    def _get_endpoint_probe(self, path: str, scheme: AddressingScheme) -> str:
        """
        Returns the endpoint path for a cheap metadata read of a file.
        """
        pass

    @abstractmethod
    def _get_endpoint_content_fields(self, path: str, scheme: AddressingScheme) -> str:
        """
        Returns the endpoint path for the partial update of a file's content fields.
        """
        pass

    @abstractmethod
    def _get_endpoint_publish(self, path: str, scheme: AddressingScheme, comment: str) -> str:
        """
        Returns the endpoint path for the publish action of a file.
        """
        pass

    @abstractmethod
    def _get_endpoint_read_content(self, path: str, scheme: AddressingScheme) -> str:
        """
        Returns the endpoint path that reads back the content field of a file.
        """
        pass

    @abstractmethod
    def _get_endpoint_items_by_title(self, container: ContainerDescriptor, title: str) -> str:
        """
        Returns the endpoint path querying a container's items by title field,
        most recently modified first, one result.
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self, query: str) -> str:
        """
        Returns the endpoint path of the full-text search with an explicit field projection.
        """
        pass

    ################ HEADERS / PAYLOADS ##################
    @abstractmethod
    def _get_merge_headers(self, token: str) -> dict:
        """
        Returns the headers of a partial-update write guarded by an unconditional match.
        """
        pass

    @abstractmethod
    def _get_action_headers(self, token: str) -> dict:
        """
        Returns the headers of a token-authorized action (e.g. publish).
        """
        pass

    @abstractmethod
    def _get_content_payload(self, content: str, layout_type: str) -> dict:
        """
        Returns the body of the content write: the content field and the layout marker, nothing else.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    ############# LISTING REQUESTS ##############
    async def do_fetch_containers(self, type_tags: list[int] | None = None) -> list[ContainerDescriptor]:
        """
        Lists the page containers whose type tag is in the allow-set, in server order.

        Args:
            type_tags (list[int] | None): The allow-set. Defaults to get_container_type_tags().

        Returns:
            list[ContainerDescriptor]: The containers as returned by the backend.

        Raises:
            TransportError: On any non-2xx status.
            ShapeError: If the response envelope is not recognized.
        """
        tags = list(type_tags) if type_tags else self.get_container_type_tags()
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_containers(tags), raise_on_error=True)
        containers = self._parse_endpoint_containers(resp.json())
        self.logging.info("[Containers] types %s → %d container(s) on %s", tags, len(containers), self._get_engine_name())
        return containers

    async def do_fetch_folder_files(self, folder_path: str) -> list[FileEntry]:
        """
        Lists the files directly inside a folder, in server order.

        Raises:
            AttemptNotFoundError: If the folder does not exist.
            TransportError: On any other non-2xx status.
            ShapeError: If the response envelope is not recognized.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_folder_files(folder_path))
        self.logging.debug("[Files] %s → %d", folder_path, resp.status_code)
        self.raise_for_status(resp)
        return self._parse_endpoint_files(resp.json())

    async def do_fetch_subfolders(self, folder_path: str) -> list[FolderEntry]:
        """
        Lists the subfolders directly inside a folder, in server order.

        Raises:
            AttemptNotFoundError: If the folder does not exist.
            TransportError: On any other non-2xx status.
            ShapeError: If the response envelope is not recognized.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_folder_folders(folder_path))
        self.logging.debug("[Folders] %s → %d", folder_path, resp.status_code)
        self.raise_for_status(resp)
        return self._parse_endpoint_folders(resp.json())

    async def do_fetch_items_by_title(self, container: ContainerDescriptor, title: str) -> list[FileEntry]:
        """
        Queries a container's items whose title field equals the given title, most recently modified first.

        Raises:
            AttemptNotFoundError: If the container no longer exists.
            TransportError: On any other non-2xx status.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_items_by_title(container, title))
        self.logging.info("[Title] '%s' in %s → %d", title, container.root_path, resp.status_code)
        self.raise_for_status(resp)
        return self._parse_endpoint_items(resp.json())

    async def do_search(self, query: str, preferred_host: str | None = None) -> str | None:
        """
        Runs a full-text search and extracts the first usable page path from the results.

        Args:
            query (str): The query text, e.g. "filename:Home.aspx" or a bare stem.
            preferred_host (str | None): Only accept absolute result URLs on this host. Off by default.

        Returns:
            str | None: The canonical path of the first usable hit, or None.

        Raises:
            TransportError: On any non-2xx status.
            ShapeError: If the search envelope is not recognized.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_search(query))
        self.logging.info("[Search] %s → %d", query, resp.status_code)
        self.raise_for_status(resp)
        return self._parse_endpoint_search(resp.json(), preferred_host=preferred_host)

    ############# FILE REQUESTS ##############
    async def do_probe(self, path: str) -> AddressingScheme | None:
        """
        Cheap existence check. Tries every addressing scheme in order.

        Returns:
            AddressingScheme | None: The first scheme that found the file, or None if all returned 404.

        Raises:
            TransportError: On any non-2xx status other than 404.
        """
        for scheme in self.get_addressing_schemes():
            resp = await self.do_request(method="GET", endpoint=self._get_endpoint_probe(path, scheme))
            self.logging.info("[Probe %s] %s → %d", scheme.value, path, resp.status_code)
            try:
                self.raise_for_status(resp)
                return scheme
            except AttemptNotFoundError:
                continue
        return None

    async def do_acquire_token(self) -> str:
        """
        Obtains a fresh write-authorization token. Never cached.

        Raises:
            TransportError: On any non-2xx status.
            AuthError: If the token field is absent from every recognized shape.
        """
        resp = await self.do_request(method="POST", endpoint=self._get_endpoint_context_info(), content=b"")
        self.logging.info("[Token] %d", resp.status_code)
        self.raise_for_status(resp)
        return self._parse_endpoint_context_info(resp.json())

    async def do_write_content(self, path: str, scheme: AddressingScheme, content: str, token: str, layout_type: str) -> None:
        """
        Replaces the content field of a file (partial update, unconditional match).

        Raises:
            AttemptNotFoundError: If the file is not found under this scheme.
            TransportError: On any other non-2xx status.
        """
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_content_fields(path, scheme),
            json=self._get_content_payload(content, layout_type),
            additional_headers=self._get_merge_headers(token),
        )
        self.logging.info("[Merge %s] %s → %d", scheme.value, path, resp.status_code)
        self.raise_for_status(resp)

    async def do_publish(self, path: str, scheme: AddressingScheme, token: str, comment: str) -> None:
        """
        Publishes a file.

        Raises:
            AttemptNotFoundError: If the file is not found under this scheme.
            TransportError: On any other non-2xx status.
        """
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_publish(path, scheme, comment),
            content=b"",
            additional_headers=self._get_action_headers(token),
        )
        self.logging.info("[Publish %s] %s → %d", scheme.value, path, resp.status_code)
        self.raise_for_status(resp)

    async def do_read_content(self, path: str, scheme: AddressingScheme) -> str | None:
        """
        Reads back the content field of a file.

        Raises:
            AttemptNotFoundError: If the file is not found under this scheme.
            TransportError: On any other non-2xx status.
            ShapeError: If the response is not a record.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_read_content(path, scheme))
        self.logging.info("[Verify %s] %s → %d", scheme.value, path, resp.status_code)
        self.raise_for_status(resp)
        return self._parse_endpoint_content(resp.json())

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def _parse_endpoint_containers(self, response: dict) -> list[ContainerDescriptor]:
        """
        Parses the container listing into descriptors with canonical root paths.

        Raises:
            ShapeError: If the envelope or a record is not recognized.
        """
        pass

    @abstractmethod
    def _parse_endpoint_files(self, response: dict) -> list[FileEntry]:
        """
        Parses a folder's file listing into entries with canonical paths.

        Raises:
            ShapeError: If the envelope or a record is not recognized.
        """
        pass

    @abstractmethod
    def _parse_endpoint_folders(self, response: dict) -> list[FolderEntry]:
        """
        Parses a folder's subfolder listing into entries with canonical paths.

        Raises:
            ShapeError: If the envelope or a record is not recognized.
        """
        pass

    @abstractmethod
    def _parse_endpoint_items(self, response: dict) -> list[FileEntry]:
        """
        Parses a container item query into file entries.

        Raises:
            ShapeError: If the envelope is not recognized.
        """
        pass

    @abstractmethod
    def _parse_endpoint_context_info(self, response: dict) -> str:
        """
        Extracts the write-authorization token.

        Raises:
            AuthError: If the token field is not found in any recognized shape.
        """
        pass

    @abstractmethod
    def _parse_endpoint_search(self, response: dict, preferred_host: str | None = None) -> str | None:
        """
        Extracts the canonical path of the first usable search hit.

        Raises:
            ShapeError: If the search envelope is not recognized.
        """
        pass

    @abstractmethod
    def _parse_endpoint_content(self, response: dict) -> str | None:
        """
        Extracts the content field from a read-back response.

        Raises:
            ShapeError: If the response is not a record.
        """
        pass

    ##########################################
    ################ HELPERS #################
    ##########################################

    def is_page(self, name: str) -> bool:
        """True if the leaf name carries the page extension (case-insensitive)."""
        return name.lower().endswith(self.get_page_extension().lower())
