from shared.clients.cms.CMSClientInterface import CMSClientInterface
from shared.clients.cms.exceptions import AuthError, ShapeError
from shared.clients.cms.models.Addressing import AddressingScheme
from shared.clients.cms.models.Container import ContainerDescriptor
from shared.clients.cms.models.Entry import FileEntry, FolderEntry
from shared.clients.cms.sharepoint.models import (
    _ContentFieldsResponse,
    _ContextInfoResponse,
    _FileResponse,
    _FolderResponse,
    _ListItemResponse,
    _ListResponse,
    _SearchCellResponse,
    _VerboseContextInfoResponse,
)
from shared.helper.HelperConfig import HelperConfig
from shared.helper.PathHelper import leaf_name, normalize, odata_escape
from shared.helper.ResponseShapeHelper import extract_array, extract_nested_array, extract_record
from shared.models.config import EnvConfig
from pydantic import ValidationError
from urllib.parse import quote, urlsplit


class CMSClientSharePoint(CMSClientInterface):
    # absolute URL fields of a search row, tried in order after ServerRelativeUrl
    _SEARCH_URL_FIELDS = ["Path", "OriginalPath", "ServerRedirectedURL", "ParentLink"]
    _SEARCH_SELECT_PROPERTIES = "Title,Path,ServerRelativeUrl,OriginalPath,ServerRedirectedURL,ParentLink,SPWebUrl"

    def __init__(self, helper_config: HelperConfig, base_url: str | None = None):
        super().__init__(helper_config=helper_config)
        self._base_url = base_url or self.get_config_val("BASE_URL", default="", val_type="string")
        self._access_token = self.get_config_val("ACCESS_TOKEN", default="", val_type="string")
        self._cookies = self._parse_cookie_list(self.get_config_val("COOKIES", default=[], val_type="list"))
        self._library_templates = [int(tag) for tag in self.get_config_val("LIBRARY_TEMPLATES", default=["119", "850"], val_type="list")]
        if not self._base_url:
            raise ValueError(f"Missing required config '{self._get_config_key_name('BASE_URL')}' and no site base address was given.")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "SharePoint"

    def get_page_extension(self) -> str:
        return ".aspx"

    def get_container_type_tags(self) -> list[int]:
        return list(self._library_templates)

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=""),
            EnvConfig(env_key="ACCESS_TOKEN", val_type="string", default=""),
            EnvConfig(env_key="COOKIES", val_type="list", default=[]),
            EnvConfig(env_key="LIBRARY_TEMPLATES", val_type="list", default=["119", "850"]),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._access_token:
            return {"Authorization": f"Bearer {self._access_token}"}
        else:
            return {}

    def _get_session_cookies(self) -> dict[str, str]:
        return dict(self._cookies)

    def _get_default_headers(self) -> dict:
        return {"Accept": "application/json;odata=nometadata"}

    def _get_merge_headers(self, token: str) -> dict:
        return {
            "X-RequestDigest": token,
            "IF-MATCH": "*",
            "X-HTTP-Method": "MERGE",
        }

    def _get_action_headers(self, token: str) -> dict:
        return {"X-RequestDigest": token}

    def _get_content_payload(self, content: str, layout_type: str) -> dict:
        return {"CanvasContent1": content, "PageLayoutType": layout_type}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/_api/web?$select=Title,Url,ServerRelativeUrl"

    def _get_endpoint_context_info(self) -> str:
        return "/_api/contextinfo"

    def _get_endpoint_containers(self, type_tags: list[int]) -> str:
        type_filter = " or ".join(f"(BaseTemplate eq {tag})" for tag in type_tags)
        return (
            "/_api/web/lists"
            "?$select=Id,Title,BaseTemplate,RootFolder/ServerRelativeUrl"
            "&$expand=RootFolder"
            f"&$filter={type_filter}"
        )

    def _get_endpoint_folder(self, folder_path: str) -> str:
        return f"/_api/web/GetFolderByServerRelativePath(decodedurl='{self._encode_path(folder_path)}')"

    def _get_endpoint_folder_files(self, folder_path: str) -> str:
        return f"{self._get_endpoint_folder(folder_path)}/Files?$select=Name,ServerRelativeUrl,TimeLastModified&$top=1000"

    def _get_endpoint_folder_folders(self, folder_path: str) -> str:
        return f"{self._get_endpoint_folder(folder_path)}/Folders?$select=Name,ServerRelativeUrl&$top=500"

    def _get_endpoint_file(self, path: str, scheme: AddressingScheme) -> str:
        if scheme is AddressingScheme.PRIMARY:
            return f"/_api/web/GetFileByServerRelativePath(decodedurl='{self._encode_path(path)}')"
        return f"/_api/web/GetFileByServerRelativeUrl('{odata_escape(normalize(path))}')"

    def _get_endpoint_probe(self, path: str, scheme: AddressingScheme) -> str:
        return f"{self._get_endpoint_file(path, scheme)}?$select=UniqueId"

    def _get_endpoint_content_fields(self, path: str, scheme: AddressingScheme) -> str:
        return f"{self._get_endpoint_file(path, scheme)}/ListItemAllFields"

    def _get_endpoint_publish(self, path: str, scheme: AddressingScheme, comment: str) -> str:
        return f"{self._get_endpoint_file(path, scheme)}/Publish(StringParameter='{quote(odata_escape(comment), safe='')}')"

    def _get_endpoint_read_content(self, path: str, scheme: AddressingScheme) -> str:
        return f"{self._get_endpoint_file(path, scheme)}/ListItemAllFields?$select=CanvasContent1"

    def _get_endpoint_items_by_title(self, container: ContainerDescriptor, title: str) -> str:
        return (
            f"/_api/web/lists(guid'{container.id}')/items"
            "?$select=Id,FileLeafRef,FileRef,Title,Modified"
            f"&$filter=Title eq '{quote(odata_escape(title), safe='')}'"
            "&$orderby=Modified desc"
            "&$top=1"
        )

    def _get_endpoint_search(self, query: str) -> str:
        return (
            "/_api/search/query"
            f"?querytext='{quote(odata_escape(query), safe=':')}'"
            "&rowlimit=20"
            "&trimduplicates=false"
            f"&selectproperties='{self._SEARCH_SELECT_PROPERTIES}'"
        )

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    ############### LIST RESPONSES ###############
    def _parse_endpoint_containers(self, response: dict) -> list[ContainerDescriptor]:
        containers = []
        for item in extract_array(response, "lists"):
            record = self._validate(_ListResponse, item, "lists")
            containers.append(ContainerDescriptor(
                engine=self._get_engine_name(),
                id=record.Id,
                display_name=record.Title,
                type_tag=record.BaseTemplate,
                root_path=normalize(record.RootFolder.ServerRelativeUrl),
            ))
        return containers

    def _parse_endpoint_files(self, response: dict) -> list[FileEntry]:
        files = []
        for item in extract_array(response, "files"):
            record = self._validate(_FileResponse, item, "files")
            files.append(FileEntry(name=record.Name, path=normalize(record.ServerRelativeUrl), modified=record.TimeLastModified))
        return files

    def _parse_endpoint_folders(self, response: dict) -> list[FolderEntry]:
        folders = []
        for item in extract_array(response, "folders"):
            record = self._validate(_FolderResponse, item, "folders")
            # some folder records carry no path, those cannot be descended into
            if not record.ServerRelativeUrl:
                continue
            folders.append(FolderEntry(name=record.Name, path=normalize(record.ServerRelativeUrl)))
        return folders

    def _parse_endpoint_items(self, response: dict) -> list[FileEntry]:
        items = []
        for item in extract_array(response, "items"):
            record = self._validate(_ListItemResponse, item, "items")
            if not record.FileRef:
                continue
            path = normalize(record.FileRef)
            items.append(FileEntry(name=record.FileLeafRef or leaf_name(path), path=path, modified=record.Modified))
        return items

    ############### RECORD RESPONSES ###############
    def _parse_endpoint_context_info(self, response: dict) -> str:
        # modern: {"FormDigestValue": ...}
        try:
            return _ContextInfoResponse.model_validate(response).FormDigestValue
        except ValidationError:
            pass
        # verbose: {"d": {"GetContextWebInformation": {"FormDigestValue": ...}}}
        try:
            record = extract_record(response, "contextinfo")
            return _VerboseContextInfoResponse.model_validate(record).GetContextWebInformation.FormDigestValue
        except (ShapeError, ValidationError):
            raise AuthError("Write-authorization token (FormDigestValue) missing from context info response.")

    def _parse_endpoint_content(self, response: dict) -> str | None:
        record = extract_record(response, "verify")
        return self._validate(_ContentFieldsResponse, record, "verify").CanvasContent1

    ############### SEARCH RESPONSES ###############
    def _parse_endpoint_search(self, response: dict, preferred_host: str | None = None) -> str | None:
        for row in self._extract_search_rows(response):
            if "Cells" not in row:
                continue
            cells = {}
            for cell in extract_nested_array(row["Cells"], "search-cells"):
                parsed = self._validate(_SearchCellResponse, cell, "search-cells")
                cells[parsed.Key.lower()] = parsed.Value or ""
            path = self._pick_search_path(cells, preferred_host)
            if path:
                return path
        return None

    def _extract_search_rows(self, response: dict) -> list[dict]:
        root = response
        # verbose wraps the query result as {"d": {"query": {...}}}
        if isinstance(root, dict) and "PrimaryQueryResult" not in root:
            verbose = root.get("d")
            if isinstance(verbose, dict) and isinstance(verbose.get("query"), dict):
                root = verbose["query"]
        try:
            rows = root["PrimaryQueryResult"]["RelevantResults"]["Table"]["Rows"]
        except (KeyError, TypeError):
            raise ShapeError("search", detail="Expected PrimaryQueryResult.RelevantResults.Table.Rows.")
        return extract_nested_array(rows, "search-rows")

    def _pick_search_path(self, cells: dict[str, str], preferred_host: str | None) -> str | None:
        relative = cells.get("serverrelativeurl", "").strip()
        if relative and self.is_page(relative):
            return normalize(relative)

        for field in self._SEARCH_URL_FIELDS:
            path = self._page_path_from_url(cells.get(field.lower(), ""), preferred_host)
            if path:
                return path
        return None

    def _page_path_from_url(self, value: str, preferred_host: str | None) -> str | None:
        parts = urlsplit(value.strip())
        if not parts.scheme or not parts.hostname:
            return None
        if preferred_host and parts.hostname.lower() != preferred_host.lower():
            return None
        if not self.is_page(parts.path):
            return None
        return normalize(parts.path)

    ##########################################
    ################ HELPERS #################
    ##########################################

    def _encode_path(self, path: str) -> str:
        # the decodedurl parameter is an OData string literal carrying a percent-encoded path
        return quote(odata_escape(normalize(path)), safe="")

    def _validate(self, model, item: dict, context: str):
        try:
            return model.model_validate(item)
        except ValidationError as e:
            raise ShapeError(context, detail=str(e).splitlines()[0])

    def _parse_cookie_list(self, raw_cookies: list[str]) -> dict[str, str]:
        cookies = {}
        for raw in raw_cookies:
            name, sep, value = raw.partition("=")
            if not sep or not name.strip():
                raise ValueError(f"Invalid cookie '{raw}' in {self._get_config_key_name('COOKIES')}, expected 'name=value'.")
            cookies[name.strip()] = value.strip()
        return cookies
