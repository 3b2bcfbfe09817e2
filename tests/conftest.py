"""Shared fixtures: an in-memory SharePoint site served through httpx.MockTransport."""

import logging
import re
from contextlib import asynccontextmanager
from urllib.parse import unquote

import httpx
import pytest

from shared.clients.cms.CMSClientManager import CMSClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger

BASE_URL = "https://contoso.sharepoint.com/sites/X"
DIGEST = "0x1234,19 Oct 2026 10:00:00 -0000"

_FOLDER_LISTING = re.compile(r"GetFolderByServerRelativePath\(decodedurl='(.*?)'\)/(Files|Folders)")

_ENV_KEYS = [
    "CMS_SHAREPOINT_COOKIES",
    "CMS_SHAREPOINT_LIBRARY_TEMPLATES",
    "CMS_TIMEOUT",
    "RESOLVER_MAX_FOLDERS",
    "RESOLVER_PREFERRED_HOST",
    "RESOLVER_TITLE_LOOKUP",
    "UPDATE_PRE_PROBE",
    "UPDATE_AUTO_CORRECT",
    "UPDATE_VERIFY",
    "UPDATE_LAYOUT_TYPE",
    "UPDATE_PUBLISH_COMMENT",
]


class FakeSite:
    """A SharePoint site with libraries, a folder tree and scripted file endpoints.

    Folder listings, list enumeration, the context info token, title queries and
    search are served from in-memory state. File endpoints answer 404 unless a
    response is registered with on(). Every request is recorded.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self.lists: list[dict] = []
        self.tree: dict[str, dict[str, list]] = {}
        self.titles: dict[str, list[dict]] = {}
        self.search_rows: list[dict] = []
        self.requests: list[httpx.Request] = []
        self._routes: list[tuple[str, tuple[str, ...], int, dict | None]] = []

    ############### SETUP ###############
    def add_library(self, list_id: str, root: str, template: int = 119, title: str | None = None) -> None:
        self.lists.append({
            "Id": list_id,
            "Title": title or root.rsplit("/", 1)[-1],
            "BaseTemplate": template,
            "RootFolder": {"ServerRelativeUrl": root},
        })
        self.tree.setdefault(root, {"files": [], "folders": []})

    def add_folder(self, path: str, files: list[str] = (), folders: list[str] = ()) -> None:
        """Register a folder. Subfolders are names below path, or absolute paths to list a foreign folder."""
        entry = self.tree.setdefault(path, {"files": [], "folders": []})
        entry["files"] = list(files)
        entry["folders"] = [sub if sub.startswith("/") else f"{path}/{sub}" for sub in folders]
        for sub in entry["folders"]:
            self.tree.setdefault(sub, {"files": [], "folders": []})

    def on(self, method: str, *markers: str, status: int = 200, json: dict | None = None) -> None:
        """Answer requests whose decoded URL contains every marker. Earlier registrations win."""
        self._routes.append((method, markers, status, json))

    ############### INSPECTION ###############
    def urls(self, method: str | None = None) -> list[str]:
        return [unquote(str(r.url)) for r in self.requests if method is None or r.method == method]

    def matching(self, method: str, *markers: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and all(m in unquote(str(r.url)) for m in markers)]

    def listed(self, kind: str) -> list[str]:
        """Folder paths whose "Files" or "Folders" were listed, in request order."""
        paths = []
        for url in self.urls("GET"):
            match = _FOLDER_LISTING.search(url)
            if match and match.group(2) == kind:
                paths.append(match.group(1))
        return paths

    ############### TRANSPORT ###############
    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = unquote(str(request.url))

        for method, markers, status, body in self._routes:
            if request.method == method and all(marker in url for marker in markers):
                return httpx.Response(status, json=body) if body is not None else httpx.Response(status)

        if request.url.path.endswith("/_api/web"):
            return httpx.Response(200, json={"Title": "Site X", "Url": BASE_URL, "ServerRelativeUrl": "/sites/X"})
        if request.url.path.endswith("/_api/contextinfo"):
            return httpx.Response(200, json={"FormDigestValue": DIGEST})
        if "/_api/web/lists?" in url:
            return httpx.Response(200, json=self._envelope(self.lists))
        if "/items?" in url:
            list_id = re.search(r"lists\(guid'(.*?)'\)", url).group(1)
            return httpx.Response(200, json=self._envelope(self.titles.get(list_id, [])))
        if "/_api/search/query" in url:
            return httpx.Response(200, json={"PrimaryQueryResult": {"RelevantResults": {"Table": {"Rows": self.search_rows}}}})

        match = _FOLDER_LISTING.search(url)
        if match:
            folder, kind = match.group(1), match.group(2)
            if folder not in self.tree:
                return httpx.Response(404, json={"error": {"message": "File Not Found."}})
            if kind == "Files":
                records = [
                    {"Name": name, "ServerRelativeUrl": f"{folder}/{name}", "TimeLastModified": "2026-05-01T10:00:00Z"}
                    for name in self.tree[folder]["files"]
                ]
            else:
                records = [{"Name": sub.rsplit("/", 1)[-1], "ServerRelativeUrl": sub} for sub in self.tree[folder]["folders"]]
            return httpx.Response(200, json=self._envelope(records))

        return httpx.Response(404, json={"error": {"message": "File Not Found."}})

    def _envelope(self, records: list[dict]) -> dict:
        return {"d": {"results": records}} if self.verbose else {"value": records}


@pytest.fixture
def cms_env(monkeypatch, tmp_path):
    monkeypatch.setenv("CMS_ENGINE", "sharepoint")
    monkeypatch.setenv("CMS_SHAREPOINT_BASE_URL", BASE_URL)
    monkeypatch.setenv("CMS_SHAREPOINT_ACCESS_TOKEN", "test-token")
    monkeypatch.setenv("ROOT_DIR", str(tmp_path))
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config(cms_env) -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("tests")))


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def open_client(helper_config, site):
    """Factory for a booted SharePoint client bound to the fake site."""

    @asynccontextmanager
    async def _open():
        client = CMSClientManager(helper_config=helper_config).get_client()
        await client.boot(transport=httpx.MockTransport(site.handler))
        try:
            yield client
        finally:
            await client.close()

    return _open


@pytest.fixture
def digest() -> str:
    return DIGEST
