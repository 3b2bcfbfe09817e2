"""Path canonicalization and page-name derivations.

Everything here is pure: no I/O, no logging, no configuration.
"""

import re
from urllib.parse import unquote, urlsplit

# page library segment that separates the site root from the page path
_LIBRARY_SEGMENT = re.compile(r"/(?:SitePages|Pages)/", re.IGNORECASE)
# ";" and any whitespace (tab, NBSP, newline) at the end of a segment
_TRAILING_JUNK = re.compile(r"[;\s]+$")


def normalize(raw: str | None) -> str:
    """Canonicalize a raw path string into a resource path.

    Percent-decodes, trims whitespace, strips trailing ";" and whitespace and
    collapses duplicate slashes. The result always starts with exactly one "/"
    and has no empty segments. Empty input yields "/".

    Args:
        raw (str | None): A user-supplied path, an API field or the path component of an absolute URL.

    Returns:
        str: The canonical path. normalize(normalize(x)) == normalize(x).
    """
    path = _decode(raw or "").strip()
    segments = [segment for segment in path.split("/") if segment]
    # a stripped tail may leave an empty segment, e.g. "/a;/ ;"
    while segments:
        tail = _TRAILING_JUNK.sub("", segments[-1])
        if tail:
            segments[-1] = tail
            break
        segments.pop()
    return "/" + "/".join(segments)


def _decode(value: str) -> str:
    """Percent-decode until stable so double-encoded input canonicalizes in one pass."""
    decoded = unquote(value)
    while decoded != value:
        value, decoded = decoded, unquote(decoded)
    return decoded


def leaf_name(path: str) -> str:
    """Return the last segment of a path ("" for the root)."""
    return normalize(path).rsplit("/", 1)[-1]


def stem_of(name: str, extension: str) -> str:
    """Strip a trailing extension (case-insensitive) from a leaf name."""
    if extension and name.lower().endswith(extension.lower()):
        return name[: -len(extension)]
    return name


def canonical_stem(stem: str) -> str:
    """Lowercase a stem and drop every non-alphanumeric character ("First-Test Page" -> "firsttestpage")."""
    return "".join(ch for ch in stem.lower() if ch.isalnum())


def odata_escape(value: str) -> str:
    """Escape a value for use inside a single-quoted OData string literal."""
    return (value or "").replace("'", "''")


def split_page_url(url: str) -> tuple[str, str]:
    """Split an absolute page URL into the site base address and the canonical page path.

    The site root is everything before the first page library segment
    ("/SitePages/" or "/Pages/", case-insensitive).

    Args:
        url (str): e.g. "https://tenant.sharepoint.com/sites/TeamX/SitePages/Home.aspx"

    Returns:
        tuple[str, str]: ("https://tenant.sharepoint.com/sites/TeamX", "/sites/TeamX/SitePages/Home.aspx")

    Raises:
        ValueError: If the URL is not absolute or contains no page library segment.
    """
    parts = urlsplit(url.strip())
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"'{url}' is not an absolute URL.")

    path = normalize(parts.path)
    match = _LIBRARY_SEGMENT.search(path + "/")
    if match is None:
        raise ValueError(f"URL '{url}' must contain /SitePages/ or /Pages/.")

    site_root = path[: match.start()]
    return f"{parts.scheme}://{parts.netloc}{site_root}", path


def is_absolute_url(value: str) -> bool:
    """True for http(s) URLs with a host."""
    parts = urlsplit(value.strip())
    return parts.scheme.lower() in ("http", "https") and bool(parts.netloc)
