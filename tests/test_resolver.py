import asyncio
from collections import Counter

import pytest

from services.page_resolver.ResolverService import ResolverService
from shared.clients.cms.exceptions import NotFoundError
from shared.models.resolution import HintKind, MatchKind, SearchHint


def run_resolver(helper_config, open_client, hint):
    async def scenario():
        async with open_client() as client:
            return await ResolverService(helper_config, client).find_candidate(hint)

    return asyncio.run(scenario())


def test_hint_classification():
    title = SearchHint.from_raw("  First Test Page ", ".aspx")
    assert title.kind is HintKind.TITLE
    assert title.leaf_name == "First-Test-Page.aspx"
    assert title.stem == "First-Test-Page"
    assert title.alt_stem == "First Test Page"
    assert title.canonical_stem == "firsttestpage"

    leaf = SearchHint.from_raw("/sites/X/SitePages/Home.ASPX", ".aspx")
    assert leaf.is_file_like()
    assert leaf.leaf_name == "Home.ASPX"
    assert leaf.stem == "Home"

    with pytest.raises(ValueError):
        SearchHint.from_raw("   ", ".aspx")


def test_exact_match_beats_earlier_fuzzy_match(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.add_folder("/sites/X/SitePages", files=["Quarterly-Report-Draft.aspx", "Quarterly-Report.aspx"])

    candidate = run_resolver(helper_config, open_client, "Quarterly-Report.aspx")

    assert candidate.path == "/sites/X/SitePages/Quarterly-Report.aspx"
    assert candidate.match_kind is MatchKind.EXACT


def test_exact_match_in_later_container_beats_fuzzy_in_earlier_one(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.add_library("b", "/sites/X/Pages", template=850)
    site.add_folder("/sites/X/SitePages", files=["Launch-Plan-Old.aspx"])
    site.add_folder("/sites/X/Pages", files=["launch-plan.aspx"])

    candidate = run_resolver(helper_config, open_client, "Launch-Plan")

    assert candidate.path == "/sites/X/Pages/launch-plan.aspx"
    assert candidate.match_kind is MatchKind.EXACT


def test_canonical_stem_match(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.add_folder("/sites/X/SitePages", files=["Logo.png", "Team_News_2026.aspx"])

    candidate = run_resolver(helper_config, open_client, "Team News 2026")

    assert candidate.path == "/sites/X/SitePages/Team_News_2026.aspx"
    assert candidate.match_kind is MatchKind.CANONICAL_CONTAINS


def test_fuzzy_match_ignores_non_page_files(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.add_folder("/sites/X/SitePages", files=["Roadmap.png", "Roadmap-2026.aspx"])

    candidate = run_resolver(helper_config, open_client, "Roadmap")

    assert candidate.path == "/sites/X/SitePages/Roadmap-2026.aspx"
    assert candidate.match_kind is MatchKind.CONTAINS_STEM


def test_title_hint_across_two_containers(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.add_library("b", "/sites/X/Pages", template=850)
    site.add_folder("/sites/X/SitePages", files=["Home.aspx", "Welcome.aspx"])
    site.add_folder("/sites/X/Pages", files=["Other.aspx", "First-Test-Page-1.aspx"])

    candidate = run_resolver(helper_config, open_client, "First-Test-Page")

    assert candidate.path == "/sites/X/Pages/First-Test-Page-1.aspx"
    assert candidate.match_kind is MatchKind.CONTAINS_STEM
    # root listings are fetched once and no traversal happens
    assert site.listed("Files") == ["/sites/X/SitePages", "/sites/X/Pages"]
    assert site.listed("Folders") == []


def test_traversal_skips_forms_and_never_revisits(helper_config, open_client, site):
    root = "/sites/X/SitePages"
    site.add_library("a", root)
    site.add_folder(root, files=["Home.aspx"], folders=["Forms", "Archive", "Archive2"])
    site.add_folder(f"{root}/Forms", files=["Launch-Plan.aspx"])
    site.add_folder(f"{root}/Archive", folders=["Deep"])
    site.add_folder(f"{root}/Archive2", folders=[f"{root}/Archive"])
    site.add_folder(f"{root}/Archive/Deep", files=["Launch-Plan.aspx"])

    candidate = run_resolver(helper_config, open_client, "Launch-Plan")

    assert candidate.path == f"{root}/Archive/Deep/Launch-Plan.aspx"
    assert candidate.match_kind is MatchKind.EXACT
    listed = site.listed("Files") + site.listed("Folders")
    assert not any(path.endswith("/Forms") for path in listed)
    assert site.listed("Folders") == [root, f"{root}/Archive", f"{root}/Archive2"]


def test_traversal_of_cyclic_tree_visits_each_folder_once(helper_config, open_client, site):
    root = "/sites/X/SitePages"
    site.add_library("a", root)
    site.add_folder(root, folders=["A", "B"])
    site.add_folder(f"{root}/A", folders=[f"{root}/B", root])
    site.add_folder(f"{root}/B", folders=[f"{root}/A", "C"])
    site.add_folder(f"{root}/B/C", folders=[f"{root}/A"])

    with pytest.raises(NotFoundError):
        run_resolver(helper_config, open_client, "Missing-Page")

    counts = Counter(site.listed("Folders"))
    assert set(counts) == {root, f"{root}/A", f"{root}/B", f"{root}/B/C"}
    assert max(counts.values()) == 1


def test_traversal_stops_at_folder_cap(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("RESOLVER_MAX_FOLDERS", "3")
    root = "/sites/X/SitePages"
    site.add_library("a", root)
    site.add_folder(root, folders=["L1"])
    site.add_folder(f"{root}/L1", folders=["L2"])
    site.add_folder(f"{root}/L1/L2", folders=["L3"])
    site.add_folder(f"{root}/L1/L2/L3", files=["Buried.aspx"])

    with pytest.raises(NotFoundError):
        run_resolver(helper_config, open_client, "Buried")

    assert f"{root}/L1/L2/L3" not in site.listed("Files")

    monkeypatch.setenv("RESOLVER_MAX_FOLDERS", "10")
    assert run_resolver(helper_config, open_client, "Buried").path == f"{root}/L1/L2/L3/Buried.aspx"


def test_missing_folders_and_containers_are_skipped(helper_config, open_client, site):
    site.add_library("gone", "/sites/X/Gone")
    site.add_library("a", "/sites/X/SitePages")
    site.tree.pop("/sites/X/Gone")
    site.add_folder("/sites/X/SitePages", folders=["Vanished", "Real"])
    site.tree.pop("/sites/X/SitePages/Vanished")
    site.add_folder("/sites/X/SitePages/Real", files=["Budget.aspx"])

    candidate = run_resolver(helper_config, open_client, "Budget")

    assert candidate.path == "/sites/X/SitePages/Real/Budget.aspx"


def test_title_field_lookup_after_traversal(helper_config, open_client, site):
    site.add_library("lib-1", "/sites/X/SitePages")
    site.add_folder("/sites/X/SitePages", files=["QR-2026.aspx"])
    site.titles["lib-1"] = [{
        "FileRef": "/sites/X/SitePages/QR-2026.aspx",
        "FileLeafRef": "QR-2026.aspx",
        "Title": "Quarterly Review",
        "Modified": "2026-09-30T08:00:00Z",
    }]

    candidate = run_resolver(helper_config, open_client, "Quarterly Review")

    assert candidate.path == "/sites/X/SitePages/QR-2026.aspx"
    assert candidate.match_kind is MatchKind.TITLE_FIELD
    query = site.urls()[-1]
    assert "$filter=Title eq 'Quarterly Review'" in query
    assert "$orderby=Modified desc" in query
    assert "$top=1" in query


def test_title_field_lookup_can_be_disabled(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("RESOLVER_TITLE_LOOKUP", "false")
    site.add_library("lib-1", "/sites/X/SitePages")
    site.titles["lib-1"] = [{"FileRef": "/sites/X/SitePages/QR-2026.aspx", "Title": "Quarterly Review"}]

    with pytest.raises(NotFoundError):
        run_resolver(helper_config, open_client, "Quarterly Review")
    assert not any("/items?" in url for url in site.urls())


def test_full_text_search_is_the_last_resort(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.search_rows = [{"Cells": [
        {"Key": "ServerRelativeUrl", "Value": "/sites/X/Shared Documents/Board-Minutes.docx"},
        {"Key": "Path", "Value": "https://contoso.sharepoint.com/sites/Y/SitePages/Board-Minutes.aspx"},
    ]}]

    candidate = run_resolver(helper_config, open_client, "Board-Minutes.aspx")

    assert candidate.path == "/sites/Y/SitePages/Board-Minutes.aspx"
    assert candidate.match_kind is MatchKind.FULL_TEXT_HIT
    assert "querytext='filename:Board-Minutes.aspx'" in site.urls()[-1]
    # file-like hints skip the title lookup
    assert not any("/items?" in url for url in site.urls())


def test_title_like_search_uses_the_bare_stem(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")

    with pytest.raises(NotFoundError) as exc:
        run_resolver(helper_config, open_client, "Board Minutes")

    assert exc.value.hint == "Board Minutes"
    assert "querytext='Board-Minutes'" in site.urls()[-1]


def test_blank_hint_is_rejected(helper_config, open_client, site):
    with pytest.raises(ValueError):
        run_resolver(helper_config, open_client, "  ")
    assert site.requests == []
