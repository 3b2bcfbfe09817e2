import asyncio
import json

import pytest

from services.page_resolver.ResolverService import ResolverService
from services.page_update.UpdateService import UpdateService
from shared.clients.cms.exceptions import (
    AuthError,
    TargetNotFoundError,
    TransportError,
    VerificationError,
    WriteTargetMissingError,
)
from shared.clients.cms.models.Addressing import AddressingScheme
from shared.models.update import UpdateState

PAGE = "/sites/X/SitePages/Y.aspx"
CONTENT = '[{"controlType":4,"innerHTML":"<p>Hello</p>"}]'
PRIMARY = "GetFileByServerRelativePath"
FALLBACK = "GetFileByServerRelativeUrl"


def run_update(helper_config, open_client, path=PAGE, publish=True):
    async def scenario():
        async with open_client() as client:
            resolver = ResolverService(helper_config, client)
            return await UpdateService(helper_config, client, resolver=resolver).update(path, CONTENT, publish=publish)

    return asyncio.run(scenario())


def page_exists(site, scheme=PRIMARY):
    site.on("GET", scheme, "UniqueId", json={"UniqueId": "6f1c"})


def test_fallback_write_is_used_after_primary_404(helper_config, open_client, site, digest):
    page_exists(site)
    site.on("POST", FALLBACK, "ListItemAllFields", status=204)
    site.on("POST", FALLBACK, "/Publish(", status=200, json={})
    site.on("GET", FALLBACK, "CanvasContent1", json={"CanvasContent1": CONTENT})

    outcome = run_update(helper_config, open_client)

    assert outcome.resolved_path == PAGE
    assert outcome.addressing_scheme_used is AddressingScheme.FALLBACK
    assert outcome.published is True
    assert outcome.verified is True
    assert outcome.state is UpdateState.VERIFIED

    writes = site.matching("POST", "ListItemAllFields")
    assert [PRIMARY in str(r.url) for r in writes] == [True, False]
    assert json.loads(writes[1].content) == {"CanvasContent1": CONTENT, "PageLayoutType": "Article"}
    publishes = site.matching("POST", "/Publish(")
    assert len(publishes) == 1
    assert publishes[0].headers["X-RequestDigest"] == digest
    assert "StringParameter='Programmatic update'" in site.urls("POST")[-1]


def test_primary_404_fallback_204_publish_200(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("UPDATE_VERIFY", "false")
    page_exists(site)
    site.on("POST", FALLBACK, "ListItemAllFields", status=204)
    site.on("POST", FALLBACK, "/Publish(", status=200)

    outcome = run_update(helper_config, open_client, path="sites/X/SitePages/Y.aspx;")

    assert outcome.model_dump(include={"resolved_path", "addressing_scheme_used", "published"}) == {
        "resolved_path": "/sites/X/SitePages/Y.aspx",
        "addressing_scheme_used": AddressingScheme.FALLBACK,
        "published": True,
    }
    assert outcome.verified is None
    assert outcome.state is UpdateState.PUBLISHED
    assert not site.matching("GET", "CanvasContent1")


def test_both_schemes_missing_fails_without_publish(helper_config, open_client, site):
    page_exists(site)

    with pytest.raises(WriteTargetMissingError) as exc:
        run_update(helper_config, open_client)

    assert exc.value.stage == "write"
    assert len(site.matching("POST", "ListItemAllFields")) == 2
    assert site.matching("POST", "/Publish(") == []


def test_publish_falls_back_to_the_other_scheme(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("UPDATE_VERIFY", "false")
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)
    site.on("POST", FALLBACK, "/Publish(", status=200)

    outcome = run_update(helper_config, open_client)

    assert outcome.addressing_scheme_used is AddressingScheme.PRIMARY
    assert [PRIMARY in str(r.url) for r in site.matching("POST", "/Publish(")] == [True, False]


def test_publish_missing_on_both_schemes(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)

    with pytest.raises(WriteTargetMissingError) as exc:
        run_update(helper_config, open_client)
    assert exc.value.stage == "publish"


def test_unpublished_update_skips_publish(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)
    site.on("GET", PRIMARY, "CanvasContent1", json={"d": {"CanvasContent1": CONTENT}})

    outcome = run_update(helper_config, open_client, publish=False)

    assert outcome.published is False
    assert outcome.verified is True
    assert site.matching("POST", "/Publish(") == []


def test_non_404_write_error_is_not_retried(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=500, json={"error": "boom"})

    with pytest.raises(TransportError) as exc:
        run_update(helper_config, open_client)

    assert exc.value.status_code == 500
    assert len(site.matching("POST", "ListItemAllFields")) == 1


def test_missing_token_aborts_before_writing(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", "/_api/contextinfo", json={"WebFullUrl": "https://contoso.sharepoint.com/sites/X"})

    with pytest.raises(AuthError):
        run_update(helper_config, open_client)
    assert site.matching("POST", "ListItemAllFields") == []


def test_token_is_fetched_for_every_update(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("UPDATE_VERIFY", "false")
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)

    run_update(helper_config, open_client, publish=False)
    run_update(helper_config, open_client, publish=False)

    assert len(site.matching("POST", "/_api/contextinfo")) == 2


def test_stale_path_is_corrected_by_the_resolver(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")
    site.add_folder("/sites/X/SitePages", files=["Y.aspx"])
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)
    site.on("POST", PRIMARY, "/Publish(", status=200)
    site.on("GET", PRIMARY, "CanvasContent1", json={"CanvasContent1": CONTENT})

    outcome = run_update(helper_config, open_client, path="/sites/X/SitePages/Old/Y.aspx")

    assert outcome.resolved_path == "/sites/X/SitePages/Y.aspx"
    assert outcome.addressing_scheme_used is AddressingScheme.PRIMARY
    assert any("decodedurl='/sites/X/SitePages/Y.aspx')/ListItemAllFields" in url for url in site.urls("POST"))


def test_stale_path_without_auto_correct_fails(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("UPDATE_AUTO_CORRECT", "false")

    with pytest.raises(TargetNotFoundError) as exc:
        run_update(helper_config, open_client)

    assert exc.value.path == PAGE
    assert site.matching("POST", "/_api/contextinfo") == []


def test_unresolvable_stale_path_fails(helper_config, open_client, site):
    site.add_library("a", "/sites/X/SitePages")

    with pytest.raises(TargetNotFoundError):
        run_update(helper_config, open_client)
    assert site.matching("POST", "/_api/contextinfo") == []


def test_pre_probe_can_be_disabled(helper_config, open_client, site, monkeypatch):
    monkeypatch.setenv("UPDATE_PRE_PROBE", "false")
    monkeypatch.setenv("UPDATE_VERIFY", "false")
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)

    outcome = run_update(helper_config, open_client, publish=False)

    assert outcome.state is UpdateState.WRITTEN
    assert site.matching("GET", "UniqueId") == []


def test_silent_no_op_is_detected(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)
    site.on("POST", PRIMARY, "/Publish(", status=200)
    site.on("GET", PRIMARY, "CanvasContent1", json={"CanvasContent1": "<p>old</p>"})

    with pytest.raises(VerificationError):
        run_update(helper_config, open_client)


def test_reserialized_canvas_counts_as_verified(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)
    site.on("POST", PRIMARY, "/Publish(", status=200)
    stored = json.dumps(json.loads(CONTENT), indent=2)
    site.on("GET", PRIMARY, "CanvasContent1", json={"CanvasContent1": stored})

    outcome = run_update(helper_config, open_client)

    assert outcome.verified is True
    assert outcome.state is UpdateState.VERIFIED


def test_changed_canvas_value_fails_verification(helper_config, open_client, site):
    page_exists(site)
    site.on("POST", PRIMARY, "ListItemAllFields", status=204)
    site.on("POST", PRIMARY, "/Publish(", status=200)
    site.on("GET", PRIMARY, "CanvasContent1", json={"CanvasContent1": CONTENT.replace("Hello", "Bye")})

    with pytest.raises(VerificationError):
        run_update(helper_config, open_client)
