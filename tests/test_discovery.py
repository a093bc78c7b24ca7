"""
Tests for Stage 1: Evidence Discovery.
"""

import json

import httpx
import pytest

from lead_refinery.exceptions import DiscoveryUnavailable
from lead_refinery.models.schemas import LeadIdentity
from lead_refinery.stages.stage1_discovery import EvidenceDiscoveryStage

from conftest import FakeSearch


SERPER_PAYLOAD = {
    "organic": [
        {
            "title": "Jane Doe - VP Marketing - Acme Corp | LinkedIn",
            "link": "https://www.linkedin.com/in/janedoe",
            "snippet": "Jane Doe leads marketing at Acme Corp.",
        },
        {"title": "No link here", "snippet": "dropped"},
        {
            "title": "Leadership | Acme Corp",
            "link": "https://acme.com/leadership",
            "snippet": "Jane Doe, Vice President of Marketing.",
        },
    ],
    "knowledgeGraph": {
        "title": "Acme Corp",
        "attributes": {
            "Headquarters": "Redwood City, CA 94065, United States",
            "Founded": "1999",
        },
    },
}


def make_stage(handler, **kwargs) -> EvidenceDiscoveryStage:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return EvidenceDiscoveryStage(api_key="test-key", http_client=client, **kwargs)


# =============================================================================
# QUERY
# =============================================================================

class TestQuery:

    def test_query_biased_to_profiles_and_bios(self, jane):
        query = EvidenceDiscoveryStage(api_key="k").build_query(jane)
        assert query.startswith('site:linkedin.com/in "Jane Doe" "Acme Corp"')
        assert '"Jane Doe" corporate bio official Acme Corp' in query
        assert query.endswith('"Acme Corp" headquarters address')

    def test_query_scoped_to_website(self):
        lead = LeadIdentity(
            email="j@acme.com", first_name="Jane", last_name="Doe",
            firm_name="Acme Corp", website="https://www.acme.com/about",
        )
        query = EvidenceDiscoveryStage(api_key="k", include_hq_fallback=False).build_query(lead)
        assert query.endswith('OR site:acme.com "Jane Doe"')
        assert "headquarters" not in query


# =============================================================================
# SERPER CALL
# =============================================================================

class TestSerper:

    def test_results_passed_through_in_rank_order(self, jane):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers["X-API-KEY"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=SERPER_PAYLOAD)

        bundle = make_stage(handler).process(jane)

        assert seen["key"] == "test-key"
        assert seen["body"]["q"] == bundle.query
        assert [f.url for f in bundle.fragments] == [
            "https://www.linkedin.com/in/janedoe",
            "https://acme.com/leadership",
        ]
        assert bundle.headquarters == "Redwood City, CA 94065, United States"
        assert "Jane Doe leads marketing" in bundle.raw_text

    def test_results_truncated(self, jane):
        bundle = make_stage(lambda r: httpx.Response(200, json=SERPER_PAYLOAD), num_results=1).process(jane)
        assert len(bundle.fragments) == 1

    def test_no_results_is_empty_bundle(self, jane):
        bundle = make_stage(lambda r: httpx.Response(200, json={"organic": []})).process(jane)
        assert bundle.is_empty
        assert bundle.notes == ["Search returned no ranked results"]

    def test_http_error_status(self, jane):
        with pytest.raises(DiscoveryUnavailable, match="HTTP 503"):
            make_stage(lambda r: httpx.Response(503)).process(jane)

    def test_timeout(self, jane):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        with pytest.raises(DiscoveryUnavailable, match="timed out"):
            make_stage(handler).process(jane)

    def test_invalid_json(self, jane):
        with pytest.raises(DiscoveryUnavailable):
            make_stage(lambda r: httpx.Response(200, text="<html>")).process(jane)

    def test_malformed_payload(self, jane):
        with pytest.raises(DiscoveryUnavailable):
            make_stage(lambda r: httpx.Response(200, json={"organic": "nope"})).process(jane)


# =============================================================================
# CAPABILITY CONFIGURATION
# =============================================================================

class TestCapability:

    def test_not_configured(self, jane):
        with pytest.raises(DiscoveryUnavailable, match="not configured"):
            EvidenceDiscoveryStage().process(jane)

    def test_injected_search_function(self, jane):
        search = FakeSearch(SERPER_PAYLOAD)
        bundle = EvidenceDiscoveryStage(search_fn=search).process(jane)
        assert search.queries == [bundle.query]
        assert len(bundle.fragments) == 2

    def test_injected_search_failure_wrapped(self, jane):
        search = FakeSearch(error=ConnectionError("down"))
        with pytest.raises(DiscoveryUnavailable, match="down"):
            EvidenceDiscoveryStage(search_fn=search).process(jane)

    def test_every_call_requeries(self, jane):
        search = FakeSearch(SERPER_PAYLOAD)
        stage = EvidenceDiscoveryStage(search_fn=search)
        stage.process(jane)
        stage.process(jane)
        assert len(search.queries) == 2
