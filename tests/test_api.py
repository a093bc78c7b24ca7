"""
Tests for the review API.
"""

import pytest
from fastapi.testclient import TestClient

from lead_refinery.api import endpoints
from lead_refinery.engine import EnrichmentEngine
from lead_refinery.entitlement import QuotaEntitlement

from conftest import FakeChatClient, FakeSearch, classifier_payload


JANE = {
    "email": "jane.doe@acme.com",
    "first_name": "Jane",
    "last_name": "Doe",
    "firm_name": "Acme Corp",
    "declared_title": "VP Marketing",
}


@pytest.fixture
def chat():
    return FakeChatClient()


@pytest.fixture
def engine(registry, chat, monkeypatch):
    engine = EnrichmentEngine(registry=registry, llm_client=chat, llm_provider="openai", search_fn=FakeSearch())
    monkeypatch.setattr(endpoints, "default_engine", engine)
    return engine


@pytest.fixture
def client(engine):
    return TestClient(endpoints.app)


class TestInfo:

    def test_root(self, client):
        body = client.get("/").json()
        assert body["service"] == "Lead Refinery"
        assert "Enrich" in body["endpoints"]

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["llm_configured"] is True
        assert body["taxonomy_version"] == "2025.1"

    def test_taxonomy(self, client):
        body = client.get("/api/taxonomy").json()
        assert [row["job_level_id"] for row in body["job_levels"]] == ["L1", "L2", "L3", "L4"]
        assert len(body["functions"]) == 7


class TestEnrich:

    def test_enrich_single_lead(self, client, chat):
        chat.queue(classifier_payload(confidence=90))
        response = client.post("/api/leads/enrich", json={"lead": JANE, "raw_lead_id": "LEAD-A"})

        assert response.status_code == 200
        job = response.json()
        assert job["state"] == "completed"
        assert job["enriched"]["job_level"] == 2
        assert job["enriched"]["region"] == "Americas"
        assert job["enriched"]["is_verified"] is True

    def test_resolution_failure_reported_in_job(self, client, chat):
        chat.queue("not json", "still not json")
        response = client.post("/api/leads/enrich", json={"lead": JANE, "raw_lead_id": "LEAD-B"})

        assert response.status_code == 200
        assert response.json()["state"] == "error"
        assert response.json()["last_stage"] == "ERROR"

        chat.queue(classifier_payload())
        retried = client.post("/api/leads/LEAD-B/retry")
        assert retried.status_code == 200
        assert retried.json()["state"] == "completed"

    def test_retry_unknown_lead(self, client):
        assert client.post("/api/leads/LEAD-NOPE/retry").status_code == 404

    def test_insufficient_entitlement(self, client, engine):
        engine.entitlement = QuotaEntitlement(0)
        response = client.post("/api/leads/enrich", json={"lead": JANE})
        assert response.status_code == 402
        assert response.json()["type"] == "InsufficientEntitlement"

    def test_batch(self, client, chat):
        chat.queue(classifier_payload(), classifier_payload())
        second = dict(JANE, email="john@acme.com", first_name="John")
        response = client.post("/api/leads/enrich/batch", json={"leads": [JANE, second], "batch_id": "B-7"})

        body = response.json()
        assert response.status_code == 200
        assert body["processed"] == 2
        assert body["completed"] == 2
        assert all(job["batch_id"] == "B-7" for job in body["jobs"])

    def test_invalid_request(self, client):
        response = client.post("/api/leads/enrich", json={"lead": {"first_name": "Jane"}})
        assert response.status_code == 422


class TestReview:

    def test_vault_listing_and_detail(self, client, chat):
        chat.queue(classifier_payload())
        client.post("/api/leads/enrich", json={"lead": JANE, "raw_lead_id": "LEAD-C"})

        listing = client.get("/api/leads").json()
        assert listing["count"] == 1
        row = listing["leads"][0]
        assert row["raw_lead_id"] == "LEAD-C"
        assert 0 < row["completeness"] <= 100

        assert client.get("/api/leads", params={"min_completeness": 100}).json()["count"] == 0

        detail = client.get("/api/leads/LEAD-C").json()
        assert detail["f0"] == "Marketing"
        assert detail["raw_evidence_json"]["ai_output"]["job_level_id"] == "L2"

    def test_unknown_lead(self, client):
        assert client.get("/api/leads/LEAD-NOPE").status_code == 404

    def test_jobs_listing(self, client, chat):
        chat.queue("bad", "bad again")
        client.post("/api/leads/enrich", json={"lead": JANE, "raw_lead_id": "LEAD-D"})

        body = client.get("/api/jobs", params={"state": "error"}).json()
        assert body["count"] == 1
        assert body["jobs"][0]["raw_lead_id"] == "LEAD-D"
        assert body["jobs"][0]["error"]

    def test_country_lookup(self, client):
        response = client.post("/api/location/country", json={"state": "California"})
        assert response.json() == {"state": "California", "country": "United States"}

    def test_stats(self, client, chat):
        chat.queue(classifier_payload())
        client.post("/api/leads/enrich", json={"lead": JANE})
        stats = client.get("/api/stats").json()
        assert stats["default_engine"]["completed"] == 1
        assert stats["jobs"] == 1
