"""
Shared fixtures for the Lead Refinery tests.
"""

import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from lead_refinery.config import settings
from lead_refinery.models.schemas import LeadIdentity, EvidenceBundle, EvidenceFragment
from lead_refinery.models.taxonomy import build_registry


# =============================================================================
# ENVIRONMENT ISOLATION
# =============================================================================

@pytest.fixture(autouse=True)
def no_external_credentials(monkeypatch):
    """Never build real SDK or search clients from the developer's environment."""
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("SERPER_API_KEY", raising=False)
    monkeypatch.setitem(settings.LLM_CONFIG, "api_key", "")
    monkeypatch.setitem(settings.SEARCH_CONFIG, "api_key", "")


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeChatClient:
    """
    OpenAI-shaped client returning queued responses.

    Each queued item is either a dict (sent as JSON), a raw string, or an
    exception instance to raise.
    """

    def __init__(self, *responses: Any):
        self.responses: List[Any] = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def queue(self, *responses: Any):
        self.responses.extend(responses)

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if not self.responses:
            raise RuntimeError("no queued classifier response")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        content = json.dumps(item) if isinstance(item, dict) else item
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class FakeSearch:
    """Search capability returning a fixed Serper-shaped payload."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.payload = payload if payload is not None else {"organic": []}
        self.error = error
        self.queries: List[str] = []

    def __call__(self, query: str, num_results: int) -> Dict[str, Any]:
        self.queries.append(query)
        if self.error:
            raise self.error
        return self.payload


def classifier_payload(**overrides) -> Dict[str, Any]:
    payload = {
        "standard_title": "Vice President, Marketing",
        "job_level_id": "L2",
        "function_taxonomy_id": "FT004",
        "industry_id": "IND002",
        "location": {"city": "Austin", "state": "Texas", "country": "USA", "zip": "78701"},
        "linkedin_url": None,
        "linkedin_employer": None,
        "confidence": 78,
        "intent_signal": "High",
        "salutation": None,
        "alternate_profile_url": None,
    }
    payload.update(overrides)
    return payload


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def registry():
    return build_registry(settings.DEFAULT_TAXONOMY)


@pytest.fixture
def jane():
    return LeadIdentity(
        email="jane.doe@acme.com",
        first_name="Jane",
        last_name="Doe",
        firm_name="Acme Corp",
        declared_title="VP Marketing",
    )


@pytest.fixture
def empty_evidence():
    return EvidenceBundle.empty('site:linkedin.com/in "Jane Doe" "Acme Corp"')


@pytest.fixture
def acme_evidence():
    return EvidenceBundle(
        query='site:linkedin.com/in "Jane Doe" "Acme Corp"',
        fragments=[
            EvidenceFragment(
                url="https://www.linkedin.com/in/janedoe",
                title="Jane Doe - VP Marketing - Acme Corp | LinkedIn",
                snippet="Jane Doe leads marketing at Acme Corp.",
            ),
            EvidenceFragment(
                url="https://acme.com/leadership",
                title="Leadership | Acme Corp",
                snippet="Jane Doe, Vice President of Marketing.",
            ),
        ],
        raw_text="Jane Doe leads marketing at Acme Corp.\nJane Doe, Vice President of Marketing.",
        headquarters="Redwood City, CA 94065, United States",
    )


@pytest.fixture
def fake_client():
    return FakeChatClient()
