"""
Stage 1: Evidence Discovery
===========================
Gathers public web evidence about a lead from an external search capability.

The stage only builds the query and passes ranked results through. It never
re-ranks, and it never caches: every call re-queries.

Evidence collected:
- Professional-network profile snippets (LinkedIn)
- Corporate bio snippets
- Firm headquarters address (location fallback target)
"""

import logging
import time
from typing import Optional, Dict, Any, Callable, List
from urllib.parse import urlparse

import httpx

from ..models.schemas import LeadIdentity, EvidenceBundle, EvidenceFragment
from ..config.settings import SEARCH_CONFIG
from ..exceptions import DiscoveryUnavailable

logger = logging.getLogger(__name__)

SearchFunction = Callable[[str, int], Dict[str, Any]]


class EvidenceDiscoveryStage:
    """
    Stage 1: Discover evidence for a person at a firm.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        search_fn: Optional[SearchFunction] = None,
        http_client: Optional[httpx.Client] = None,
        num_results: Optional[int] = None,
        include_hq_fallback: Optional[bool] = None,
    ):
        """
        Initialize the discovery stage.

        Args:
            api_key: Serper.dev API key (defaults to SERPER_API_KEY)
            search_fn: Replacement search capability taking (query, num_results)
                and returning a Serper-shaped payload
            http_client: Preconfigured httpx client for the Serper call
            num_results: Maximum number of fragments kept
            include_hq_fallback: Append the firm headquarters clause to the query
        """
        self.api_key = api_key or SEARCH_CONFIG.get("api_key")
        self.base_url = SEARCH_CONFIG.get("base_url", "https://google.serper.dev")
        self.timeout = SEARCH_CONFIG.get("timeout_seconds", 20)
        self.num_results = num_results or SEARCH_CONFIG.get("num_results", 10)
        self.include_hq_fallback = (
            SEARCH_CONFIG.get("include_hq_fallback", True)
            if include_hq_fallback is None
            else include_hq_fallback
        )
        self.search_fn = search_fn
        self.http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self.search_fn or self.api_key)

    def build_query(self, identity: LeadIdentity) -> str:
        """
        Build the single discovery query for a lead.

        Biased toward professional-network and corporate-bio sources. When a
        website is known the bio clause is scoped to its domain.
        """
        name = identity.full_name
        firm = identity.firm_name.strip()

        query = f'site:linkedin.com/in "{name}" "{firm}" OR "{name}" corporate bio official {firm}'

        domain = _domain_of(identity.website)
        if domain:
            query += f' OR site:{domain} "{name}"'

        if self.include_hq_fallback:
            query += f' OR "{firm}" headquarters address'

        return query

    def process(self, identity: LeadIdentity) -> EvidenceBundle:
        """
        Discover evidence for a lead.

        Args:
            identity: Lead identity

        Returns:
            EvidenceBundle with ranked fragments and raw text

        Raises:
            DiscoveryUnavailable: capability missing, unreachable or malformed
        """
        start_time = time.time()
        query = self.build_query(identity)

        if not self.configured:
            raise DiscoveryUnavailable("Search capability is not configured")

        payload = self._search(query)
        bundle = self._parse_payload(query, payload)

        logger.debug(
            "Discovery returned %s fragments for %s in %.0fms",
            len(bundle.fragments),
            identity.full_name,
            (time.time() - start_time) * 1000,
        )
        return bundle

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _search(self, query: str) -> Dict[str, Any]:
        if self.search_fn:
            try:
                return self.search_fn(query, self.num_results)
            except DiscoveryUnavailable:
                raise
            except Exception as e:
                raise DiscoveryUnavailable(f"Search capability failed: {e}") from e

        payload = {
            "q": query,
            "gl": SEARCH_CONFIG.get("country", "us"),
            "hl": SEARCH_CONFIG.get("language", "en"),
            "num": self.num_results,
        }
        headers = {
            "X-API-KEY": self.api_key,
            "Content-Type": "application/json",
        }

        try:
            if self.http_client is not None:
                response = self.http_client.post(f"{self.base_url}/search", json=payload, headers=headers)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(f"{self.base_url}/search", json=payload, headers=headers)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise DiscoveryUnavailable(f"Search timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise DiscoveryUnavailable(f"Search returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise DiscoveryUnavailable(f"Search unreachable: {e}") from e
        except ValueError as e:
            raise DiscoveryUnavailable(f"Search returned invalid JSON: {e}") from e

    def _parse_payload(self, query: str, payload: Any) -> EvidenceBundle:
        """Turn a Serper-shaped payload into an EvidenceBundle"""
        if not isinstance(payload, dict):
            raise DiscoveryUnavailable("Search payload is not an object")

        organic = payload.get("organic", [])
        if not isinstance(organic, list):
            raise DiscoveryUnavailable("Search payload 'organic' is not a list")

        fragments: List[EvidenceFragment] = []
        for item in organic[: self.num_results]:
            if not isinstance(item, dict) or not item.get("link"):
                continue
            fragments.append(EvidenceFragment(
                url=str(item["link"]),
                snippet=str(item.get("snippet") or ""),
                title=item.get("title"),
            ))

        headquarters = None
        raw_parts = [f.snippet for f in fragments if f.snippet]

        knowledge = payload.get("knowledgeGraph")
        if isinstance(knowledge, dict):
            attributes = knowledge.get("attributes") or {}
            if isinstance(attributes, dict):
                for key, value in attributes.items():
                    raw_parts.append(f"{key}: {value}")
                    if key.lower() in ("headquarters", "address", "head office"):
                        headquarters = headquarters or str(value).strip() or None
            if knowledge.get("description"):
                raw_parts.append(str(knowledge["description"]))

        notes = []
        if not fragments:
            notes.append("Search returned no ranked results")
        if headquarters:
            notes.append(f"Firm headquarters from knowledge panel: {headquarters}")

        return EvidenceBundle(
            query=query,
            fragments=fragments,
            raw_text="\n".join(raw_parts),
            headquarters=headquarters,
            notes=notes,
        )


def _domain_of(website: Optional[str]) -> Optional[str]:
    if not website or not website.strip():
        return None
    url = website.strip()
    if "://" not in url:
        url = "https://" + url
    host = urlparse(url).netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None
