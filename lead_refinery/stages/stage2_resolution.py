"""
Stage 2: Identity Resolution
============================
Maps a lead plus its evidence onto the closed taxonomies.

The classifier is handed the complete enumerations and must select ids,
never invent values. Its output is then passed through deterministic
governance (validate_resolution), which is a pure function so the
override rules can be tested without any classifier.

Tasks:
- Title normalization
- Job level selection (post-hoc keyword override)
- Function row selection (single-row integrity)
- Industry selection
- Location with headquarters fallback
- LinkedIn attribution
- Confidence-derived intent signal
"""

import json
import logging
import time
from typing import Optional, Dict, Any, List, Tuple
import os

from pydantic import ValidationError

from ..models.schemas import (
    LeadIdentity,
    EvidenceBundle,
    ClassifierOutput,
    ResolutionIntel,
    ResolutionResult,
)
from ..models.taxonomy import TaxonomyRegistry, TaxonomyKind
from ..config.settings import LLM_CONFIG, RULE_BASED_CONFIDENCE, DEFAULT_LEVEL_RANK
from ..exceptions import ResolutionFailed, TaxonomyIdUnresolved
from .governance import (
    normalize_title,
    level_rank_for_title,
    is_marketing_title,
    function_f0_for_title,
    clamp_confidence,
    intent_signal_for,
    canonical_linkedin_url,
    find_linkedin_urls,
    linkedin_employer_matches,
    parse_headquarters,
    canonical_country,
    country_for_state,
)

logger = logging.getLogger(__name__)


SYSTEM_PROMPT = """You are an institutional identity resolution engine.
You map a person to exactly one entry of each provided taxonomy.

GOVERNANCE RULES:
1. You MUST select taxonomy entries by their id. You MUST NOT invent ids or values.
2. standard_title: expand all abbreviations (VP -> Vice President, SVP -> Senior Vice President,
   EVP -> Executive Vice President, CEO -> Chief Executive Officer). Capitalize every word.
   Use commas as the only punctuation (no hyphens, slashes or ampersands).
   Order: Seniority, Department, Location.
3. job_level_id: Founder, Owner, Board, C-level -> L1. President, EVP, SVP, VP -> L2.
   Director, Executive Director -> L3. Everything else -> L4.
4. function_taxonomy_id: choose ONE row; f0/f1/f2 come from that row only.
   A marketing title MUST NOT be mapped to a Sales row.
5. location: the individual's location. If there is no evidence of it, use the firm's
   headquarters address (city, state, country, zip). Never output placeholder zips such
   as 00000 or 99999; leave zip empty instead.
6. linkedin_url: only a linkedin.com/in/ profile whose CURRENT employer is the firm.
   Report that employer in linkedin_employer. Profiles for former employers must be null.
7. confidence: 0-100, how well the evidence supports the whole resolution.
   With no evidence beyond the declared title, confidence must be low.

Always respond with a single valid JSON object only."""


OUTPUT_SCHEMA = {
    "standard_title": "string",
    "job_level_id": "one of the job level ids",
    "function_taxonomy_id": "one of the function ids or null",
    "industry_id": "one of the industry ids or null",
    "location": {"city": "string|null", "state": "string|null", "country": "string|null", "zip": "string|null"},
    "linkedin_url": "string|null",
    "linkedin_employer": "string|null",
    "confidence": "number 0-100",
    "intent_signal": "Low|Medium|High",
    "salutation": "Mr.|Ms.|Dr.|null",
    "alternate_profile_url": "string|null",
}


class IdentityResolutionStage:
    """
    Stage 2: Resolve a lead against the taxonomies with a classifier.
    Falls back to rule-based resolution when no classifier is configured.
    """

    def __init__(
        self,
        registry: TaxonomyRegistry,
        api_key: Optional[str] = None,
        provider: Optional[str] = None,
        client: Optional[Any] = None,
        model: Optional[str] = None,
    ):
        """
        Initialize the resolver.

        Args:
            registry: Immutable taxonomy registry shared by all resolutions
            api_key: API key for the LLM provider
            provider: "openrouter", "openai" or "anthropic"
            client: Preconfigured SDK client (skips client construction)
            model: Model name override
        """
        self.registry = registry
        self.api_key = api_key or LLM_CONFIG.get("api_key") or os.getenv("OPENROUTER_API_KEY")
        self.provider = provider or LLM_CONFIG.get("provider", "openrouter")
        self.model = model or LLM_CONFIG.get("model", "openai/gpt-4o")
        self.base_url = LLM_CONFIG.get("base_url", "https://openrouter.ai/api/v1")
        self.site_url = LLM_CONFIG.get("site_url", "http://localhost:8000")
        self.app_name = LLM_CONFIG.get("app_name", "Lead Refinery")
        self.timeout = LLM_CONFIG.get("timeout_seconds", 60)
        self.client = client

        if self.client is None:
            self._initialize_client()

    def _initialize_client(self):
        """Initialize the LLM client based on provider"""
        if not self.api_key:
            return

        # SDK retries disabled; the single reparse is the only retry
        if self.provider == "openrouter":
            from openai import OpenAI
            self.client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": self.site_url,
                    "X-Title": self.app_name,
                }
            )
        elif self.provider == "openai":
            from openai import OpenAI
            self.client = OpenAI(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        elif self.provider == "anthropic":
            # pip install lead-refinery[anthropic]
            from anthropic import Anthropic
            self.client = Anthropic(api_key=self.api_key, timeout=self.timeout, max_retries=0)
        else:
            raise ValueError(f"Unknown provider: {self.provider}")

    def process(self, identity: LeadIdentity, evidence: EvidenceBundle) -> ResolutionResult:
        """
        Resolve a lead.

        Args:
            identity: Lead identity
            evidence: Evidence from Stage 1 (may be empty)

        Returns:
            ResolutionResult with the raw classifier payload and validated intel

        Raises:
            ResolutionFailed: classifier unreachable, or output still malformed
                after a single reparse attempt
        """
        start_time = time.time()

        # If no LLM client, resolve from the declared title alone
        if not self.client:
            raw = self._generate_rule_based_output(identity)
            output = ClassifierOutput.model_validate(raw)
            return ResolutionResult(
                raw=raw,
                validated=validate_resolution(output, identity, evidence, self.registry),
                rule_based=True,
                processing_time_ms=round((time.time() - start_time) * 1000, 2),
            )

        prompt = self._generate_prompt(identity, evidence)
        response = self._call_llm(SYSTEM_PROMPT, prompt)

        reparsed = False
        try:
            output, raw = self._parse_response(response)
        except ResolutionFailed as first_error:
            logger.warning("Classifier output malformed for %s, reparsing: %s", identity.email, first_error)
            reparsed = True
            repaired = self._call_llm(SYSTEM_PROMPT, self._generate_repair_prompt(response, str(first_error)))
            try:
                output, raw = self._parse_response(repaired)
            except ResolutionFailed as second_error:
                raise ResolutionFailed(
                    f"Classifier output malformed after reparse: {second_error}",
                    raw_output=repaired,
                ) from second_error

        return ResolutionResult(
            raw=raw,
            validated=validate_resolution(output, identity, evidence, self.registry),
            reparsed=reparsed,
            processing_time_ms=round((time.time() - start_time) * 1000, 2),
        )

    def resolve_country(self, state: str) -> Optional[str]:
        """
        Resolve the country that a state or province belongs to.

        Uses the static state table first, then the classifier when one is
        configured. Returns None when no exact match is known.
        """
        if not state or not state.strip():
            return None

        known = country_for_state(state)
        if known:
            return known

        if not self.client:
            return None

        try:
            response = self._call_llm(
                "You resolve administrative units to countries. Respond with JSON only.",
                f'Country for the state or province "{state.strip()}"? '
                'Output JSON: {"country": ""}. Use an empty string when unsure.',
            )
            data = json.loads(_strip_code_fences(response))
        except (ResolutionFailed, json.JSONDecodeError) as e:
            logger.warning("Country lookup failed for %s: %s", state, e)
            return None

        country = str(data.get("country") or "").strip() if isinstance(data, dict) else ""
        if not country or country.lower() == "unknown":
            return None
        return canonical_country(country) or country

    # =========================================================================
    # Prompting
    # =========================================================================

    def _generate_prompt(self, identity: LeadIdentity, evidence: EvidenceBundle) -> str:
        """Generate the classification prompt with the closed taxonomies"""
        taxonomies = self.registry.as_dict()

        fragments = [
            {"url": f.url, "title": f.title, "snippet": f.snippet}
            for f in evidence.fragments
        ]

        return f"""USER INPUT:
- Name: {identity.full_name}
- Firm: {identity.firm_name}
- Website: {identity.website or 'Unknown'}
- Declared Title: {identity.declared_title or 'Unknown'}

EVIDENCE (query: {evidence.query}):
{json.dumps(fragments, indent=1) if fragments else 'No evidence found. Use the declared title as the only signal.'}

RAW TEXT:
{evidence.raw_text[:2000] or 'None'}

FIRM HEADQUARTERS (location fallback):
{evidence.headquarters or 'Unknown'}

TAXONOMIES PROVIDED (version {taxonomies['version']}):
- JOB_LEVELS: {json.dumps(taxonomies['job_levels'])}
- FUNCTION_TAXONOMY: {json.dumps(taxonomies['functions'])}
- INDUSTRIES: {json.dumps(taxonomies['industries'])}

TASK:
Return a valid JSON object with exactly these fields:
{json.dumps(OUTPUT_SCHEMA, indent=1)}

Return ONLY the JSON object, no other text."""

    def _generate_repair_prompt(self, bad_output: Optional[str], error: str) -> str:
        return f"""Your previous answer could not be used: {error}

PREVIOUS ANSWER:
{(bad_output or '')[:4000]}

Return the same resolution as a single valid JSON object with exactly these fields:
{json.dumps(OUTPUT_SCHEMA, indent=1)}

Return ONLY the JSON object, no other text."""

    def _call_llm(self, system_prompt: str, prompt: str) -> str:
        """Call the LLM API"""
        try:
            if self.provider in ["openrouter", "openai"]:
                # Both OpenRouter and OpenAI use the same SDK interface
                response = self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt}
                    ],
                    temperature=LLM_CONFIG.get("temperature", 0.1),
                    max_tokens=LLM_CONFIG.get("max_tokens", 1200),
                    response_format={"type": "json_object"},
                )
                return response.choices[0].message.content or ""

            elif self.provider == "anthropic":
                response = self.client.messages.create(
                    model=self.model,
                    max_tokens=LLM_CONFIG.get("max_tokens", 1200),
                    system=system_prompt,
                    messages=[
                        {"role": "user", "content": prompt}
                    ],
                )
                return response.content[0].text
        except Exception as e:
            raise ResolutionFailed(f"Classifier unavailable: {str(e)[:200]}") from e

        raise ValueError(f"Unknown provider: {self.provider}")

    def _parse_response(self, response: Optional[str]) -> Tuple[ClassifierOutput, Dict[str, Any]]:
        """Parse classifier text into the structural schema"""
        clean = _strip_code_fences(response or "")
        if not clean:
            raise ResolutionFailed("Classifier returned an empty response", raw_output=response)

        try:
            data = json.loads(clean)
        except json.JSONDecodeError:
            # Tolerate prose around a single JSON object
            start, end = clean.find("{"), clean.rfind("}")
            if start == -1 or end <= start:
                raise ResolutionFailed("Classifier response is not JSON", raw_output=response)
            try:
                data = json.loads(clean[start:end + 1])
            except json.JSONDecodeError as e:
                raise ResolutionFailed(f"Classifier response is not JSON: {e}", raw_output=response) from e

        if not isinstance(data, dict):
            raise ResolutionFailed("Classifier response is not a JSON object", raw_output=response)

        try:
            return ClassifierOutput.model_validate(data), data
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            raise ResolutionFailed(f"Classifier response does not match schema ({fields})", raw_output=response) from e

    def _generate_rule_based_output(self, identity: LeadIdentity) -> Dict[str, Any]:
        """Build classifier-shaped output from the declared title alone"""
        title = normalize_title(identity.declared_title)
        rank = level_rank_for_title(title, identity.declared_title)
        f0 = function_f0_for_title(title, identity.declared_title)
        rows = self.registry.functions_with_f0(f0) if f0 else []

        return {
            "standard_title": title,
            "job_level_id": self.registry.level_for_rank(rank).job_level_id,
            "function_taxonomy_id": rows[0].function_taxonomy_id if rows else None,
            "industry_id": None,
            "location": {},
            "linkedin_url": None,
            "confidence": RULE_BASED_CONFIDENCE,
            "intent_signal": None,
        }


# =============================================================================
# Governance validation (pure)
# =============================================================================

def validate_resolution(
    output: ClassifierOutput,
    identity: LeadIdentity,
    evidence: EvidenceBundle,
    registry: TaxonomyRegistry,
) -> ResolutionIntel:
    """
    Apply governance rules to classifier output.

    Every taxonomy id is checked against the registry; unknown ids fall back
    to the default band (rank 4 / no function / no industry). Level, function
    integrity, location fallback, LinkedIn attribution and intent are then
    enforced deterministically.
    """
    notes: List[str] = []
    unresolved: List[str] = []

    standard_title = normalize_title(output.standard_title) or normalize_title(identity.declared_title)

    # Job level: registry check, then keyword override. The declared title
    # decides; the resolved title is only consulted when it matches nothing.
    level = _resolve_entry(registry, TaxonomyKind.JOB_LEVEL, output.job_level_id, unresolved)
    classifier_rank = level.rank if level else DEFAULT_LEVEL_RANK
    declared_rank = level_rank_for_title(normalize_title(identity.declared_title), identity.declared_title)
    title_rank = level_rank_for_title(standard_title)
    rank = declared_rank if declared_rank != DEFAULT_LEVEL_RANK else title_rank
    if title_rank != rank:
        notes.append(
            f"Resolved title {standard_title!r} implies rank {title_rank}; "
            f"declared title {identity.declared_title!r} keeps rank {rank}"
        )
    if rank != classifier_rank:
        notes.append(f"Job level overridden from rank {classifier_rank} to rank {rank} by title rule")
    job_level = registry.level_for_rank(rank)

    # Function: one row by id, marketing never resolves to sales
    function = _resolve_entry(registry, TaxonomyKind.FUNCTION, output.function_taxonomy_id, unresolved)
    if is_marketing_title(standard_title, identity.declared_title) and (
        function is None or function.f0.lower() != "marketing"
    ):
        marketing_rows = registry.functions_with_f0("Marketing")
        if marketing_rows:
            previous = function.function_taxonomy_id if function else "none"
            function = marketing_rows[0]
            notes.append(
                f"Function moved from {previous} to {function.function_taxonomy_id} for marketing title"
            )

    industry = _resolve_entry(registry, TaxonomyKind.INDUSTRY, output.industry_id, unresolved)

    # Location: individual first, firm headquarters otherwise
    location = output.location
    location_source = "individual"
    if location.is_empty and evidence.headquarters:
        location = parse_headquarters(evidence.headquarters)
        location_source = "headquarters"
        notes.append(f"Location taken from firm headquarters: {evidence.headquarters}")
    elif location.is_empty:
        location_source = "none"

    linkedin_url = _attribute_linkedin(output, identity, evidence, notes)

    confidence = clamp_confidence(output.confidence)
    intent = intent_signal_for(confidence)
    if output.intent_signal and output.intent_signal.strip().lower() != intent.value.lower():
        notes.append(f"Intent signal {output.intent_signal!r} replaced by {intent.value} from confidence {confidence}")

    return ResolutionIntel(
        standard_title=standard_title,
        job_level_id=job_level.job_level_id,
        function_taxonomy_id=function.function_taxonomy_id if function else None,
        industry_id=industry.industry_id if industry else None,
        location=location,
        location_source=location_source,
        linkedin_url=linkedin_url,
        confidence=confidence,
        intent_signal=intent,
        salutation=output.salutation,
        alternate_profile_url=output.alternate_profile_url,
        unresolved_ids=unresolved,
        governance_notes=notes,
    )


def _resolve_entry(registry: TaxonomyRegistry, kind: TaxonomyKind, taxonomy_id: Optional[str], unresolved: List[str]):
    if taxonomy_id is None:
        return None
    try:
        return registry.require(kind, taxonomy_id)
    except TaxonomyIdUnresolved as e:
        logger.warning("Data quality: %s; using default band", e)
        unresolved.append(f"{e.kind}:{e.taxonomy_id}")
        return None


def _attribute_linkedin(
    output: ClassifierOutput,
    identity: LeadIdentity,
    evidence: EvidenceBundle,
    notes: List[str],
) -> Optional[str]:
    if output.linkedin_url:
        candidate = canonical_linkedin_url(output.linkedin_url)
        if candidate is None:
            notes.append(f"LinkedIn URL {output.linkedin_url!r} is not a profile URL; discarded")
            return None
        candidates = [candidate]
        reported = output.linkedin_employer
    else:
        searchable = " ".join([f.url for f in evidence.fragments] + [evidence.raw_text])
        candidates = find_linkedin_urls(searchable)
        reported = None

    for url in candidates:
        if linkedin_employer_matches(url, identity.firm_name, evidence.fragments, reported):
            return url
        logger.info("LinkedIn URL %s discarded: current employer is not %s", url, identity.firm_name)
        notes.append(f"LinkedIn URL {url} discarded: no current employer match")
    return None


def _strip_code_fences(text: str) -> str:
    # Clean response (remove markdown code blocks if present)
    clean = text.strip()
    if clean.startswith("```"):
        clean = clean.split("```")[1]
        if clean.startswith("json"):
            clean = clean[4:]
    return clean.strip()
