"""
Pydantic schemas for the Lead Refinery
"""

from enum import Enum
from typing import List, Dict, Optional, Any
from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class IntentSignal(str, Enum):
    """Coarse intent label derived from resolution confidence"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class JobState(str, Enum):
    """Processing state of a lead job"""
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


class JobStage(str, Enum):
    """Last pipeline stage reached by a lead job"""
    QUEUED = "QUEUED"
    PROCESSING_SERP = "PROCESSING_SERP"
    PROCESSING_AI = "PROCESSING_AI"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"


# =============================================================================
# INPUT SCHEMAS
# =============================================================================

class LeadIdentity(BaseModel):
    """Identity facts submitted for enrichment"""
    email: str
    first_name: str
    last_name: str = ""
    firm_name: str
    declared_title: str = ""
    website: Optional[str] = None

    class Config:
        frozen = True

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.first_name.strip(), self.last_name.strip()]))


# =============================================================================
# EVIDENCE SCHEMAS
# =============================================================================

class EvidenceFragment(BaseModel):
    """A single ranked search result"""
    url: str
    snippet: str = ""
    title: Optional[str] = None


class EvidenceBundle(BaseModel):
    """Evidence gathered for one resolution attempt"""
    query: str
    fragments: List[EvidenceFragment] = Field(default_factory=list)
    raw_text: str = ""
    headquarters: Optional[str] = None
    notes: List[str] = Field(default_factory=list)

    @classmethod
    def empty(cls, query: str, note: Optional[str] = None) -> "EvidenceBundle":
        return cls(query=query, notes=[note] if note else [])

    @property
    def is_empty(self) -> bool:
        return not self.fragments and not self.raw_text.strip()


# =============================================================================
# RESOLUTION SCHEMAS
# =============================================================================

class Location(BaseModel):
    """Postal location as reported by the classifier"""
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip: Optional[str] = None

    @field_validator("city", "state", "country", "zip", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @property
    def is_empty(self) -> bool:
        return not any([self.city, self.state, self.country])


class ClassifierOutput(BaseModel):
    """Structural schema the classifier must return"""
    standard_title: str
    job_level_id: Optional[str]
    function_taxonomy_id: Optional[str] = None
    industry_id: Optional[str] = None
    location: Location = Field(default_factory=Location)
    linkedin_url: Optional[str] = None
    linkedin_employer: Optional[str] = None
    confidence: float = Field(..., ge=0, le=100)
    intent_signal: Optional[str] = None
    salutation: Optional[str] = None
    alternate_profile_url: Optional[str] = None

    class Config:
        extra = "ignore"

    @field_validator("job_level_id", "function_taxonomy_id", "industry_id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("location", mode="before")
    @classmethod
    def _null_location(cls, value):
        return value or {}


class ResolutionIntel(BaseModel):
    """Governed resolver output, before field sanitization"""
    standard_title: str
    job_level_id: str
    function_taxonomy_id: Optional[str] = None
    industry_id: Optional[str] = None
    location: Location = Field(default_factory=Location)
    location_source: str = "individual"
    linkedin_url: Optional[str] = None
    confidence: float = 0
    intent_signal: IntentSignal = IntentSignal.LOW
    salutation: Optional[str] = None
    alternate_profile_url: Optional[str] = None
    unresolved_ids: List[str] = Field(default_factory=list)
    governance_notes: List[str] = Field(default_factory=list)


class ResolutionResult(BaseModel):
    """Raw classifier payload paired with its validated interpretation"""
    raw: Dict[str, Any]
    validated: ResolutionIntel
    rule_based: bool = False
    reparsed: bool = False
    processing_time_ms: float = 0


class SanitizedFields(BaseModel):
    """Field-level normalization of a resolution"""
    standard_title: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    zip: str = ""
    region: str
    is_verified: bool = False
    phone: Optional[str] = None
    salutation: Optional[str] = None
    alternate_profile_url: Optional[str] = None


# =============================================================================
# OUTPUT SCHEMAS
# =============================================================================

class Provenance(BaseModel):
    """Audit trail embedded in every enriched record"""
    serp_query: str
    serp_results: List[EvidenceFragment] = Field(default_factory=list)
    ai_output: Dict[str, Any] = Field(default_factory=dict)
    discovery_logic: Optional[str] = None
    governance_notes: List[str] = Field(default_factory=list)


class EnrichedRecord(BaseModel):
    """Final persisted enrichment entity, upserted by raw_lead_id"""
    job_id: str
    raw_lead_id: str

    # Identity
    email: str
    first_name: str
    last_name: str
    firm_name: str
    website: Optional[str] = None

    # Title & taxonomy
    standard_title: str
    salutation: Optional[str] = None
    job_level: int
    job_level_id: str
    job_level_label: str
    job_role: Optional[str] = None
    function_taxonomy_id: Optional[str] = None
    f0: Optional[str] = None
    f1: Optional[str] = None
    f2: Optional[str] = None
    vertical: Optional[str] = None
    vertical_id: Optional[str] = None
    industry: Optional[str] = None
    industry_id: Optional[str] = None

    # Location
    city: Optional[str] = None
    state: Optional[str] = None
    zip: str = ""
    country: Optional[str] = None
    region: str

    # Contact
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    alternate_profile_url: Optional[str] = None

    # Signals
    intent_score: float = 0
    intent_signal: IntentSignal
    is_verified: bool = False

    # Metadata
    tenant_id: str
    project_id: str
    resolution_status: str = "completed"
    resolution_error: Optional[str] = None
    created_at: datetime
    last_synced_at: datetime

    raw_evidence_json: Provenance

    def completeness(self) -> int:
        """Percentage of populated fields, ignoring provenance"""
        excluded = {"raw_evidence_json"}
        values = [v for k, v in self.model_dump().items() if k not in excluded]
        populated = [v for v in values if v is not None and v != ""]
        return round(len(populated) / len(values) * 100)


class LeadJob(BaseModel):
    """A lead on the processing floor"""
    raw_lead_id: str
    batch_id: str = "MANUAL"
    input: LeadIdentity
    state: JobState = JobState.QUEUED
    progress: int = 0
    last_stage: JobStage = JobStage.QUEUED
    enriched: Optional[EnrichedRecord] = None
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None


# =============================================================================
# API REQUEST SCHEMAS
# =============================================================================

class EnrichRequest(BaseModel):
    """Request to enrich a single lead"""
    lead: LeadIdentity
    raw_lead_id: Optional[str] = None


class BatchEnrichRequest(BaseModel):
    """Request to enrich multiple leads"""
    leads: List[LeadIdentity]
    batch_id: Optional[str] = None


class BatchEnrichResult(BaseModel):
    """Result from batch enrichment"""
    processed: int
    completed: int
    errored: int
    processing_time_ms: float
    jobs: List[LeadJob]


class CountryLookupRequest(BaseModel):
    """Request to resolve the country of a state or province"""
    state: str
