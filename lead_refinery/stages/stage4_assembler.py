"""
Stage 4: Record Assembly
========================
Merges sanitized fields, taxonomy cross-references and provenance into the
final enriched record. No I/O happens here.
"""

import secrets
import string
from datetime import datetime
from typing import Optional

from ..models.schemas import (
    LeadIdentity,
    EvidenceBundle,
    ResolutionResult,
    SanitizedFields,
    EnrichedRecord,
    Provenance,
    utcnow,
)
from ..models.taxonomy import TaxonomyRegistry, TaxonomyKind
from ..config.settings import PIPELINE_CONFIG

_JOB_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_job_id(
    prefix: Optional[str] = None,
    length: Optional[int] = None,
) -> str:
    """Job id: fixed prefix plus random uppercase alphanumerics, e.g. INFY-REQ-7K2QD"""
    prefix = prefix if prefix is not None else PIPELINE_CONFIG.get("job_id_prefix", "INFY-REQ-")
    length = length or PIPELINE_CONFIG.get("job_id_length", 5)
    return prefix + "".join(secrets.choice(_JOB_ID_ALPHABET) for _ in range(length))


class RecordAssemblerStage:
    """
    Stage 4: Assemble the persisted record.
    """

    def __init__(
        self,
        registry: TaxonomyRegistry,
        tenant_id: Optional[str] = None,
        project_id: Optional[str] = None,
    ):
        self.registry = registry
        self.tenant_id = tenant_id or PIPELINE_CONFIG.get("tenant_id", "INSTITUTIONAL-DEFAULT")
        self.project_id = project_id or PIPELINE_CONFIG.get("project_id", "REFINERY-MAIN")

    def process(
        self,
        identity: LeadIdentity,
        result: ResolutionResult,
        sanitized: SanitizedFields,
        evidence: EvidenceBundle,
        raw_lead_id: str,
        now: Optional[datetime] = None,
        job_id: Optional[str] = None,
    ) -> EnrichedRecord:
        """
        Assemble an enriched record.

        Args:
            identity: Submitted lead identity
            result: Tagged resolution result from Stage 2
            sanitized: Sanitized fields from Stage 3
            evidence: Evidence bundle from Stage 1
            raw_lead_id: Upsert key of the lead
            now: Resolution time (defaults to the current UTC time)
            job_id: Explicit job id (generated when omitted)

        Returns:
            EnrichedRecord
        """
        now = now or utcnow()
        intel = result.validated

        # Taxonomy display fields always come from the selected rows
        level = self.registry.require(TaxonomyKind.JOB_LEVEL, intel.job_level_id)
        function = self.registry.lookup(TaxonomyKind.FUNCTION, intel.function_taxonomy_id)
        industry = self.registry.lookup(TaxonomyKind.INDUSTRY, intel.industry_id)

        discovery_logic = "; ".join(evidence.notes) or None
        if result.rule_based:
            discovery_logic = "; ".join(filter(None, [discovery_logic, "Rule-based resolution (no classifier configured)"]))
        if result.reparsed:
            discovery_logic = "; ".join(filter(None, [discovery_logic, "Classifier output repaired once"]))

        return EnrichedRecord(
            job_id=job_id or generate_job_id(),
            raw_lead_id=raw_lead_id,
            email=identity.email,
            first_name=identity.first_name,
            last_name=identity.last_name,
            firm_name=identity.firm_name,
            website=identity.website,
            standard_title=sanitized.standard_title,
            salutation=sanitized.salutation,
            job_level=level.rank,
            job_level_id=level.job_level_id,
            job_level_label=level.label,
            job_role=function.job_role if function else None,
            function_taxonomy_id=function.function_taxonomy_id if function else None,
            f0=function.f0 if function else None,
            f1=function.f1 if function else None,
            f2=function.f2 if function else None,
            vertical=industry.vertical_code if industry else None,
            vertical_id=industry.vertical_id if industry else None,
            industry=industry.industry_name if industry else None,
            industry_id=industry.industry_id if industry else None,
            city=sanitized.city,
            state=sanitized.state,
            zip=sanitized.zip,
            country=sanitized.country,
            region=sanitized.region,
            phone=sanitized.phone,
            linkedin_url=intel.linkedin_url,
            alternate_profile_url=sanitized.alternate_profile_url,
            intent_score=float(intel.confidence),
            intent_signal=intel.intent_signal,
            is_verified=sanitized.is_verified,
            tenant_id=self.tenant_id,
            project_id=self.project_id,
            resolution_status="completed",
            resolution_error=None,
            created_at=now,
            last_synced_at=now,
            raw_evidence_json=Provenance(
                serp_query=evidence.query,
                serp_results=list(evidence.fragments),
                ai_output=dict(result.raw),
                discovery_logic=discovery_logic,
                governance_notes=list(intel.governance_notes),
            ),
        )
