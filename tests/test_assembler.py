"""
Tests for Stage 4: Record Assembly.
"""

import re
from datetime import datetime, timezone

from lead_refinery.models.schemas import ClassifierOutput, LeadIdentity, ResolutionResult
from lead_refinery.stages.stage2_resolution import validate_resolution
from lead_refinery.stages.stage3_sanitizer import FieldSanitizerStage
from lead_refinery.stages.stage4_assembler import RecordAssemblerStage, generate_job_id

from conftest import classifier_payload


def assemble(registry, identity, evidence, now=None, **overrides):
    payload = classifier_payload(**overrides)
    intel = validate_resolution(ClassifierOutput.model_validate(payload), identity, evidence, registry)
    result = ResolutionResult(raw=payload, validated=intel)
    sanitized = FieldSanitizerStage().process(intel)
    return RecordAssemblerStage(registry, tenant_id="T-1", project_id="P-1").process(
        identity=identity,
        result=result,
        sanitized=sanitized,
        evidence=evidence,
        raw_lead_id="LEAD-1",
        now=now,
    )


class TestJobId:

    def test_format(self):
        for _ in range(20):
            assert re.match(r"^INFY-REQ-[A-Z0-9]{5}$", generate_job_id())

    def test_custom_prefix(self):
        assert generate_job_id(prefix="X-", length=3).startswith("X-")
        assert len(generate_job_id(prefix="X-", length=3)) == 5


class TestAssembly:

    def test_taxonomy_fields_from_selected_rows(self, registry, jane, acme_evidence):
        record = assemble(registry, jane, acme_evidence, industry_id="IND010")

        assert (record.job_level, record.job_level_id, record.job_level_label) == (2, "L2", "Senior Leadership")
        assert (record.f0, record.f1, record.f2) == ("Marketing", "Digital Marketing", "SEO")
        assert registry.contains_function_triple(record.f0, record.f1, record.f2)
        assert record.job_role == "Business"
        assert (record.vertical, record.vertical_id, record.industry) == ("FS", "V04", "Financial Services")

    def test_missing_function_and_industry(self, registry, empty_evidence):
        clerk = LeadIdentity(email="c@acme.com", first_name="Cy", firm_name="Acme Corp", declared_title="Clerk")
        record = assemble(
            registry, clerk, empty_evidence,
            standard_title="Clerk", function_taxonomy_id=None, industry_id=None,
        )
        assert record.job_level == 4
        assert record.f0 is None and record.f1 is None and record.f2 is None
        assert record.industry is None and record.vertical is None

    def test_timestamps_and_metadata(self, registry, jane, acme_evidence):
        now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
        record = assemble(registry, jane, acme_evidence, now=now)

        assert record.created_at == record.last_synced_at == now
        assert record.tenant_id == "T-1"
        assert record.project_id == "P-1"
        assert record.raw_lead_id == "LEAD-1"
        assert record.resolution_status == "completed"

    def test_signals(self, registry, jane, acme_evidence):
        record = assemble(registry, jane, acme_evidence, confidence=90)
        assert record.intent_score == 90.0
        assert record.intent_signal.value == "High"
        assert record.is_verified

    def test_provenance(self, registry, jane, acme_evidence):
        record = assemble(registry, jane, acme_evidence, job_level_id="L4")
        provenance = record.raw_evidence_json

        assert provenance.serp_query == acme_evidence.query
        assert len(provenance.serp_results) == 2
        assert provenance.ai_output["job_level_id"] == "L4"
        assert any("rank 4 to rank 2" in note for note in provenance.governance_notes)

    def test_completeness(self, registry, jane, acme_evidence):
        record = assemble(registry, jane, acme_evidence)
        score = record.completeness()
        assert 0 < score < 100
        # phone is never populated
        assert record.phone is None
