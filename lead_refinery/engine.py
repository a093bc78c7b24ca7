"""
Lead Refinery Engine - Main Orchestrator
========================================
Orchestrates the four-stage pipeline for one lead:
  Stage 1: Evidence Discovery → Stage 2: Identity Resolution →
  Stage 3: Field Sanitization → Stage 4: Record Assembly

Key behaviors:
- Discovery failure is not fatal; resolution continues on the declared title
- Resolution failure marks the job as error and leaves it retryable
- Records are upserted by raw_lead_id, so re-runs replace earlier results
- Batch processing runs independent leads in parallel
"""

import logging
import threading
import time
import uuid
from typing import Optional, List, Dict, Any, Callable
from concurrent.futures import ThreadPoolExecutor, as_completed

from .models.schemas import (
    LeadIdentity,
    LeadJob,
    JobState,
    JobStage,
    EnrichedRecord,
    EvidenceBundle,
    BatchEnrichResult,
    utcnow,
)
from .models.taxonomy import TaxonomyRegistry, create_default_registry
from .stages.stage1_discovery import EvidenceDiscoveryStage
from .stages.stage2_resolution import IdentityResolutionStage
from .stages.stage3_sanitizer import FieldSanitizerStage
from .stages.stage4_assembler import RecordAssemblerStage
from .store import LeadStore, InMemoryLeadStore
from .entitlement import EntitlementHook, AllowAllEntitlement
from .config.settings import PIPELINE_CONFIG
from .exceptions import DiscoveryUnavailable, ResolutionFailed, InsufficientEntitlement

logger = logging.getLogger(__name__)

StageCallback = Callable[[JobStage, int], None]


class EnrichmentEngine:
    """
    Main enrichment engine that orchestrates all four stages.
    """

    def __init__(
        self,
        registry: Optional[TaxonomyRegistry] = None,
        store: Optional[LeadStore] = None,
        entitlement: Optional[EntitlementHook] = None,
        llm_api_key: Optional[str] = None,
        llm_provider: Optional[str] = None,
        llm_client: Optional[Any] = None,
        search_api_key: Optional[str] = None,
        search_fn: Optional[Callable] = None,
        http_client: Optional[Any] = None,
    ):
        """
        Initialize the enrichment engine.

        Args:
            registry: Taxonomy registry (bundled defaults if not provided)
            store: Record store (in-memory if not provided)
            entitlement: Entitlement hook (allows everything if not provided)
            llm_api_key: API key for the classifier provider
            llm_provider: "openrouter", "openai" or "anthropic"
            llm_client: Preconfigured classifier client
            search_api_key: Serper.dev API key
            search_fn: Replacement search capability
            http_client: httpx client used for search
        """
        self.registry = registry or create_default_registry()
        self.store = store if store is not None else InMemoryLeadStore()
        self.entitlement = entitlement or AllowAllEntitlement()

        # Initialize stages
        self.stage1 = EvidenceDiscoveryStage(
            api_key=search_api_key,
            search_fn=search_fn,
            http_client=http_client,
        )
        self.stage2 = IdentityResolutionStage(
            self.registry,
            api_key=llm_api_key,
            provider=llm_provider,
            client=llm_client,
        )
        self.stage3 = FieldSanitizerStage()
        self.stage4 = RecordAssemblerStage(self.registry)

        # Processing floor
        self.jobs: Dict[str, LeadJob] = {}
        self._jobs_lock = threading.Lock()
        self._stats_lock = threading.Lock()

        # Track statistics
        self.reset_stats()

    def enrich_lead(
        self,
        identity: LeadIdentity,
        raw_lead_id: Optional[str] = None,
        on_stage: Optional[StageCallback] = None,
    ) -> EnrichedRecord:
        """
        Enrich a single lead through the four-stage pipeline.

        Args:
            identity: Lead identity
            raw_lead_id: Upsert key (generated when omitted)
            on_stage: Called with (stage, progress) as the pipeline advances

        Returns:
            The persisted EnrichedRecord

        Raises:
            ResolutionFailed: classifier unusable for this lead
            InsufficientEntitlement: rejected by the entitlement hook
        """
        start_time = time.time()
        raw_lead_id = raw_lead_id or new_raw_lead_id()
        self._bump("total_processed")

        def advance(stage: JobStage, progress: int):
            if on_stage:
                on_stage(stage, progress)

        self.entitlement.before_resolution(identity)

        # =====================================================================
        # STAGE 1: Evidence Discovery
        # =====================================================================
        advance(JobStage.PROCESSING_SERP, 20)
        try:
            evidence = self.stage1.process(identity)
        except DiscoveryUnavailable as e:
            logger.warning("Discovery unavailable for %s, continuing without evidence: %s", raw_lead_id, e)
            self._bump("discovery_unavailable")
            evidence = EvidenceBundle.empty(
                self.stage1.build_query(identity),
                f"Discovery unavailable: {e}",
            )

        # =====================================================================
        # STAGE 2: Identity Resolution
        # =====================================================================
        advance(JobStage.PROCESSING_AI, 60)
        try:
            result = self.stage2.process(identity, evidence)
        except ResolutionFailed as e:
            logger.error("Resolution failed for %s: %s", raw_lead_id, e)
            self._bump("resolution_failed")
            raise

        if result.rule_based:
            self._bump("rule_based")
        if result.reparsed:
            self._bump("reparsed")
        if result.validated.unresolved_ids:
            self._bump("unresolved_ids", len(result.validated.unresolved_ids))

        # =====================================================================
        # STAGE 3 & 4: Sanitize and Assemble
        # =====================================================================
        sanitized = self.stage3.process(result.validated)
        record = self.stage4.process(
            identity=identity,
            result=result,
            sanitized=sanitized,
            evidence=evidence,
            raw_lead_id=raw_lead_id,
        )

        self.entitlement.after_resolution(record)
        self.store.upsert(record)

        total_time = (time.time() - start_time) * 1000
        with self._stats_lock:
            self.stats["completed"] += 1
            self.stats["total_processing_time_ms"] += total_time

        logger.info(
            "Enriched %s as %s (rank %s, intent %s) in %.0fms",
            raw_lead_id,
            record.standard_title or "untitled",
            record.job_level,
            record.intent_signal.value,
            total_time,
        )
        return record

    # =========================================================================
    # Jobs
    # =========================================================================

    def submit(
        self,
        identity: LeadIdentity,
        raw_lead_id: Optional[str] = None,
        batch_id: str = "MANUAL",
    ) -> LeadJob:
        """Queue a lead and process it immediately"""
        job = LeadJob(
            raw_lead_id=raw_lead_id or new_raw_lead_id(),
            batch_id=batch_id,
            input=identity,
        )
        with self._jobs_lock:
            self.jobs[job.raw_lead_id] = job
        return self.process_job(job)

    def retry(self, raw_lead_id: str) -> LeadJob:
        """
        Re-run a known lead with the same raw_lead_id.

        Raises:
            KeyError: no job is known for raw_lead_id
        """
        with self._jobs_lock:
            job = self.jobs[raw_lead_id]
        return self.process_job(job)

    def process_job(self, job: LeadJob) -> LeadJob:
        """
        Drive a job through its states.

        queued -> running -> completed, or -> error on resolution failure.
        InsufficientEntitlement also marks the job as error and is re-raised.
        """
        job.state = JobState.RUNNING
        job.progress = 5
        job.error = None
        job.enriched = None
        job.completed_at = None

        def on_stage(stage: JobStage, progress: int):
            job.last_stage = stage
            job.progress = progress

        try:
            job.enriched = self.enrich_lead(job.input, job.raw_lead_id, on_stage=on_stage)
        except ResolutionFailed as e:
            self._fail(job, str(e))
            return job
        except InsufficientEntitlement as e:
            self._fail(job, str(e))
            raise
        except Exception as e:
            logger.exception("Unexpected failure processing %s", job.raw_lead_id)
            self._fail(job, f"Processing error: {str(e)[:200]}")
            raise

        job.state = JobState.COMPLETED
        job.last_stage = JobStage.COMPLETED
        job.progress = 100
        job.completed_at = utcnow()
        return job

    def list_jobs(self) -> List[LeadJob]:
        with self._jobs_lock:
            jobs = list(self.jobs.values())
        return sorted(jobs, key=lambda j: j.created_at, reverse=True)

    def enrich_batch(
        self,
        identities: List[LeadIdentity],
        batch_id: Optional[str] = None,
        max_workers: Optional[int] = None,
    ) -> BatchEnrichResult:
        """
        Enrich multiple leads in parallel.

        Args:
            identities: Leads to enrich
            batch_id: Batch label shared by the jobs
            max_workers: Number of parallel workers

        Returns:
            BatchEnrichResult with every job, in submission order
        """
        start_time = time.time()
        batch_id = batch_id or f"BATCH-{utcnow().strftime('%Y%m%d%H%M%S')}"
        max_workers = max_workers or PIPELINE_CONFIG.get("max_workers", 4)

        jobs = [
            LeadJob(raw_lead_id=new_raw_lead_id(), batch_id=batch_id, input=identity)
            for identity in identities
        ]
        with self._jobs_lock:
            for job in jobs:
                self.jobs[job.raw_lead_id] = job

        # Parallel processing
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(self.process_job, job): job for job in jobs}
            for future in as_completed(futures):
                try:
                    future.result()
                except Exception as e:
                    # Job already carries the error state
                    logger.warning("Batch %s: lead %s failed: %s", batch_id, futures[future].raw_lead_id, e)

        total_time = (time.time() - start_time) * 1000
        completed = sum(1 for j in jobs if j.state == JobState.COMPLETED)

        return BatchEnrichResult(
            processed=len(jobs),
            completed=completed,
            errored=len(jobs) - completed,
            processing_time_ms=round(total_time, 2),
            jobs=jobs,
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> Dict[str, Any]:
        """Get engine statistics"""
        with self._stats_lock:
            stats = self.stats.copy()
        if stats["total_processed"] > 0:
            stats["completion_rate"] = round(
                stats["completed"] / stats["total_processed"] * 100, 1
            )
            stats["discovery_failure_rate"] = round(
                stats["discovery_unavailable"] / stats["total_processed"] * 100, 1
            )
        if stats["completed"] > 0:
            stats["avg_processing_time_ms"] = round(
                stats["total_processing_time_ms"] / stats["completed"], 2
            )
        stats["stored_records"] = len(self.store.fetch_all())
        stats["classifier_configured"] = bool(self.stage2.client)
        stats["search_configured"] = self.stage1.configured
        return stats

    def reset_stats(self):
        """Reset engine statistics"""
        self.stats = {
            "total_processed": 0,
            "completed": 0,
            "errored": 0,
            "discovery_unavailable": 0,
            "resolution_failed": 0,
            "rule_based": 0,
            "reparsed": 0,
            "unresolved_ids": 0,
            "total_processing_time_ms": 0,
        }

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _bump(self, key: str, amount: int = 1):
        with self._stats_lock:
            self.stats[key] += amount

    def _fail(self, job: LeadJob, message: str):
        self._bump("errored")
        job.state = JobState.ERROR
        job.last_stage = JobStage.ERROR
        job.progress = 100
        job.error = message
        job.completed_at = utcnow()


def new_raw_lead_id() -> str:
    return f"LEAD-{uuid.uuid4().hex[:12].upper()}"

