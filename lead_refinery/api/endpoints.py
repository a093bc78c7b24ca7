"""
FastAPI Endpoints for the Lead Refinery
=======================================
Review surface for lead enrichment.

Base URL: http://localhost:8000

Endpoints:
- GET  /                              - API info
- GET  /api/health                    - Health check
- POST /api/leads/enrich              - Enrich a single lead
- POST /api/leads/enrich/batch        - Enrich multiple leads
- POST /api/leads/{raw_lead_id}/retry - Re-run a lead
- GET  /api/leads                     - Vault listing with completeness
- GET  /api/leads/{raw_lead_id}       - Get an enriched record
- GET  /api/jobs                      - Processing floor
- GET  /api/taxonomy                  - Taxonomy tables
- POST /api/location/country          - Country for a state/province
- GET  /api/stats                     - Get engine statistics
"""

import os
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Optional, Dict, Any
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from .. import __version__
from ..models.schemas import (
    LeadJob,
    EnrichRequest,
    BatchEnrichRequest,
    BatchEnrichResult,
    CountryLookupRequest,
    utcnow,
)
from ..engine import EnrichmentEngine
from ..exceptions import InsufficientEntitlement


# =============================================================================
# FastAPI App Initialization
# =============================================================================

app = FastAPI(
    title="Lead Refinery API",
    description="""
## Evidence-to-Taxonomy Lead Enrichment

Resolves minimal lead identities into governed institutional profiles.

### Pipeline:
- **Discovery**: public web evidence via Serper.dev
- **Resolution**: classifier constrained to closed taxonomies, governed by deterministic rules
- **Sanitization**: ZIP, region and verification policies
- **Assembly**: taxonomy cross-references with full provenance
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware - Allow all origins for frontend development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Engine Initialization
# =============================================================================

def get_default_engine() -> EnrichmentEngine:
    return EnrichmentEngine(
        llm_api_key=os.getenv("OPENROUTER_API_KEY"),
        search_api_key=os.getenv("SERPER_API_KEY"),
    )

default_engine = get_default_engine()


# =============================================================================
# Health & Info Endpoints
# =============================================================================

@app.get("/", tags=["Info"])
async def root():
    """API information and available endpoints"""
    return {
        "service": "Lead Refinery",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "endpoints": {
            "Enrich": "POST /api/leads/enrich",
            "Batch Enrich": "POST /api/leads/enrich/batch",
            "Retry": "POST /api/leads/{raw_lead_id}/retry",
            "Vault": "GET /api/leads",
            "Jobs": "GET /api/jobs",
            "Taxonomy": "GET /api/taxonomy",
            "Health": "GET /api/health",
        }
    }


@app.get("/api/health", tags=["Info"])
async def health_check():
    """Health check endpoint for monitoring"""
    return {
        "status": "healthy",
        "service": "Lead Refinery",
        "version": __version__,
        "timestamp": utcnow().isoformat(),
        "llm_configured": bool(default_engine.stage2.client),
        "search_configured": default_engine.stage1.configured,
        "taxonomy_version": default_engine.registry.version,
    }


# =============================================================================
# Enrichment Endpoints
# =============================================================================

@app.post("/api/leads/enrich", response_model=LeadJob, tags=["Enrichment"])
def enrich_lead(request: EnrichRequest):
    """
    Enrich a single lead.

    A resolution failure is reported in the job body (state "error") and the
    lead can be retried with the same raw_lead_id.
    """
    return default_engine.submit(request.lead, raw_lead_id=request.raw_lead_id)


@app.post("/api/leads/enrich/batch", response_model=BatchEnrichResult, tags=["Enrichment"])
def enrich_batch(request: BatchEnrichRequest):
    """Enrich multiple leads in parallel"""
    return default_engine.enrich_batch(request.leads, batch_id=request.batch_id)


@app.post("/api/leads/{raw_lead_id}/retry", response_model=LeadJob, tags=["Enrichment"])
def retry_lead(raw_lead_id: str):
    """Re-run a known lead; the stored record is replaced"""
    try:
        return default_engine.retry(raw_lead_id)
    except KeyError:
        raise HTTPException(status_code=404, detail="Lead not found")


# =============================================================================
# Review Endpoints
# =============================================================================

@app.get("/api/leads", tags=["Review"])
async def list_leads(
    min_completeness: int = Query(0, ge=0, le=100, description="Minimum completeness percentage"),
    verified_only: bool = Query(False, description="Only verified records"),
):
    """Vault listing, newest first"""
    rows = []
    for record in default_engine.store.fetch_all():
        completeness = record.completeness()
        if completeness < min_completeness:
            continue
        if verified_only and not record.is_verified:
            continue
        rows.append({
            "raw_lead_id": record.raw_lead_id,
            "job_id": record.job_id,
            "name": " ".join(filter(None, [record.first_name, record.last_name])),
            "firm_name": record.firm_name,
            "standard_title": record.standard_title,
            "job_level": record.job_level,
            "f0": record.f0,
            "industry": record.industry,
            "region": record.region,
            "intent_signal": record.intent_signal.value,
            "is_verified": record.is_verified,
            "completeness": completeness,
            "last_synced_at": record.last_synced_at.isoformat(),
        })
    return {"count": len(rows), "leads": rows}


@app.get("/api/leads/{raw_lead_id}", tags=["Review"])
async def get_lead(raw_lead_id: str):
    """Get an enriched record with its provenance"""
    record = default_engine.store.get(raw_lead_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Lead not found")
    return record


@app.get("/api/jobs", tags=["Review"])
async def list_jobs(state: Optional[str] = Query(None, description="Filter by job state")):
    """Processing floor, newest first"""
    jobs = default_engine.list_jobs()
    if state:
        jobs = [j for j in jobs if j.state.value == state]
    return {
        "count": len(jobs),
        "jobs": [
            {
                "raw_lead_id": j.raw_lead_id,
                "batch_id": j.batch_id,
                "name": j.input.full_name,
                "firm_name": j.input.firm_name,
                "state": j.state.value,
                "last_stage": j.last_stage.value,
                "progress": j.progress,
                "error": j.error,
                "created_at": j.created_at.isoformat(),
            }
            for j in jobs
        ],
    }


@app.get("/api/taxonomy", tags=["Review"])
async def get_taxonomy() -> Dict[str, Any]:
    """Taxonomy tables the resolver selects from"""
    return default_engine.registry.as_dict()


@app.post("/api/location/country", tags=["Review"])
def lookup_country(request: CountryLookupRequest):
    """Country for a state or province name"""
    country = default_engine.stage2.resolve_country(request.state)
    return {"state": request.state, "country": country}


# =============================================================================
# Statistics
# =============================================================================

@app.get("/api/stats", tags=["Info"])
async def get_stats():
    """Get engine statistics"""
    return {
        "default_engine": default_engine.get_stats(),
        "jobs": len(default_engine.jobs),
    }


# =============================================================================
# Error Handlers
# =============================================================================

@app.exception_handler(InsufficientEntitlement)
async def entitlement_exception_handler(request, exc):
    return JSONResponse(
        status_code=402,
        content={
            "error": "Insufficient entitlement",
            "detail": str(exc),
            "type": type(exc).__name__,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc),
            "type": type(exc).__name__,
        }
    )
