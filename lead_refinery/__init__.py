"""
Lead Refinery - Evidence-to-Taxonomy Enrichment
===============================================
A four-stage pipeline that resolves minimal lead identities into governed
institutional profiles:
  Stage 1: Evidence Discovery (web search)
  Stage 2: Identity Resolution (classifier + governance rules)
  Stage 3: Field Sanitization (ZIP, region, verification)
  Stage 4: Record Assembly (taxonomy cross-references + provenance)
"""

__version__ = "1.0.0"
__author__ = "Lead Refinery Team"
