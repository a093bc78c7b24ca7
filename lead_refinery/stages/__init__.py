# Enrichment stages module
from .stage1_discovery import EvidenceDiscoveryStage
from .stage2_resolution import IdentityResolutionStage, validate_resolution
from .stage3_sanitizer import FieldSanitizerStage
from .stage4_assembler import RecordAssemblerStage, generate_job_id
