"""
Taxonomy Reference Models
"""

import json
import logging
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import List, Dict, Optional, Any, Tuple, Union

from pydantic import BaseModel, Field, ValidationError

from ..config.settings import DEFAULT_TAXONOMY, TAXONOMY_VERSION, PIPELINE_CONFIG
from ..exceptions import TaxonomyConfigurationError, TaxonomyIdUnresolved

logger = logging.getLogger(__name__)


class TaxonomyKind(str, Enum):
    """The three closed universes a lead is resolved against"""
    JOB_LEVEL = "job_level"
    FUNCTION = "function"
    INDUSTRY = "industry"


class JobLevel(BaseModel):
    """Seniority band; rank 1 is the most senior"""
    job_level_id: str
    rank: int = Field(..., ge=1, le=4)
    label: str
    title_pattern: Optional[str] = None

    class Config:
        frozen = True


class FunctionTaxon(BaseModel):
    """One function row; f0/f1/f2 are only ever read together"""
    function_taxonomy_id: str
    job_role: str
    f0: str
    f1: str
    f2: Optional[str] = None

    class Config:
        frozen = True

    @property
    def triple(self) -> Tuple[str, str, Optional[str]]:
        return (self.f0, self.f1, self.f2)


class Industry(BaseModel):
    """Industry row with its vertical cross-reference"""
    industry_id: str
    vertical_id: str
    vertical_code: str
    industry_name: str

    class Config:
        frozen = True


TaxonomyEntry = Union[JobLevel, FunctionTaxon, Industry]


class TaxonomyRegistry:
    """
    Read-only, in-memory taxonomy tables.

    Built once at startup and shared by reference. The registry validates
    selections; it never decides which entry a lead belongs to.
    """

    def __init__(
        self,
        job_levels: List[JobLevel],
        functions: List[FunctionTaxon],
        industries: List[Industry],
        version: str = TAXONOMY_VERSION,
    ):
        self.version = version
        self._job_levels = tuple(job_levels)
        self._functions = tuple(functions)
        self._industries = tuple(industries)

        self._index = MappingProxyType({
            TaxonomyKind.JOB_LEVEL: self._build_index(self._job_levels, "job_level_id"),
            TaxonomyKind.FUNCTION: self._build_index(self._functions, "function_taxonomy_id"),
            TaxonomyKind.INDUSTRY: self._build_index(self._industries, "industry_id"),
        })

        ranks = sorted(level.rank for level in self._job_levels)
        if ranks != [1, 2, 3, 4]:
            raise TaxonomyConfigurationError(
                f"Job levels must define ranks 1-4 exactly once, got {ranks}"
            )
        self._by_rank = MappingProxyType({level.rank: level for level in self._job_levels})
        self._triples = frozenset(row.triple for row in self._functions)

    @staticmethod
    def _build_index(entries, id_field: str) -> MappingProxyType:
        index: Dict[str, Any] = {}
        for entry in entries:
            key = getattr(entry, id_field)
            if key in index:
                raise TaxonomyConfigurationError(f"Duplicate taxonomy id: {key}")
            index[key] = entry
        return MappingProxyType(index)

    # -------------------------------------------------------------------------
    # Enumerations
    # -------------------------------------------------------------------------

    @property
    def job_levels(self) -> Tuple[JobLevel, ...]:
        return self._job_levels

    @property
    def functions(self) -> Tuple[FunctionTaxon, ...]:
        return self._functions

    @property
    def industries(self) -> Tuple[Industry, ...]:
        return self._industries

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def lookup(self, kind: TaxonomyKind, taxonomy_id: Optional[str]) -> Optional[TaxonomyEntry]:
        """Return the entry for an id, or None when it is not registered"""
        if not taxonomy_id:
            return None
        return self._index[TaxonomyKind(kind)].get(taxonomy_id)

    def require(self, kind: TaxonomyKind, taxonomy_id: Optional[str]) -> TaxonomyEntry:
        """Return the entry for an id or raise TaxonomyIdUnresolved"""
        entry = self.lookup(kind, taxonomy_id)
        if entry is None:
            raise TaxonomyIdUnresolved(TaxonomyKind(kind).value, taxonomy_id)
        return entry

    def level_for_rank(self, rank: int) -> JobLevel:
        return self._by_rank[rank]

    def functions_with_f0(self, f0: str) -> List[FunctionTaxon]:
        return [row for row in self._functions if row.f0.lower() == f0.lower()]

    def contains_function_triple(self, f0: Optional[str], f1: Optional[str], f2: Optional[str]) -> bool:
        return (f0, f1, f2) in self._triples

    def as_dict(self) -> Dict[str, Any]:
        """Serializable view used for prompts and the API"""
        return {
            "version": self.version,
            "job_levels": [level.model_dump() for level in self._job_levels],
            "functions": [row.model_dump() for row in self._functions],
            "industries": [row.model_dump() for row in self._industries],
        }


def build_registry(data: Dict[str, Any], version: Optional[str] = None) -> TaxonomyRegistry:
    """
    Build a registry from plain taxonomy tables.

    Args:
        data: Mapping with "job_levels", "functions" and "industries" lists
        version: Version stamp (falls back to data["version"])

    Returns:
        TaxonomyRegistry
    """
    try:
        job_levels = [JobLevel(**row) for row in data["job_levels"]]
        functions = [FunctionTaxon(**row) for row in data["functions"]]
        industries = [Industry(**row) for row in data["industries"]]
    except (KeyError, TypeError, ValidationError) as e:
        raise TaxonomyConfigurationError(f"Invalid taxonomy tables: {e}") from e

    return TaxonomyRegistry(
        job_levels=job_levels,
        functions=functions,
        industries=industries,
        version=version or data.get("version", TAXONOMY_VERSION),
    )


def load_registry(path: Union[str, Path]) -> TaxonomyRegistry:
    """Load a registry from a JSON file"""
    file_path = Path(path)
    if not file_path.exists():
        raise TaxonomyConfigurationError(f"Taxonomy file '{file_path}' was not found")
    try:
        data = json.loads(file_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise TaxonomyConfigurationError(f"Taxonomy file '{file_path}' is not valid JSON: {e}") from e
    logger.info("Loaded taxonomy from %s", file_path)
    return build_registry(data)


def create_default_registry(path: Optional[str] = None) -> TaxonomyRegistry:
    """
    Factory function for the process-wide registry.

    Uses the JSON file named by ``path`` (or LEAD_REFINERY_TAXONOMY_PATH)
    when set, otherwise the bundled default tables.
    """
    path = path or PIPELINE_CONFIG.get("taxonomy_path")
    if path:
        return load_registry(path)
    return build_registry(DEFAULT_TAXONOMY)
