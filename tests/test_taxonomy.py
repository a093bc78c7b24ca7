"""
Tests for the taxonomy registry.
"""

import copy
import json

import pytest
from pydantic import ValidationError

from lead_refinery.config.settings import DEFAULT_TAXONOMY
from lead_refinery.exceptions import TaxonomyConfigurationError, TaxonomyIdUnresolved
from lead_refinery.models.taxonomy import (
    TaxonomyKind,
    build_registry,
    load_registry,
    create_default_registry,
)


class TestLookups:

    def test_lookup_known_ids(self, registry):
        assert registry.lookup(TaxonomyKind.JOB_LEVEL, "L2").rank == 2
        assert registry.lookup(TaxonomyKind.FUNCTION, "FT004").f0 == "Marketing"
        assert registry.lookup("industry", "IND010").vertical_code == "FS"

    def test_lookup_unknown_id_returns_none(self, registry):
        assert registry.lookup(TaxonomyKind.FUNCTION, "FT999") is None
        assert registry.lookup(TaxonomyKind.INDUSTRY, None) is None

    def test_require_unknown_id_raises(self, registry):
        with pytest.raises(TaxonomyIdUnresolved) as exc_info:
            registry.require(TaxonomyKind.JOB_LEVEL, "bogus-id")
        assert exc_info.value.kind == "job_level"
        assert exc_info.value.taxonomy_id == "bogus-id"

    def test_level_for_rank(self, registry):
        assert registry.level_for_rank(1).job_level_id == "L1"
        assert registry.level_for_rank(4).job_level_id == "L4"

    def test_functions_with_f0(self, registry):
        rows = registry.functions_with_f0("information technology")
        assert [r.function_taxonomy_id for r in rows] == ["FT001", "FT002"]

    def test_function_triples_come_from_single_rows(self, registry):
        assert registry.contains_function_triple("Marketing", "Digital Marketing", "SEO")
        assert not registry.contains_function_triple("Marketing", "Channel Sales", "SEO")


class TestImmutability:

    def test_enumerations_are_tuples(self, registry):
        assert isinstance(registry.job_levels, tuple)
        assert isinstance(registry.functions, tuple)
        assert isinstance(registry.industries, tuple)

    def test_entries_are_frozen(self, registry):
        row = registry.lookup(TaxonomyKind.FUNCTION, "FT004")
        with pytest.raises(ValidationError):
            row.f0 = "Sales"

    def test_as_dict_does_not_leak_state(self, registry):
        view = registry.as_dict()
        view["functions"].clear()
        assert len(registry.functions) == 7


class TestConstruction:

    def test_default_registry(self):
        registry = create_default_registry()
        assert registry.version == "2025.1"
        assert len(registry.industries) == 14

    def test_duplicate_rank_rejected(self):
        data = copy.deepcopy(DEFAULT_TAXONOMY)
        data["job_levels"][3]["rank"] = 3
        with pytest.raises(TaxonomyConfigurationError):
            build_registry(data)

    def test_duplicate_id_rejected(self):
        data = copy.deepcopy(DEFAULT_TAXONOMY)
        data["functions"][1]["function_taxonomy_id"] = "FT001"
        with pytest.raises(TaxonomyConfigurationError):
            build_registry(data)

    def test_missing_table_rejected(self):
        data = copy.deepcopy(DEFAULT_TAXONOMY)
        del data["industries"]
        with pytest.raises(TaxonomyConfigurationError):
            build_registry(data)

    def test_load_from_json_file(self, tmp_path):
        data = copy.deepcopy(DEFAULT_TAXONOMY)
        data["version"] = "2026.2"
        path = tmp_path / "taxonomy.json"
        path.write_text(json.dumps(data), encoding="utf-8")

        registry = load_registry(path)
        assert registry.version == "2026.2"
        assert registry.lookup(TaxonomyKind.JOB_LEVEL, "L3").label == "Senior Management"

    def test_missing_file_rejected(self, tmp_path):
        with pytest.raises(TaxonomyConfigurationError):
            load_registry(tmp_path / "absent.json")

    def test_invalid_json_rejected(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(TaxonomyConfigurationError):
            load_registry(path)
