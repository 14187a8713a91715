"""Tests for the JSON-backed knowledge store and the retriever."""

import json

import pytest

from clinical_validation.core.enums import KnowledgeDomain
from clinical_validation.core.exceptions import DatasetLoadError, KnowledgeLookupFailure
from clinical_validation.core.models import CodeMapping, DiagnosisCode, ProcedureCode
from clinical_validation.extraction import extract_code_tokens, extract_keywords
from clinical_validation.knowledge import FileBasedKnowledgeStore, KnowledgeRetriever, KnowledgeStore


class TestFileBasedKnowledgeStore:
    def test_satisfies_protocol(self, file_store):
        assert isinstance(file_store, KnowledgeStore)

    def test_counts(self, file_store):
        assert file_store.count(KnowledgeDomain.DIAGNOSIS) == 15
        assert file_store.count(KnowledgeDomain.PROCEDURE) == 16
        assert file_store.count(KnowledgeDomain.MAPPING) == 24
        assert file_store.count(KnowledgeDomain.DOCUMENT) == 5

    def test_get_by_code_normalizes_input(self, file_store):
        entry = file_store.get_by_code(KnowledgeDomain.DIAGNOSIS, "  m54.16 ")
        assert isinstance(entry, DiagnosisCode)
        assert entry.code == "M54.16"
        assert entry.description == "Radiculopathy, lumbar region"

    def test_get_by_code_procedure(self, file_store):
        entry = file_store.get_by_code(KnowledgeDomain.PROCEDURE, "73221")
        assert isinstance(entry, ProcedureCode)
        assert entry.modality == "MRI"
        assert entry.contrast_required is False

    def test_get_by_code_unknown_and_mapping_domain(self, file_store):
        assert file_store.get_by_code(KnowledgeDomain.DIAGNOSIS, "Z99.999") is None
        assert file_store.get_by_code(KnowledgeDomain.MAPPING, "M54.16") is None

    def test_get_by_category(self, file_store):
        respiratory = file_store.get_by_category(KnowledgeDomain.DIAGNOSIS, "respiratory")
        assert sorted(dx.code for dx in respiratory) == ["J18.9", "R91.1"]

    def test_get_by_category_matches_procedure_modality(self, file_store):
        mri = file_store.get_by_category(KnowledgeDomain.PROCEDURE, "mri")
        assert sorted(px.code for px in mri) == ["70551", "72148", "73221", "73721"]

    def test_get_mapping(self, file_store):
        mapping = file_store.get_mapping("m54.16", "72148")
        assert isinstance(mapping, CodeMapping)
        assert mapping.appropriateness_level == 8
        assert file_store.get_mapping("M54.16", "77080") is None

    def test_get_all_mappings_sorted_best_first(self, file_store):
        mappings = file_store.get_all_mappings_for_code("M75.100")
        assert [m.procedure_code for m in mappings] == ["73221", "76882", "73030"]
        assert [m.appropriateness_level for m in mappings] == [8, 7, 6]

    def test_search_is_case_insensitive_substring(self, file_store):
        results = file_store.search(KnowledgeDomain.PROCEDURE, "SHOULDER")
        assert sorted(px.code for px in results) == ["73030", "73221", "76882"]

    def test_search_respects_max_results(self, file_store):
        assert len(file_store.search(KnowledgeDomain.DIAGNOSIS, "pain", max_results=2)) == 2

    def test_search_blank_keyword(self, file_store):
        assert file_store.search(KnowledgeDomain.DIAGNOSIS, "   ") == []

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(DatasetLoadError) as exc_info:
            FileBasedKnowledgeStore(str(tmp_path / "missing.json"))
        assert isinstance(exc_info.value, KnowledgeLookupFailure)

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(DatasetLoadError):
            FileBasedKnowledgeStore(str(path))

    def test_accepts_database_column_names(self, tmp_path):
        path = tmp_path / "columns.json"
        path.write_text(
            json.dumps(
                {
                    "diagnosis_codes": [{"icd10_code": "R05.9", "description": "Cough"}],
                    "mappings": [
                        {
                            "icd10_code": "R05.9",
                            "cpt_code": "71046",
                            "appropriateness": 8,
                            "evidence_source": "Moderate",
                            "refined_justification": "Persistent cough",
                        }
                    ],
                }
            ),
            encoding="utf-8",
        )
        store = FileBasedKnowledgeStore(str(path))
        assert store.get_by_code(KnowledgeDomain.DIAGNOSIS, "r05.9").description == "Cough"
        assert store.get_mapping("R05.9", "71046").justification == "Persistent cough"


class TestKnowledgeRetriever:
    def test_gathers_shoulder_context(self, file_store):
        text = "Right shoulder pain with weakness, suspected rotator cuff tear. MRI shoulder."
        context = KnowledgeRetriever(file_store).gather(extract_keywords(text))

        dx_codes = [dx.code for dx in context.diagnosis_codes]
        px_codes = [px.code for px in context.procedure_codes]
        assert "M75.100" in dx_codes
        assert "73221" in px_codes
        assert any(m.procedure_code == "73221" for m in context.mappings)
        assert not context.is_empty

    def test_explicit_codes_come_first(self, file_store):
        text = "Lumbar radiculopathy M54.16, request 72148"
        context = KnowledgeRetriever(file_store).gather(
            extract_keywords(text), extract_code_tokens(text)
        )
        assert context.diagnosis_codes[0].code == "M54.16"
        assert context.procedure_codes[0].code == "72148"
        assert [doc.code for doc in context.documents][0] == "M54.16"

    def test_limits_are_applied(self, file_store):
        retriever = KnowledgeRetriever(file_store, max_diagnoses=2, max_procedures=1)
        context = retriever.gather(["pain", "chest", "shoulder", "knee", "x-ray"])
        assert len(context.diagnosis_codes) <= 2
        assert len(context.procedure_codes) <= 1

    def test_no_keywords_gives_empty_context(self, file_store):
        assert KnowledgeRetriever(file_store).gather([]).is_empty

    def test_store_failure_gives_empty_context(self):
        class BrokenStore:
            def search(self, *args, **kwargs):
                raise RuntimeError("down")

            def get_by_code(self, *args, **kwargs):
                raise RuntimeError("down")

        context = KnowledgeRetriever(BrokenStore()).gather(["shoulder", "mri"], ["73221"])
        assert context.is_empty
