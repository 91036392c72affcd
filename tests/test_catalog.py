import json

import pytest

from edusoluce.domain.scoring import remediation_key
from edusoluce.infrastructure.catalog import ContentCatalog, load_catalog
from edusoluce.infrastructure.exceptions import AssessmentNotFoundError, CatalogIntegrityError
from factories import make_area, make_definition


class TestBundledCatalog:
    def test_roles_in_display_order(self, catalog):
        assert catalog.roles() == ("administrator", "teacher", "it-staff", "student")

    def test_every_role_has_assessments(self, catalog):
        counts = {role: len(catalog.get_assessments_by_role(role)) for role in catalog.roles()}
        assert counts == {"administrator": 4, "teacher": 4, "it-staff": 3, "student": 3}

    def test_every_area_has_five_levels_and_upgrade_guidance(self, catalog):
        for assessment in catalog.assessments:
            assert assessment.areas, assessment.id
            for area in assessment.areas:
                assert len(area.states) == 5, area.id
                for level in range(1, 5):
                    assert remediation_key(level) in area.remediation_actions, area.id

    def test_question_answers_within_options(self, catalog):
        for assessment in catalog.assessments:
            for question in catalog.get_questions_for_assessment(assessment.id):
                assert 0 <= question.correct_answer < len(question.options)
                assert len(question.options) >= 2
                assert question.points > 0

    def test_question_banks_are_attached_to_areas(self, catalog):
        definition = catalog.get_assessment("ferpa-classroom-teachers")
        area = definition.area("education-records-understanding")
        assert [q.id for q in area.questions] == ["eru-q1", "eru-q2"]
        assert catalog.get_questions_for_area(area.id) == area.questions

    def test_questions_for_assessment_in_area_order(self, catalog):
        questions = catalog.get_questions_for_assessment("ferpa-fundamentals-administrators")
        assert [q.id for q in questions] == ["erm-q1", "erm-q2", "erm-q3", "dip-q1", "dip-q2"]

    def test_area_without_questions_returns_empty(self, catalog):
        assert catalog.get_questions_for_area("staff-training-awareness") == ()
        assert catalog.get_questions_for_area("no-such-area") == ()

    def test_filter_by_regulation(self, catalog):
        ferpa = catalog.get_assessments_by_role("teacher", regulation="ferpa")
        coppa = catalog.get_assessments_by_role("teacher", regulation="coppa")
        assert [a.id for a in ferpa] == ["ferpa-classroom-teachers"]
        assert [a.id for a in coppa] == ["coppa-classroom-apps"]

    def test_unknown_role_has_no_assessments(self, catalog):
        assert catalog.get_assessments_by_role("parent") == ()

    def test_unknown_assessment(self, catalog):
        with pytest.raises(AssessmentNotFoundError):
            catalog.get_assessment("no-such-assessment")

    def test_assessment_of_another_role(self, catalog):
        with pytest.raises(AssessmentNotFoundError):
            catalog.get_assessment("ferpa-classroom-teachers", role="student")

    def test_catalog_is_read_only(self, catalog):
        with pytest.raises(TypeError):
            catalog._assessments["new"] = None  # type: ignore[index]


class TestCatalogLoading:
    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogIntegrityError) as exc_info:
            load_catalog(tmp_path / "missing.json")
        assert exc_info.value.source.endswith("missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CatalogIntegrityError, match="not valid JSON"):
            load_catalog(path)

    def test_integrity_violation_is_fatal(self, tmp_path):
        path = tmp_path / "catalog.json"
        path.write_text(
            json.dumps(
                {
                    "assessments": [
                        {
                            "id": "broken",
                            "title": "Broken",
                            "role": "teacher",
                            "estimated_minutes": 5,
                            "areas": [
                                {
                                    "id": "short",
                                    "title": "Short",
                                    "current_states": [
                                        {"level": "L1", "percentage": "0-20%", "description": "d"}
                                    ],
                                }
                            ],
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )
        with pytest.raises(CatalogIntegrityError) as exc_info:
            load_catalog(path)
        assert exc_info.value.details["errors"]

    def test_duplicate_assessment_ids(self):
        definition = make_definition(make_area("a"))
        with pytest.raises(CatalogIntegrityError):
            ContentCatalog([definition, definition])

    def test_explicit_construction(self):
        catalog = ContentCatalog([make_definition(make_area("a"), assessment_id="custom")])
        assert "custom" in catalog
        assert len(catalog) == 1
        assert catalog.roles() == ("teacher",)
