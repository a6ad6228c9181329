from __future__ import annotations

import sqlite3

import pytest

from impact_survey.analysis.catalog import QuestionCatalogResolver, resolve_question_catalog
from impact_survey.app.errors import NotFoundError
from impact_survey.db.models import (
    Answer,
    EntityRef,
    FullSurveyResponse,
    HostEntity,
    Opportunity,
    QuestionStructure,
)
from impact_survey.db.repository import ANSWER_COLUMNS


def test_resolver_orders_by_order_index(seeded_repo):
    questions = resolve_question_catalog(seeded_repo, "Clean Water")
    assert [q.id for q in questions] == [3, 1, 2]
    assert questions[0] == QuestionStructure(3, "Confidence", True, True)
    assert questions[2].initial is False and questions[2].final is False


def test_resolver_breaks_ties_by_id(repo):
    repo.upsert_questionnaire("Tied")
    repo.upsert_question("Tied", QuestionStructure(7, "B", True, True), order_index=0)
    repo.upsert_question("Tied", QuestionStructure(5, "A", True, True), order_index=0)
    assert [q.id for q in QuestionCatalogResolver(repo).resolve("Tied")] == [5, 7]


def test_resolver_unknown_name_raises(seeded_repo):
    with pytest.raises(NotFoundError):
        resolve_question_catalog(seeded_repo, "Unknown Opportunity")


def test_resolver_empty_questionnaire(repo):
    repo.upsert_questionnaire("Empty")
    assert resolve_question_catalog(repo, "Empty") == []


def test_upsert_question_updates_in_place(seeded_repo):
    seeded_repo.upsert_question("Clean Water", QuestionStructure(1, "Awareness (revised)", True, True), order_index=0)
    questions = seeded_repo.load_questions("Clean Water")
    assert questions[0] == QuestionStructure(1, "Awareness (revised)", True, True)
    assert len(questions) == 3


def test_get_opportunity(seeded_repo):
    assert seeded_repo.get_opportunity(10) == Opportunity(id=10, name="Clean Water", location="Lima", sdg=6)
    with pytest.raises(NotFoundError):
        seeded_repo.get_opportunity(404)


def test_opportunity_without_project_has_no_sdg(repo):
    repo.upsert_opportunity(11, "Teach English")
    assert repo.get_opportunity(11).sdg is None


def test_host_entity_and_location(seeded_repo):
    host = seeded_repo.get_host_entity(10)
    assert host == HostEntity(lc=EntityRef(100, "LC Lima"), mc=EntityRef(200, "MC Peru"))
    assert seeded_repo.get_location(10) == "Lima"

    seeded_repo.upsert_opportunity(12, "No Host")
    with pytest.raises(NotFoundError):
        seeded_repo.get_host_entity(12)
    with pytest.raises(NotFoundError):
        seeded_repo.get_location(404)


def test_fetch_full_survey_responses(seeded_repo):
    responses = seeded_repo.fetch_full_survey_responses(10)
    assert responses == [
        FullSurveyResponse(2, 1, (Answer(3, "INITIAL", 4.0), Answer(3, "FINAL", 5.0), Answer(1, "INITIAL", 3.0))),
        FullSurveyResponse(1, 3, (Answer(3, "FINAL", 2.0), Answer(99, "INITIAL", 1.0))),
    ]


def test_fetch_full_survey_responses_keeps_answerless_responses(seeded_repo):
    seeded_repo.insert_survey_response(1, application_id=503, response=FullSurveyResponse(1, 1))
    responses = seeded_repo.fetch_full_survey_responses(10)
    assert responses[-1] == FullSurveyResponse(1, 1, ())


def test_fetch_full_survey_responses_unknown_opportunity(seeded_repo):
    assert seeded_repo.fetch_full_survey_responses(404) == []


def test_get_survey_responses(seeded_repo):
    summaries = seeded_repo.get_survey_responses(10)
    assert [(s.application_id, s.slot_name, s.updated_at) for s in summaries] == [
        (501, "January", "2024-01-15 10:00:00"),
        (502, "February", "2024-02-15 10:00:00"),
    ]


def test_get_opportunities_counts_responses(seeded_repo):
    seeded_repo.upsert_opportunity(11, "Teach English")
    summaries = seeded_repo.get_opportunities()
    assert [(s.id, s.name, s.project_id, s.project_sdg, s.responses_count) for s in summaries] == [
        (10, "Clean Water", 1, 6, 2),
        (11, "Teach English", None, None, 0),
    ]


def test_get_all_survey_responses_filters_by_entity(seeded_repo):
    seeded_repo.upsert_opportunity(
        11,
        "Teach English",
        host=HostEntity(lc=EntityRef(101, "LC Cusco"), mc=EntityRef(200, "MC Peru")),
    )
    seeded_repo.upsert_slot(3, 11, "March")
    seeded_repo.insert_survey_response(3, application_id=600, response=FullSurveyResponse(1, 0))
    seeded_repo.upsert_opportunity(12, "No Responses")

    assert [s.id for s in seeded_repo.get_all_survey_responses()] == [10, 11]
    assert [s.id for s in seeded_repo.get_all_survey_responses([101])] == [11]
    assert [s.id for s in seeded_repo.get_all_survey_responses([100, 101])] == [10, 11]
    assert seeded_repo.get_all_survey_responses([]) == []


def test_clear_survey_responses_cascades_answers(seeded_repo):
    assert seeded_repo.clear_survey_responses(1) == 1
    responses = seeded_repo.fetch_full_survey_responses(10)
    assert responses == [FullSurveyResponse(1, 3, (Answer(3, "FINAL", 2.0), Answer(99, "INITIAL", 1.0)))]
    assert len(seeded_repo.fetch_answers_dataframe(10)) == 2


def test_batch_insert_replaces_slot(seeded_repo):
    items = [
        (701, FullSurveyResponse(1, 1, (Answer(3, "INITIAL", 1),)), None),
        (702, FullSurveyResponse(2, 2, (Answer(3, "FINAL", 2), Answer(1, "INITIAL", 3))), "2024-03-01 00:00:00"),
    ]
    assert seeded_repo.insert_survey_responses_batch(1, items, replace=True) == (2, 3)
    apps = [s.application_id for s in seeded_repo.get_survey_responses(10)]
    assert sorted(apps) == [502, 701, 702]


def test_batch_insert_rolls_back_on_error(seeded_repo):
    items = [
        (701, FullSurveyResponse(1, 1, (Answer(3, "INITIAL", 1),)), None),
        (702, FullSurveyResponse(-1, 0), None),  # violates the count check
    ]
    with pytest.raises(sqlite3.IntegrityError):
        seeded_repo.insert_survey_responses_batch(1, items, replace=True)
    assert [s.application_id for s in seeded_repo.get_survey_responses(10)] == [501, 502]


def test_fetch_answers_dataframe(seeded_repo):
    df = seeded_repo.fetch_answers_dataframe(10)
    assert list(df.columns) == ANSWER_COLUMNS
    assert len(df) == 5
    assert df["slot_name"].tolist() == ["January", "January", "January", "February", "February"]

    empty = seeded_repo.fetch_answers_dataframe(404)
    assert empty.empty
    assert list(empty.columns) == ANSWER_COLUMNS
