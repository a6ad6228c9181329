from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure `src/` is on sys.path so `import impact_survey.*` works without an install.
SRC_DIR = Path(__file__).resolve().parents[1] / "src"
sys.path.insert(0, str(SRC_DIR))

from impact_survey.db.models import Answer, EntityRef, FullSurveyResponse, HostEntity, QuestionStructure  # noqa: E402
from impact_survey.db.repository import SQLiteRepository  # noqa: E402


@pytest.fixture()
def repo(tmp_path) -> SQLiteRepository:
    r = SQLiteRepository(str(tmp_path / "impact.db"))
    r.init_schema()
    return r


@pytest.fixture()
def seeded_repo(repo: SQLiteRepository) -> SQLiteRepository:
    # One opportunity ("Clean Water", id 10) with two slots and a three-question template.
    repo.upsert_project(1, "Water for All", sdg=6)
    repo.upsert_opportunity(
        10,
        "Clean Water",
        location="Lima",
        project_id=1,
        host=HostEntity(lc=EntityRef(100, "LC Lima"), mc=EntityRef(200, "MC Peru")),
    )
    repo.upsert_slot(1, 10, "January")
    repo.upsert_slot(2, 10, "February")

    repo.upsert_questionnaire("Clean Water")
    repo.upsert_question("Clean Water", QuestionStructure(3, "Confidence", True, True), order_index=1)
    repo.upsert_question("Clean Water", QuestionStructure(1, "Awareness", True, False), order_index=2)
    repo.upsert_question("Clean Water", QuestionStructure(2, "Section header", False, False), order_index=3)

    repo.insert_survey_response(
        1,
        application_id=501,
        response=FullSurveyResponse(
            initial_count=2,
            final_count=1,
            answers=(Answer(3, "INITIAL", 4), Answer(3, "FINAL", 5), Answer(1, "INITIAL", 3)),
        ),
        updated_at="2024-01-15 10:00:00",
    )
    repo.insert_survey_response(
        2,
        application_id=502,
        response=FullSurveyResponse(
            initial_count=1,
            final_count=3,
            answers=(Answer(3, "FINAL", 2), Answer(99, "INITIAL", 1)),
        ),
        updated_at="2024-02-15 10:00:00",
    )
    return repo
