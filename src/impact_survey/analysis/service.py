from __future__ import annotations

from typing import List, Optional
from uuid import uuid4

from .aggregation import compute_analysis
from .catalog import QuestionCatalogResolver
from impact_survey.app.logging import get_logger, log_context
from impact_survey.db.models import AnalysisRow
from impact_survey.db.repository import SQLiteRepository


logger = get_logger(__name__)


def get_opportunity_analysis(
    repo: SQLiteRepository,
    opportunity_id: int,
    request_id: Optional[str] = None,
) -> List[AnalysisRow]:
    """
    Before/after analysis for one opportunity.

    Resolves the opportunity's questionnaire by its name, loads every survey
    response of its slots and aggregates them. NotFoundError from the store
    (unknown opportunity or questionnaire) propagates to the caller.
    """
    with log_context(request_id=request_id or f"req_{uuid4().hex[:8]}", opportunity_id=opportunity_id):
        opportunity = repo.get_opportunity(opportunity_id)
        questions = QuestionCatalogResolver(repo).resolve(opportunity.name)
        responses = repo.fetch_full_survey_responses(opportunity_id)

        logger.info(
            "computing opportunity analysis",
            extra={"questions": len(questions), "responses": len(responses)},
        )
        rows = compute_analysis(questions, responses)
        logger.debug("analysis computed", extra={"rows": len(rows)})
        return rows
