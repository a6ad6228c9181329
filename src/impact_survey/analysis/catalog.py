from __future__ import annotations

from typing import List

from impact_survey.db.models import QuestionStructure
from impact_survey.db.repository import SQLiteRepository


class QuestionCatalogResolver:
    # Looks up the questionnaire template registered under an opportunity name.
    def __init__(self, repo: SQLiteRepository):
        self.repo = repo

    def resolve(self, opportunity_name: str) -> List[QuestionStructure]:
        # Ordered by order_index, then id. Raises NotFoundError for unknown names.
        return self.repo.load_questions(opportunity_name)


def resolve_question_catalog(repo: SQLiteRepository, opportunity_name: str) -> List[QuestionStructure]:
    return QuestionCatalogResolver(repo).resolve(opportunity_name)
