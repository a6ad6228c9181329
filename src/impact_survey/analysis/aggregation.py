"""
Before/after aggregation of survey answers per question.

compute_analysis() is pure: no I/O, no logging, no module state. Every call
builds its own accumulators, so concurrent calls need no coordination.

"No data" is represented by None. A question only gets an initial (final)
count when it is flagged as part of the initial (final) survey, and only gets
an average when that count is positive. Any arithmetic on None yields None.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from impact_survey.db.models import FINAL, INITIAL, AnalysisRow, FullSurveyResponse, QuestionStructure


@dataclass
class _Accumulator:
    sum_initial_count: int = 0
    sum_initial_score: float = 0.0
    sum_final_count: int = 0
    sum_final_score: float = 0.0


def _mean(total: float, count: int) -> Optional[float]:
    if count > 0:
        return total / count
    return None


def subtract_optional(left: Optional[float], right: Optional[float]) -> Optional[float]:
    # None on either side propagates.
    if left is None or right is None:
        return None
    return left - right


def _build_accumulators(catalog: Sequence[QuestionStructure]) -> Dict[int, _Accumulator]:
    return {q.id: _Accumulator() for q in catalog}


def _fold(accumulators: Dict[int, _Accumulator], responses: Iterable[FullSurveyResponse]) -> None:
    for response in responses:
        for answer in response.answers:
            # Answers to questions outside the catalog (retired/stale ids) are skipped.
            if answer.question_id not in accumulators:
                continue
            acc = accumulators[answer.question_id]

            # Every answer is weighted by the response-level count (pooled submissions).
            if answer.type == INITIAL:
                acc.sum_initial_count += response.initial_count
                acc.sum_initial_score += response.initial_count * answer.answer
            elif answer.type == FINAL:
                acc.sum_final_count += response.final_count
                acc.sum_final_score += response.final_count * answer.answer


def _to_row(question: QuestionStructure, acc: _Accumulator) -> AnalysisRow:
    total_initial_count: Optional[int] = None
    average_initial_score: Optional[float] = None
    total_final_count: Optional[int] = None
    average_final_score: Optional[float] = None

    if question.initial:
        total_initial_count = acc.sum_initial_count
        average_initial_score = _mean(acc.sum_initial_score, total_initial_count)

    if question.final:
        total_final_count = acc.sum_final_count
        average_final_score = _mean(acc.sum_final_score, total_final_count)

    return AnalysisRow(
        id=question.id,
        question=question.text,
        total_initial_count=total_initial_count,
        average_initial_score=average_initial_score,
        total_final_count=total_final_count,
        average_final_score=average_final_score,
        change=subtract_optional(average_final_score, average_initial_score),
    )


def compute_analysis(
    catalog: Sequence[QuestionStructure],
    responses: Iterable[FullSurveyResponse],
) -> List[AnalysisRow]:
    """
    Reduce survey responses into one AnalysisRow per catalog question, in catalog order.

    Args:
        catalog: Ordered question definitions. May be empty.
        responses: Fully materialized responses for one opportunity.

    Returns:
        List[AnalysisRow]: exactly len(catalog) rows.
    """
    accumulators = _build_accumulators(catalog)
    _fold(accumulators, responses)
    return [_to_row(q, accumulators[q.id]) for q in catalog]
