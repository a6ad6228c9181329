# src/impact_survey/db/importer.py
from __future__ import annotations

import re
import sqlite3
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import pandas as pd

from .models import Answer, FullSurveyResponse
from .repository import SQLiteRepository
from impact_survey.app.errors import ImporterError
from impact_survey.app.logging import get_logger


logger = get_logger(__name__)

REQUIRED_COLUMNS = ("application_id", "initial_count", "final_count", "question_id", "type", "answer")


@dataclass(frozen=True)
class ImportResult:
    slot_id: int
    inserted_responses: int
    inserted_answers: int
    skipped_rows: int


class SurveyResponseImporter:
    """
    Loads long-format survey answers (one row per answer) into the store.

    Rows sharing an application_id become one survey response. The counts of
    a response are taken from its first row.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.repo = SQLiteRepository(db_path)

    def import_csv(self, file_path: str, slot_id: int, encoding: Optional[str] = None) -> ImportResult:
        try:
            df = pd.read_csv(file_path, encoding=encoding)
        except Exception as e:
            raise ImporterError(f"Failed to read CSV: {e}") from e

        return self.import_dataframe(df, slot_id=slot_id, source_hint=str(file_path))

    def import_excel(self, file_path: str, slot_id: int, sheet_name: Optional[str] = None) -> ImportResult:
        try:
            df = pd.read_excel(file_path, sheet_name=sheet_name or 0)
        except Exception as e:
            raise ImporterError(f"Failed to read Excel: {e}") from e

        return self.import_dataframe(df, slot_id=slot_id, source_hint=f"{file_path}#{sheet_name or 'default'}")

    def import_dataframe(self, df: pd.DataFrame, slot_id: int, source_hint: str = "dataframe") -> ImportResult:
        if df is None or df.empty:
            raise ImporterError("Input dataset is empty.")

        df = df.copy()
        df.columns = [self._normalize_column_name(c) for c in df.columns]

        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ImporterError(f"Missing required columns: {', '.join(missing)}")

        usable = df.dropna(subset=["application_id", "question_id", "type", "answer"])
        skipped = int(len(df) - len(usable))
        if usable.empty:
            raise ImporterError(f"No usable rows in {source_hint} ({skipped} skipped); slot {slot_id} left unchanged.")

        try:
            items = self._group_responses(usable)
        except (TypeError, ValueError) as e:
            raise ImporterError(f"Invalid value in {source_hint}: {e}") from e

        # Replace previous responses of the slot in the same transaction.
        try:
            n_responses, n_answers = self.repo.insert_survey_responses_batch(slot_id, items, replace=True)
        except sqlite3.Error as e:
            raise ImporterError(f"Failed to store responses for slot {slot_id}: {e}") from e

        logger.info(
            "survey responses imported",
            extra={"source": source_hint, "slot_id": slot_id, "responses": n_responses, "skipped_rows": skipped},
        )
        return ImportResult(
            slot_id=slot_id,
            inserted_responses=n_responses,
            inserted_answers=n_answers,
            skipped_rows=skipped,
        )

    def _group_responses(self, df: pd.DataFrame) -> List[Tuple[int, FullSurveyResponse, Optional[str]]]:
        items: List[Tuple[int, FullSurveyResponse, Optional[str]]] = []
        for application_id, group in df.groupby("application_id", sort=False):
            first = group.iloc[0]
            answers = tuple(
                Answer(
                    question_id=self._whole(r["question_id"], "question_id"),
                    type=str(r["type"]).strip().upper(),
                    answer=float(r["answer"]),
                )
                for _, r in group.iterrows()
            )
            response = FullSurveyResponse(
                initial_count=self._count(first["initial_count"]),
                final_count=self._count(first["final_count"]),
                answers=answers,
            )
            updated_at = None
            if "updated_at" in group.columns and pd.notnull(first["updated_at"]):
                updated_at = str(first["updated_at"])
            items.append((self._whole(application_id, "application_id"), response, updated_at))
        return items

    def _count(self, raw: Any) -> int:
        # Blank counts mean no submissions of that phase.
        if pd.isnull(raw):
            return 0
        value = self._whole(raw, "count")
        if value < 0:
            raise ValueError(f"negative count {value}")
        return value

    def _whole(self, raw: Any, field: str) -> int:
        # Fractional ids or counts are rejected, never truncated.
        value = float(raw)
        if not value.is_integer():
            raise ValueError(f"{field} must be a whole number, got {raw!r}")
        return int(value)

    def _normalize_column_name(self, raw: Any) -> str:
        s = str(raw).strip().lower()
        s = re.sub(r"\s+", "_", s, flags=re.UNICODE)
        s = re.sub(r"[^\w_]+", "", s, flags=re.UNICODE)
        s = re.sub(r"_+", "_", s, flags=re.UNICODE).strip("_")
        return s or "col"
