# repository.py
from __future__ import annotations

import datetime as _dt
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .connection import connect, db_session
from .models import (
    Answer,
    EntityRef,
    FullSurveyResponse,
    HostEntity,
    Opportunity,
    OpportunitySummary,
    QuestionStructure,
    SurveyResponseSummary,
)
from impact_survey.app.errors import NotFoundError


SCHEMA_PATH = Path(__file__).with_name("schema.sql")

ANSWER_COLUMNS = [
    "survey_response_id",
    "application_id",
    "slot_name",
    "initial_count",
    "final_count",
    "question_id",
    "type",
    "answer",
]


def _now_iso_sqlite() -> str:
    # Same shape as SQLite's datetime('now') so string ordering stays consistent.
    return _dt.datetime.now(_dt.timezone.utc).replace(microsecond=0).strftime("%Y-%m-%d %H:%M:%S")


class SQLiteRepository:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def init_schema(self) -> None:
        self.init_schema_from_sql(SCHEMA_PATH.read_text(encoding="utf-8"))

    def init_schema_from_sql(self, schema_sql: str) -> None:
        # Execute schema SQL in a single transaction.
        conn = connect(self.db_path)
        try:
            conn.executescript(schema_sql)
            conn.commit()
        finally:
            conn.close()

    # -------------------------
    # Projects + opportunities
    # -------------------------
    def upsert_project(self, project_id: int, name: str, sdg: Optional[int] = None) -> None:
        conn = connect(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO projects(id, name, sdg)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  name=excluded.name,
                  sdg=excluded.sdg
                """,
                (project_id, name, sdg),
            )
            conn.commit()
        finally:
            conn.close()

    def upsert_opportunity(
        self,
        opportunity_id: int,
        name: str,
        location: Optional[str] = None,
        project_id: Optional[int] = None,
        host: Optional[HostEntity] = None,
    ) -> None:
        conn = connect(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO opportunities(id, name, location, project_id,
                                          host_lc_id, host_lc_name, home_mc_id, home_mc_name)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  name=excluded.name,
                  location=excluded.location,
                  project_id=excluded.project_id,
                  host_lc_id=excluded.host_lc_id,
                  host_lc_name=excluded.host_lc_name,
                  home_mc_id=excluded.home_mc_id,
                  home_mc_name=excluded.home_mc_name
                """,
                (
                    opportunity_id,
                    name,
                    location,
                    project_id,
                    host.lc.id if host else None,
                    host.lc.name if host else None,
                    host.mc.id if host else None,
                    host.mc.name if host else None,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def upsert_slot(self, slot_id: int, opportunity_id: int, name: str) -> None:
        conn = connect(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO slots(id, opportunity_id, name)
                VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  opportunity_id=excluded.opportunity_id,
                  name=excluded.name
                """,
                (slot_id, opportunity_id, name),
            )
            conn.commit()
        finally:
            conn.close()

    def get_opportunity(self, opportunity_id: int) -> Opportunity:
        conn = connect(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT o.id, o.name, o.location, p.sdg
                FROM opportunities o
                LEFT JOIN projects p ON p.id = o.project_id
                WHERE o.id = ?
                """,
                (opportunity_id,),
            ).fetchone()
            if not row:
                raise NotFoundError(f"Opportunity {opportunity_id} not found.")
            return Opportunity(id=row["id"], name=row["name"], location=row["location"], sdg=row["sdg"])
        finally:
            conn.close()

    def get_host_entity(self, opportunity_id: int) -> HostEntity:
        conn = connect(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT host_lc_id, host_lc_name, home_mc_id, home_mc_name
                FROM opportunities
                WHERE id = ?
                """,
                (opportunity_id,),
            ).fetchone()
            if not row:
                raise NotFoundError(f"Opportunity {opportunity_id} not found.")
            if row["host_lc_id"] is None or row["home_mc_id"] is None:
                raise NotFoundError(f"Opportunity {opportunity_id} has no host entity.")
            return HostEntity(
                lc=EntityRef(id=row["host_lc_id"], name=row["host_lc_name"]),
                mc=EntityRef(id=row["home_mc_id"], name=row["home_mc_name"]),
            )
        finally:
            conn.close()

    def get_location(self, opportunity_id: int) -> Optional[str]:
        conn = connect(self.db_path)
        try:
            row = conn.execute(
                "SELECT location FROM opportunities WHERE id = ?",
                (opportunity_id,),
            ).fetchone()
            if not row:
                raise NotFoundError(f"Opportunity {opportunity_id} not found.")
            return row["location"]
        finally:
            conn.close()

    def get_opportunities(self) -> List[OpportunitySummary]:
        return self._opportunity_summaries()

    def get_all_survey_responses(self, entity_ids: Optional[Sequence[int]] = None) -> List[OpportunitySummary]:
        # Opportunities with at least one response, optionally limited to the given host LCs.
        if entity_ids is not None and not entity_ids:
            return []
        summaries = self._opportunity_summaries(host_lc_ids=entity_ids)
        return [s for s in summaries if s.responses_count > 0]

    def _opportunity_summaries(self, host_lc_ids: Optional[Sequence[int]] = None) -> List[OpportunitySummary]:
        params: List[Any] = []
        where = ""
        if host_lc_ids:
            placeholders = ",".join(["?"] * len(host_lc_ids))
            where = f"WHERE o.host_lc_id IN ({placeholders})"
            params.extend(host_lc_ids)

        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                f"""
                SELECT o.id, o.name, o.project_id, p.sdg AS project_sdg,
                       COUNT(r.id) AS responses_count
                FROM opportunities o
                LEFT JOIN projects p ON p.id = o.project_id
                LEFT JOIN slots s ON s.opportunity_id = o.id
                LEFT JOIN survey_responses r ON r.slot_id = s.id
                {where}
                GROUP BY o.id
                ORDER BY o.id ASC
                """,
                params,
            ).fetchall()
            return [
                OpportunitySummary(
                    id=r["id"],
                    name=r["name"],
                    project_id=r["project_id"],
                    project_sdg=r["project_sdg"],
                    responses_count=int(r["responses_count"]),
                )
                for r in rows
            ]
        finally:
            conn.close()

    # -------------------------
    # Questionnaires + questions
    # -------------------------
    def upsert_questionnaire(self, name: str) -> None:
        conn = connect(self.db_path)
        try:
            conn.execute(
                "INSERT INTO questionnaires(name) VALUES (?) ON CONFLICT(name) DO NOTHING",
                (name,),
            )
            conn.commit()
        finally:
            conn.close()

    def upsert_question(self, questionnaire_name: str, question: QuestionStructure, order_index: int = 0) -> None:
        conn = connect(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO questions(id, questionnaire_name, text, initial, final, order_index)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                  questionnaire_name=excluded.questionnaire_name,
                  text=excluded.text,
                  initial=excluded.initial,
                  final=excluded.final,
                  order_index=excluded.order_index
                """,
                (
                    question.id,
                    questionnaire_name,
                    question.text,
                    1 if question.initial else 0,
                    1 if question.final else 0,
                    order_index,
                ),
            )
            conn.commit()
        finally:
            conn.close()

    def load_questions(self, questionnaire_name: str) -> List[QuestionStructure]:
        conn = connect(self.db_path)
        try:
            exists = conn.execute(
                "SELECT 1 FROM questionnaires WHERE name = ?",
                (questionnaire_name,),
            ).fetchone()
            if not exists:
                raise NotFoundError(f"No questionnaire found for '{questionnaire_name}'.")

            rows = conn.execute(
                """
                SELECT id, text, initial, final
                FROM questions
                WHERE questionnaire_name = ?
                ORDER BY order_index ASC, id ASC
                """,
                (questionnaire_name,),
            ).fetchall()
            return [
                QuestionStructure(id=r["id"], text=r["text"], initial=bool(r["initial"]), final=bool(r["final"]))
                for r in rows
            ]
        finally:
            conn.close()

    # -------------------------
    # Survey responses
    # -------------------------
    def insert_survey_response(
        self,
        slot_id: int,
        application_id: int,
        response: FullSurveyResponse,
        updated_at: Optional[str] = None,
    ) -> int:
        with db_session(self.db_path) as conn:
            return self._insert_survey_response(conn, slot_id, application_id, response, updated_at)

    def insert_survey_responses_batch(
        self,
        slot_id: int,
        items: Iterable[Tuple[int, FullSurveyResponse, Optional[str]]],
        replace: bool = False,
    ) -> Tuple[int, int]:
        # Inserts (application_id, response, updated_at) items in one transaction.
        # Returns (responses inserted, answers inserted).
        n_responses = 0
        n_answers = 0
        with db_session(self.db_path) as conn:
            if replace:
                conn.execute("DELETE FROM survey_responses WHERE slot_id = ?", (slot_id,))
            for application_id, response, updated_at in items:
                self._insert_survey_response(conn, slot_id, application_id, response, updated_at)
                n_responses += 1
                n_answers += len(response.answers)
        return n_responses, n_answers

    def _insert_survey_response(
        self,
        conn: sqlite3.Connection,
        slot_id: int,
        application_id: int,
        response: FullSurveyResponse,
        updated_at: Optional[str],
    ) -> int:
        cur = conn.execute(
            """
            INSERT INTO survey_responses(application_id, slot_id, initial_count, final_count, updated_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (application_id, slot_id, response.initial_count, response.final_count, updated_at or _now_iso_sqlite()),
        )
        response_id = int(cur.lastrowid)
        conn.executemany(
            "INSERT INTO answers(survey_response_id, question_id, type, answer) VALUES (?, ?, ?, ?)",
            [(response_id, a.question_id, a.type, float(a.answer)) for a in response.answers],
        )
        return response_id

    def clear_survey_responses(self, slot_id: int) -> int:
        conn = connect(self.db_path)
        try:
            cur = conn.execute("DELETE FROM survey_responses WHERE slot_id = ?", (slot_id,))
            conn.commit()
            return cur.rowcount
        finally:
            conn.close()

    def get_survey_responses(self, opportunity_id: int) -> List[SurveyResponseSummary]:
        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT r.application_id, s.name AS slot_name, r.updated_at
                FROM survey_responses r
                JOIN slots s ON s.id = r.slot_id
                WHERE s.opportunity_id = ?
                ORDER BY s.id ASC, r.id ASC
                """,
                (opportunity_id,),
            ).fetchall()
            return [
                SurveyResponseSummary(
                    application_id=r["application_id"],
                    slot_name=r["slot_name"],
                    updated_at=r["updated_at"],
                )
                for r in rows
            ]
        finally:
            conn.close()

    def fetch_full_survey_responses(self, opportunity_id: int) -> List[FullSurveyResponse]:
        # Complete (unpaginated) list for every slot of the opportunity.
        conn = connect(self.db_path)
        try:
            headers = conn.execute(
                """
                SELECT r.id, r.initial_count, r.final_count
                FROM survey_responses r
                JOIN slots s ON s.id = r.slot_id
                WHERE s.opportunity_id = ?
                ORDER BY r.id ASC
                """,
                (opportunity_id,),
            ).fetchall()
            if not headers:
                return []

            answer_rows = conn.execute(
                """
                SELECT a.survey_response_id, a.question_id, a.type, a.answer
                FROM answers a
                JOIN survey_responses r ON r.id = a.survey_response_id
                JOIN slots s ON s.id = r.slot_id
                WHERE s.opportunity_id = ?
                ORDER BY a.id ASC
                """,
                (opportunity_id,),
            ).fetchall()

            by_response: Dict[int, List[Answer]] = {}
            for a in answer_rows:
                by_response.setdefault(a["survey_response_id"], []).append(
                    Answer(question_id=a["question_id"], type=a["type"], answer=a["answer"])
                )

            return [
                FullSurveyResponse(
                    initial_count=h["initial_count"],
                    final_count=h["final_count"],
                    answers=tuple(by_response.get(h["id"], [])),
                )
                for h in headers
            ]
        finally:
            conn.close()

    def fetch_answers_dataframe(self, opportunity_id: int) -> pd.DataFrame:
        # Long format: one row per answer.
        conn = connect(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT r.id AS survey_response_id, r.application_id, s.name AS slot_name,
                       r.initial_count, r.final_count, a.question_id, a.type, a.answer
                FROM answers a
                JOIN survey_responses r ON r.id = a.survey_response_id
                JOIN slots s ON s.id = r.slot_id
                WHERE s.opportunity_id = ?
                ORDER BY a.id ASC
                """,
                (opportunity_id,),
            ).fetchall()
            if not rows:
                return pd.DataFrame(columns=ANSWER_COLUMNS)
            return pd.DataFrame([dict(r) for r in rows], columns=ANSWER_COLUMNS)
        finally:
            conn.close()
