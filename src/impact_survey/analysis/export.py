from __future__ import annotations

from typing import Any, Dict, List, Sequence

import pandas as pd

from impact_survey.db.models import AnalysisRow


RECORD_KEYS = {
    "id": "id",
    "question": "question",
    "total_initial_count": "totalInitialCount",
    "average_initial_score": "averageInitialScore",
    "total_final_count": "totalFinalCount",
    "average_final_score": "averageFinalScore",
    "change": "change",
}


def rows_to_records(rows: Sequence[AnalysisRow]) -> List[Dict[str, Any]]:
    # JSON-serializable, camelCase keys; None stays None (JSON null).
    return [{key: getattr(row, attr) for attr, key in RECORD_KEYS.items()} for row in rows]


def rows_to_dataframe(rows: Sequence[AnalysisRow]) -> pd.DataFrame:
    # Catalog order is kept; missing values become NaN.
    df = pd.DataFrame(rows_to_records(rows), columns=list(RECORD_KEYS.values()))
    numeric_cols = [c for c in df.columns if c not in ("id", "question")]
    df[numeric_cols] = df[numeric_cols].astype(float)
    return df
