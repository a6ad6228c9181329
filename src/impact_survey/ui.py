import os
import tempfile
from dataclasses import asdict

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from impact_survey.analysis.export import rows_to_dataframe
from impact_survey.analysis.service import get_opportunity_analysis
from impact_survey.app.config import Settings
from impact_survey.app.errors import AppError, NotFoundError
from impact_survey.app.logging import get_logger, setup_logging
from impact_survey.db.importer import SurveyResponseImporter
from impact_survey.db.repository import SQLiteRepository
from impact_survey.tools.viz import plot_score_change


logger = get_logger(__name__)


# --- Page setup ---
st.set_page_config(
    page_title="Volunteering Impact Analysis",
    page_icon="📊",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_settings() -> Settings:
    settings = Settings.from_env()
    setup_logging(settings.log_level, settings.log_json)
    return settings


@st.cache_resource
def get_repository(db_path: str) -> SQLiteRepository:
    # Schema statements are idempotent (CREATE ... IF NOT EXISTS).
    repo = SQLiteRepository(db_path)
    repo.init_schema()
    return repo


settings = get_settings()
repo = get_repository(settings.db_path)

# --- Sidebar: opportunities + import ---
with st.sidebar:
    st.header("📂 Opportunities")

    opportunities = repo.get_opportunities()
    if not opportunities:
        st.info("No opportunities in the database yet.")
        st.stop()

    labels = {o.id: f"{o.name} ({o.responses_count} responses)" for o in opportunities}
    selected_id = st.selectbox("Opportunity", options=list(labels.keys()), format_func=lambda i: labels[i])

    st.divider()
    st.subheader("Import responses")
    slot_id = st.number_input("Slot id", min_value=1, step=1)
    uploaded_file = st.file_uploader("Upload CSV/Excel", type=["csv", "xlsx"])

    if uploaded_file and st.button("Import"):
        suffix = os.path.splitext(uploaded_file.name)[1]
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=False) as tmp:
            tmp.write(uploaded_file.getbuffer())
            temp_path = tmp.name
        try:
            importer = SurveyResponseImporter(settings.db_path)
            if suffix == ".csv":
                res = importer.import_csv(temp_path, slot_id=int(slot_id))
            else:
                res = importer.import_excel(temp_path, slot_id=int(slot_id))
            st.success(f"Imported {res.inserted_responses} responses ({res.skipped_rows} rows skipped).")
        except AppError as e:
            st.error(f"Import failed: {e}")
        finally:
            os.remove(temp_path)

# --- Main panel ---
st.title("📊 Volunteering Impact Analysis")

try:
    opportunity = repo.get_opportunity(selected_id)
except NotFoundError as e:
    st.error(str(e))
    st.stop()

col_info, col_host = st.columns(2)
with col_info:
    st.subheader(opportunity.name)
    st.text(f"Location: {opportunity.location or '-'}")
    if opportunity.sdg is not None:
        st.text(f"SDG: {opportunity.sdg}")
with col_host:
    try:
        host = repo.get_host_entity(selected_id)
        st.text(f"Host LC: {host.lc.name}")
        st.text(f"Home MC: {host.mc.name}")
    except NotFoundError:
        st.text("Host entity: -")

try:
    rows = get_opportunity_analysis(repo, selected_id)
except NotFoundError as e:
    st.warning(f"No analysis available: {e}")
    st.stop()

st.subheader("Before / after by question")
df = rows_to_dataframe(rows)
st.dataframe(df, use_container_width=True, hide_index=True)

fig = plot_score_change(
    rows,
    output_path=os.path.join(settings.artifacts_dir, f"opportunity_{selected_id}_change.png"),
    dpi=settings.chart_dpi,
)
st.pyplot(fig)
plt.close(fig)

with st.expander("Survey responses"):
    responses = repo.get_survey_responses(selected_id)
    st.dataframe(pd.DataFrame([asdict(r) for r in responses]), use_container_width=True, hide_index=True)
