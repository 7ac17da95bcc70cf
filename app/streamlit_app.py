import sys
from pathlib import Path

# Ensure project root is on PYTHONPATH so "attrition" imports work when running from /app
ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.append(str(ROOT_DIR))

import logging

import pandas as pd
import streamlit as st

from attrition.config import LOG_LEVEL, SERVICE_MODE, PipelineConfig
from attrition.ingest import load_employees, load_feedback
from attrition.pipeline import run_pipeline
from attrition.reporting import report_to_pdf, report_to_text
from attrition.sentiment import label_from_sentiment, score_feedback, sentiment_frame

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

st.set_page_config(page_title="Employee Attrition Pipeline", layout="wide")

st.title("Employee Attrition Prediction")
st.caption("Feature selection, SMOTE balancing, SVM / random forest / gradient boosting and a stacked ensemble.")

if "result" not in st.session_state:
    st.session_state.result = None
if "sentiment" not in st.session_state:
    st.session_state.sentiment = None

defaults = PipelineConfig()

# Sidebar
with st.sidebar:
    st.subheader("Data")
    employee_file = st.file_uploader("Employee CSV", type=["csv"])
    feedback_file = st.file_uploader("Feedback CSV (optional)", type=["csv"])

    st.divider()
    st.subheader("Settings")
    top_n = st.number_input("Top-N features", min_value=1, value=defaults.top_n_features)
    perc_over = st.number_input("SMOTE over %", min_value=1, value=defaults.perc_over, step=100)
    perc_under = st.number_input("SMOTE under %", min_value=1, value=defaults.perc_under, step=50)
    test_size = st.slider("Test size", 0.1, 0.5, value=defaults.test_size)
    cv_folds = st.number_input("CV folds", min_value=2, value=defaults.cv_folds)
    weighting = st.selectbox("Text weighting", ["tf", "tfidf"], index=0 if defaults.text_weighting == "tf" else 1)
    sparsity = st.slider("Sparse-term threshold", 0.5, 1.0, value=defaults.text_sparsity or 1.0)

    st.divider()
    st.subheader("Sentiment")
    score_comments = st.toggle("Score feedback sentiment", value=False)
    service_mode = st.selectbox(
        "Service mode",
        ["azure", "local"],
        index=1 if SERVICE_MODE == "local" else 0,
    )
    threshold = st.slider("Sentiment threshold", 0.0, 1.0, value=defaults.sentiment_threshold)

    run = st.button("Run pipeline", type="primary")

if run:
    with st.spinner("Training models..."):
        try:
            config = PipelineConfig(
                top_n_features=int(top_n),
                perc_over=int(perc_over),
                perc_under=int(perc_under),
                test_size=float(test_size),
                cv_folds=int(cv_folds),
                text_weighting=weighting,
                text_sparsity=float(sparsity),
                sentiment_threshold=float(threshold),
            )
            employees = None
            if employee_file is not None:
                employees = load_employees(employee_file, config.target, config.labels)
            feedback = None
            if feedback_file is not None:
                feedback = load_feedback(feedback_file, config.text_column)

            st.session_state.result = run_pipeline(config, employees=employees, feedback=feedback)

            st.session_state.sentiment = None
            if score_comments and feedback is not None:
                results = score_feedback(
                    feedback[config.text_column].tolist(),
                    language=config.text_language,
                    mode=service_mode,
                )
                st.session_state.sentiment = sentiment_frame(results)
        except Exception as e:
            logger.exception("Pipeline run failed")
            st.session_state.result = None
            st.session_state.sentiment = None
            st.error(f"Error: {e}")

result = st.session_state.result

if result is not None:
    col1, col2 = st.columns(2)
    with col1:
        st.markdown("**Class counts (training split)**")
        st.dataframe(pd.DataFrame({
            "before": pd.Series(result.balance.counts_before),
            "after": pd.Series(result.balance.counts_after),
        }))
    with col2:
        st.markdown("**Selected features**")
        st.dataframe(result.ranking.importances.rename("importance").head(len(result.selected_features)))

    st.markdown("**Tabular models (held-out split)**")
    st.dataframe(result.report)

    if result.text is not None:
        st.markdown(f"**Text models** (vocabulary: {result.text.vocabulary_size} terms)")
        st.dataframe(result.text.report)
        st.markdown("**Most frequent terms**")
        st.dataframe(result.text.top_terms.rename("weight"))

    sentiment = st.session_state.sentiment
    if sentiment is not None:
        # relabel on every rerun so the threshold slider applies without rescoring
        labelled = sentiment.copy()
        labelled["predicted_attrition"] = label_from_sentiment(
            labelled["score"],
            threshold=threshold,
            positive_label=result.config.positive_label,
            negative_label=result.config.negative_label,
        )
        failed = int(labelled["error"].notna().sum())
        st.markdown(f"**Feedback sentiment** (threshold {threshold:.2f}, {failed} comments not scored)")
        st.dataframe(labelled["predicted_attrition"].value_counts(dropna=False).rename("comments"))
        st.dataframe(labelled)

    st.divider()
    st.subheader("Export report")
    st.download_button("Save report.txt", report_to_text(result), file_name="report.txt")
    st.download_button("Save report.pdf", report_to_pdf(result), file_name="report.pdf")
