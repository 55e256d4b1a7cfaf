"""
Data Upload & Management Page
Upload production, work-order and warehouse exports to replace the files on disk
"""

import streamlit as st
import pandas as pd
from datetime import datetime
from io import BytesIO

from business_rules import HISTORY_SOURCES, METRIC_ORDER
from ui_components import render_page_header, render_info_box


def validate_history_upload(df, metric):
    """
    Validate an uploaded export against its metric's expected columns

    Returns:
        (is_valid, errors_list)
    """
    source = HISTORY_SOURCES.get(metric)
    if not source:
        return False, [f"Unknown metric: {metric}"]

    errors = []
    required_cols = [source["timestamp_column"], source["value_column"]]
    missing_cols = [col for col in required_cols if col not in df.columns]
    if missing_cols:
        errors.append(f"Missing required columns: {', '.join(missing_cols)}")
        return False, errors

    bad_dates = pd.to_datetime(df[source["timestamp_column"]], errors="coerce").isna().sum()
    if bad_dates:
        errors.append(f"{bad_dates} rows have an unreadable '{source['timestamp_column']}'")

    values = pd.to_numeric(df[source["value_column"]], errors="coerce")
    if values.isna().all():
        errors.append(f"'{source['value_column']}' has no numeric values")
    elif (values < 0).any():
        errors.append(f"'{source['value_column']}' contains negative quantities")

    return len(errors) == 0, errors


def upload_widget_key(file_key, session_state):
    """Widget key of an uploader; changes after every clear so the widget starts empty"""
    return f"upload_{file_key}_{session_state.get('upload_generation', 0)}"


def clear_uploaded_files(session_state):
    """Forget stored buffers and the files still held by the uploader widgets"""
    for metric in METRIC_ORDER:
        session_state.pop(upload_widget_key(HISTORY_SOURCES[metric]["file_key"], session_state), None)
    session_state["upload_generation"] = session_state.get("upload_generation", 0) + 1
    session_state["uploaded_files"] = {}


def render_data_upload_page():
    """Render the upload page"""

    render_page_header(
        "Data Management",
        icon="📤",
        subtitle="Uploaded exports are used instead of the files on disk. Metrics without data use synthetic history."
    )

    if 'uploaded_files' not in st.session_state:
        st.session_state.uploaded_files = {}

    for metric in METRIC_ORDER:
        source = HISTORY_SOURCES[metric]
        file_key = source["file_key"]
        loaded = file_key in st.session_state.uploaded_files

        with st.expander(f"{'✅' if loaded else '⭕'} {source['label']} ({source['file_name']})", expanded=True):
            st.caption(f"Required columns: {source['timestamp_column']}, {source['value_column']}")

            uploaded_file = st.file_uploader(
                f"Upload {source['file_name']}",
                type=['csv'],
                key=upload_widget_key(file_key, st.session_state),
                label_visibility="collapsed"
            )

            if uploaded_file is None:
                continue

            raw_bytes = uploaded_file.getvalue()
            try:
                df = pd.read_csv(BytesIO(raw_bytes))
            except (ValueError, UnicodeDecodeError) as e:
                st.error(f"❌ Error reading file: {e}")
                continue

            is_valid, errors = validate_history_upload(df, metric)
            if is_valid:
                st.session_state.uploaded_files[file_key] = BytesIO(raw_bytes)
                st.success(f"✅ File validated successfully! Loaded {len(df):,} rows "
                           f"at {datetime.now().strftime('%H:%M:%S')}")
            else:
                st.error("❌ Validation failed:")
                for error in errors:
                    st.error(f"  • {error}")

    if st.session_state.uploaded_files:
        if st.button("🗑️ Clear Uploaded Files"):
            clear_uploaded_files(st.session_state)
            st.rerun()
    else:
        render_info_box("No uploads yet. Files in the data directory are used when present.")
