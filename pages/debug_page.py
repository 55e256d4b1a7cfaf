"""
Debug & Logs Page
Shows the log lines of the last projection run grouped by level
"""

import streamlit as st


def split_logs_by_level(logs):
    """
    Group "INFO:/WARNING:/ERROR:" lines.

    Returns:
        dict: {"info": [...], "warning": [...], "error": [...], "other": [...]}
    """
    grouped = {"info": [], "warning": [], "error": [], "other": []}
    for log in logs or []:
        if log.startswith("INFO:"):
            grouped["info"].append(log)
        elif log.startswith("WARNING:"):
            grouped["warning"].append(log)
        elif log.startswith("ERROR:"):
            grouped["error"].append(log)
        else:
            grouped["other"].append(log)
    return grouped


def render_debug_page(logs):
    """Render debug and logs page"""

    st.title("🔧 Debug & System Logs")

    if not logs:
        st.warning("No logs available. Generate a projection first.")
        return

    grouped = split_logs_by_level(logs)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Info", len(grouped["info"]))
    with col2:
        st.metric("Warnings", len(grouped["warning"]), delta="⚠️" if grouped["warning"] else None)
    with col3:
        st.metric("Errors", len(grouped["error"]), delta="❌" if grouped["error"] else None)

    st.divider()

    if grouped["error"]:
        st.error("**Errors:**")
        for log in grouped["error"]:
            st.text(log)

    if grouped["warning"]:
        st.warning("**Warnings:**")
        for log in grouped["warning"]:
            st.text(log)

    with st.expander("📄 Full Projection Log", expanded=not grouped["error"]):
        for log in logs:
            st.text(log)
