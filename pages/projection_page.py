"""
AI Projections Page
Forecast production, demand and inventory and show the supply/demand gap
"""

import asyncio

import streamlit as st
import pytz
import plotly.graph_objects as go

from business_rules import HISTORY_SOURCES, METRIC_ORDER, PROJECTION_DEFAULTS
from file_loader import get_uploaded_files
from forecast_signals import calculate_moving_average
from projection_service import ProjectionService
from ui_components import (
    render_page_header,
    render_kpi_row,
    render_chart,
    render_info_box,
    format_trend_label,
    format_confidence,
    format_gap,
    format_date
)

SERIES_COLORS = {
    "production": "#2e7d32",
    "demand": "#1565c0",
    "inventory": "#ef6c00",
}


def build_projection_chart(projection):
    """One line per metric over the forecast horizon, with a dotted 7-day moving average"""
    fig = go.Figure()

    for metric in METRIC_ORDER:
        frame = getattr(projection, metric).to_frame()
        if frame.empty:
            continue
        label = HISTORY_SOURCES[metric]["label"]
        fig.add_trace(go.Scatter(
            x=frame["timestamp"], y=frame["value"], mode="lines", name=label,
            line=dict(color=SERIES_COLORS[metric])
        ))
        fig.add_trace(go.Scatter(
            x=frame["timestamp"], y=calculate_moving_average(frame["value"].tolist(), 7),
            mode="lines", name=f"{label} (7d avg)",
            line=dict(color=SERIES_COLORS[metric], dash="dot"), showlegend=False
        ))

    fig.update_layout(xaxis_title="Date", yaxis_title="Metric Tons", hovermode="x unified")
    return fig


def build_metric_cards(projection):
    """KPI dict for render_kpi_row"""
    cards = {}
    for metric in METRIC_ORDER:
        forecast = getattr(projection, metric)
        cards[HISTORY_SOURCES[metric]["label"]] = {
            "value": format_trend_label(forecast.trend),
            "delta": f"Confidence: {format_confidence(forecast.confidence)}",
            "help": "📊 Seasonal pattern detected" if forecast.seasonality else "📈 No seasonality",
        }
    return cards


def render_projection_page():
    """Render the AI projections page"""

    render_page_header(
        "AI Supply Projections",
        icon="🤖",
        subtitle="LSTM forecasts for production, demand and inventory trained on the last "
                 f"{PROJECTION_DEFAULTS['history_days']} days"
    )

    forecast_days = st.slider(
        "Forecast horizon (days)",
        min_value=PROJECTION_DEFAULTS["min_forecast_days"],
        max_value=PROJECTION_DEFAULTS["max_forecast_days_ui"],
        value=PROJECTION_DEFAULTS["forecast_days"],
        key="projection_days"
    )

    if st.button("✨ Generate Projection", type="primary"):
        uploaded_files = get_uploaded_files()
        with st.spinner("Training AI models..."), ProjectionService(uploaded_files=uploaded_files) as service:
            try:
                logs, projection = asyncio.run(service.generate_projections(forecast_days))
                st.session_state.projection = projection
                st.session_state.projection_logs = logs
            except Exception as e:
                # No partial projections are shown
                st.session_state.projection = None
                st.session_state.projection_logs = service.logs + [f"ERROR: Projection failed: {e}"]
                render_info_box("Failed to generate projections. Please try again.", type="error")

    projection = st.session_state.get("projection")
    if projection is None:
        render_info_box("Click **Generate Projection** to train the models and forecast ahead.")
        return

    local_time = projection.generated_at.astimezone(pytz.timezone(PROJECTION_DEFAULTS["display_timezone"]))
    st.caption(f"Generated at {format_date(local_time, '%Y-%m-%d %H:%M:%S %Z')}")

    render_kpi_row(build_metric_cards(projection))

    st.divider()
    col1, col2 = st.columns(2)
    with col1:
        st.metric("Projected Gap (avg)", format_gap(projection.gap.projected),
                  help="Mean predicted production minus mean predicted demand")
    with col2:
        st.metric("Current Gap", format_gap(projection.gap.current),
                  help="Last observed production minus last observed demand")

    render_info_box(f"**AI Recommendation:** {projection.gap.recommendation}",
                    type="warning" if projection.gap.projected < 0 else "info")

    render_chart(build_projection_chart(projection), title="📈 Projected Trends")
