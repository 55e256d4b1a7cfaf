"""
UI Components Module
Layout helpers and formatters shared by the projection dashboard pages
"""

import streamlit as st

from business_rules import GAP_RULES

INFO_BOX_RENDERERS = {
    "info": st.info,
    "warning": st.warning,
    "error": st.error,
    "success": st.success,
}

# ===== UI LAYOUT HELPERS =====

def render_page_header(title, icon="🌴", subtitle=None):
    """Render consistent page headers"""
    st.title(f"{icon} {title}")
    if subtitle:
        st.caption(subtitle)
    st.divider()

def render_kpi_row(cards):
    """
    Render one st.metric per card, side by side

    Args:
        cards: {"Label": {"value": "INCREASING", "delta": "Confidence: 87%", "help": "..."}}
               Missing or blank values show as N/A
    """
    columns = st.columns(len(cards))
    for column, (label, card) in zip(columns, cards.items()):
        value = card.get("value")
        if value is None or str(value).strip() == "":
            value = "N/A"
        with column:
            st.metric(label=label, value=value, delta=card.get("delta"),
                      delta_color="off", help=card.get("help"))

def render_chart(fig, title=None, height=420):
    """
    Render a Plotly chart with the dashboard's layout

    Args:
        fig: Plotly figure object
        title: Optional subheader above the chart
        height: Chart height in pixels
    """
    if title:
        st.subheader(title)

    fig.update_layout(
        height=height,
        margin=dict(l=20, r=20, t=40, b=20),
        template="plotly_white",
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="left", x=0)
    )
    st.plotly_chart(fig, width='stretch')

def render_info_box(message, type="info"):
    """Render an info/warning/error/success box; unknown types fall back to info"""
    INFO_BOX_RENDERERS.get(type, st.info)(message)

# ===== NAVIGATION HELPERS =====

def get_main_navigation():
    """
    Sidebar menu entries, in display order

    Returns:
        list of {"id", "label", "description"}
    """
    return [
        {
            "id": "projections",
            "label": "🤖 AI Projections",
            "description": "Production, demand and inventory forecasts"
        },
        {
            "id": "data_upload",
            "label": "📤 Data Management",
            "description": "Upload production, work-order and warehouse exports"
        },
        {
            "id": "debug",
            "label": "🔧 Debug & Logs",
            "description": "Projection run logs and diagnostics"
        }
    ]

def render_navigation():
    """Render the sidebar menu and return the selected page id"""
    st.sidebar.title("🌴 Palm Oil Supply Chain")
    st.sidebar.caption("Production, demand and inventory planning")
    st.sidebar.divider()

    menu_items = {item["label"]: item for item in get_main_navigation()}
    selected_label = st.sidebar.radio("Navigation", options=list(menu_items), key="main_nav")
    selected_page = menu_items.get(selected_label, get_main_navigation()[0])

    st.sidebar.caption(selected_page["description"])
    st.sidebar.divider()
    return selected_page["id"]

# ===== UTILITY FORMATTERS =====

NUMBER_FORMATS = {
    'integer': '{:,.0f}',
    'percentage': '{:.1f}%',
    'decimal': '{:.2f}'
}

def format_number(value, format_type="integer"):
    """Format numbers consistently; unformattable values are returned as text"""
    if value is None:
        return "N/A"
    try:
        return NUMBER_FORMATS.get(format_type, '{}').format(value)
    except (TypeError, ValueError):
        return str(value)

def format_date(date_value, format_str='%Y-%m-%d'):
    """Format dates and timestamps; strings pass through"""
    if date_value is None:
        return "N/A"
    if isinstance(date_value, str):
        return date_value
    try:
        return date_value.strftime(format_str)
    except AttributeError:
        return str(date_value)

def format_trend_label(trend):
    """'increasing' -> 'INCREASING'"""
    return str(getattr(trend, "value", trend)).upper()

def format_confidence(confidence):
    """Confidence in [0, 1] as a whole percentage, e.g. 0.873 -> '87%'"""
    return f"{confidence * 100:.0f}%"

def format_gap(value, unit=None):
    """Sign-prefixed gap, e.g. '+1,234 MT', '-56 MT' or '0 MT'"""
    unit = unit or GAP_RULES["unit"]
    rounded = int(round(float(value)))
    sign = "+" if rounded > 0 else ("-" if rounded < 0 else "")
    return f"{sign}{abs(rounded):,} {unit}"
