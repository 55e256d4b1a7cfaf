"""
Palm Oil Supply Projection Dashboard
AI forecasts for production, demand and inventory

Run with: streamlit run dashboard.py
"""

import streamlit as st

from ui_components import render_navigation
from pages.projection_page import render_projection_page
from pages.data_upload_page import render_data_upload_page
from pages.debug_page import render_debug_page

# ===== PAGE CONFIGURATION =====
st.set_page_config(
    page_title="Palm Oil Supply Projections",
    page_icon="🌴",
    layout="wide",
    initial_sidebar_state="expanded"
)

# ===== CUSTOM CSS =====
st.markdown("""
    <style>
        [data-testid="stMetric"] {
            background-color: #f8f9fa;
            padding: 1rem;
            border-radius: 0.5rem;
            border: 1px solid #e9ecef;
        }

        /* Hide automatic Streamlit page navigation */
        [data-testid="stSidebarNav"] {
            display: none;
        }
    </style>
""", unsafe_allow_html=True)


def main():
    """Main application entry point"""

    selected_page = render_navigation()

    if selected_page == "projections":
        render_projection_page()

    elif selected_page == "data_upload":
        render_data_upload_page()

    elif selected_page == "debug":
        render_debug_page(st.session_state.get("projection_logs", []))

    st.sidebar.caption("Forecasts are retrained on every run")


if __name__ == "__main__":
    main()
