"""Streamlit implementation of the guard renderer."""

import streamlit as st

from eazybooks.access.guards import UpsellPanel
from eazybooks.ui.guards import GuardRenderer


class StreamlitRenderer(GuardRenderer):
    """
    Renders guard outcomes in a single-script Streamlit app.

    Navigation is session-state based: the current path lives under
    `page_key` and a redirect rewrites it and reruns the script.
    """

    def __init__(self, page_key: str = "page"):
        self._page_key = page_key

    def loading_indicator(self) -> None:
        with st.spinner("Checking your access..."):
            st.empty()

    def redirect(self, path: str) -> None:
        if st.session_state.get(self._page_key) == path:
            # Already on the fallback page; rerunning would loop forever
            st.warning("You don't have access to this page.")
            return
        st.session_state[self._page_key] = path
        st.rerun()

    def upsell_panel(self, panel: UpsellPanel) -> None:
        st.markdown(f"""
        <div class="upsell-box">
            <h4>🔒 {panel.title}</h4>
            <p>{panel.message}</p>
        </div>
        """, unsafe_allow_html=True)

        if panel.show_upgrade_button:
            if st.button(f"Upgrade to {panel.required_tier.value.capitalize()}", type="primary"):
                st.session_state[self._page_key] = panel.upgrade_path
                st.rerun()
