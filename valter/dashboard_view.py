"""
Dashboard view: overview stats, rescan control, Action Center and Oracle.
"""

import streamlit as st
import logging

from .action_center_view import ActionCenterView
from .exceptions import BackendError
from .session_manager import SessionManager
from .sync_loop import OP_RESCAN
from .ui_feedback import Notify, show_loading

logger = logging.getLogger(__name__)


class DashboardView:
    """Landing page of the console."""

    @staticmethod
    def render():
        state = SessionManager.get_app_state()
        sync = SessionManager.get_sync_loop()

        if state.config is None:
            st.info("Loading config...")
            return

        col1, col2 = st.columns([4, 1])
        with col1:
            st.header("Dashboard")
            company = state.config.global_settings.company_name or "your workspace"
            st.caption(f"Overview of {company}")
        with col2:
            if st.button("🔄 Rescan System", key="rescan_btn",
                         disabled=state.is_loading(OP_RESCAN),
                         help="Ask the core to re-ingest every Island"):
                DashboardView.run_rescan(sync)

        m1, m2, m3 = st.columns(3)
        m1.metric("Clouds", state.registry.cloud_count)
        m2.metric("Islands", state.registry.island_count)
        m3.metric("Pending Actions", len(state.pending_actions))

        if state.actions_error is not None:
            st.warning(f"⚠️ Pending actions could not be refreshed: {state.actions_error}")
        if state.rescan_error is not None:
            st.warning(f"⚠️ Last rescan failed: {state.rescan_error}")

        st.divider()
        ActionCenterView.render(state.pending_actions, SessionManager.get_resolver())

        st.divider()
        DashboardView._render_oracle()

    @staticmethod
    def run_rescan(sync):
        with show_loading("Rescanning Islands..."):
            started = sync.rescan()

        if started:
            Notify.success("Rescan complete")
            st.rerun()
        elif sync.state.rescan_error is not None:
            Notify.error("Rescan failed")

    @staticmethod
    def _render_oracle():
        st.subheader("🔮 The Oracle")
        question = st.text_area("Ask the Oracle about your empire...", key="oracle_question")

        if st.button("Question", key="oracle_ask_btn", disabled=not question):
            client = SessionManager.get_backend_client()
            try:
                with show_loading("Consulting..."):
                    st.session_state.oracle_answer = client.ask_oracle(question)
            except BackendError as e:
                logger.error(f"Oracle request failed: {e}")
                st.session_state.oracle_answer = None
                st.warning(f"The Oracle is currently silent ({e})")

        answer = st.session_state.get('oracle_answer')
        if answer:
            st.info(f'"{answer}"')
