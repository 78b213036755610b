"""
Main Streamlit application for the Valter console.
Schema-driven dashboard over Clouds and Islands with conflict resolution
for the Pending Actions raised by the Valter core.
"""

import streamlit as st
import logging

from valter.config_loader import (
    check_environment,
    get_config_value,
    load_config,
    validate_config,
)

RESCAN_QUERY_PARAM = "rescan"


def get_logging_level(level_str):
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)


# Configure logging dynamically from config
config = load_config()
log_level_str = get_config_value('logging', 'level', 'INFO', config)
logging.basicConfig(
    level=get_logging_level(log_level_str),
    format=get_config_value('logging', 'format', '%(levelname)s - %(message)s', config)
)
logger = logging.getLogger(__name__)
logger.info(f"Logging configured to level: {log_level_str}")

if not validate_config(config):
    logger.warning("Configuration issues detected, using defaults where necessary")

st.set_page_config(
    page_title=get_config_value('ui', 'page_title', 'Valter Console', config),
    page_icon="🗂️",
    layout="wide",
    initial_sidebar_state="expanded"
)


def main():
    """Main application entry point."""
    from valter.error_handler import ErrorHandler, ErrorType
    from valter.session_manager import SessionManager
    from valter.status_view import StatusView
    from valter.sync_loop import ConnectionStatus
    from valter.ui_feedback import show_loading

    try:
        SessionManager.initialize(config)

        # Missing environment values pre-empt everything, including the disconnected state
        if st.session_state.config_status is None:
            st.session_state.config_status = check_environment(config)
        status = st.session_state.config_status
        if status.is_error:
            StatusView.render_configuration_error(status, recheck_environment)
            return

        state = SessionManager.get_app_state()
        sync = SessionManager.get_sync_loop()

        if state.connection == ConnectionStatus.CONNECTING:
            with show_loading("Connecting to the Valter core..."):
                sync.initial_load()

        if state.connection == ConnectionStatus.DISCONNECTED:
            StatusView.render_disconnected(state.connection_error, sync.initial_load)
            return

        handle_rescan_signal(sync)
        render_sidebar()
        render_main_content()
        render_sync_fragment()

    except Exception as e:
        ErrorHandler.handle_error(e, "application startup", ErrorType.SYSTEM)


def recheck_environment():
    st.session_state.config_status = check_environment(config)


def handle_rescan_signal(sync):
    """A host application requests a rescan by opening the page with ?rescan=1."""
    if st.query_params.get(RESCAN_QUERY_PARAM):
        del st.query_params[RESCAN_QUERY_PARAM]
        from valter.ui_feedback import Notify, show_loading
        with show_loading("Rescanning Islands..."):
            if sync.handle_rescan_signal():
                Notify.success("Rescan complete")


def render_sidebar():
    """Render navigation over every Cloud and Island of the current config."""
    from valter.schema_model import EntityKind
    from valter.session_manager import PAGE_DASHBOARD, PAGE_LIST, SessionManager
    from valter.sync_loop import ConnectionStatus
    from valter.ui_feedback import connection_badge

    state = SessionManager.get_app_state()

    with st.sidebar:
        st.title("VALTER")
        st.caption(connection_badge(state.connection, state.connection_error))
        if state.connection == ConnectionStatus.ONLINE and state.connection_error is not None:
            st.warning(f"Showing last known data: {state.connection_error}")

        if st.button("🏠 Dashboard", key="nav_dashboard", use_container_width=True):
            SessionManager.navigate(PAGE_DASHBOARD)
            st.rerun()

        sections = [
            (EntityKind.CLOUD, "Clouds", "🗄️"),
            (EntityKind.ISLAND, "Islands", "📁"),
        ]
        for kind, title, icon in sections:
            names = state.registry.names(kind)
            if not names:
                continue
            st.header(title)
            for name in names:
                if st.button(f"{icon} {name}", key=f"nav_{kind.value}_{name}", use_container_width=True):
                    SessionManager.navigate(PAGE_LIST, kind, name)
                    st.rerun()


def render_main_content():
    """Render main content area based on current page."""
    from valter.error_handler import with_error_handling
    from valter.session_manager import PAGE_DASHBOARD, PAGE_DETAIL, PAGE_LIST, SessionManager

    page = SessionManager.get_current_page()
    route = SessionManager.get_route()

    if page == PAGE_DASHBOARD:
        from valter.dashboard_view import DashboardView
        with_error_handling(DashboardView.render, "rendering dashboard")
    elif page == PAGE_LIST:
        from valter.entity_list_view import EntityListView
        with_error_handling(lambda: EntityListView.render(route['kind'], route['name']),
                            f"rendering {route['name']} list")
    elif page == PAGE_DETAIL:
        from valter.entity_detail_view import EntityDetailView
        with_error_handling(lambda: EntityDetailView.render(route['kind'], route['name'], route['identity']),
                            f"rendering {route['name']} detail")
    else:
        st.error(f"Unknown page: {page}")


def render_sync_fragment():
    """Recurring refresh of config, pending actions and the active table."""
    from valter.session_manager import SessionManager

    sync = SessionManager.get_sync_loop()

    @st.fragment(run_every=sync.poll_interval)
    def _poll():
        if sync.is_due() and sync.poll():
            st.rerun(scope="app")

    _poll()


if __name__ == "__main__":
    main()
