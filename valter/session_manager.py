"""
Session state management for the Valter console.
Owns the per-session AppState, backend client, sync loop and cell editor,
and the current route.
"""

import streamlit as st
from typing import Dict, Any, Optional
from datetime import datetime
import logging

from .backend_client import BackendClient
from .cell_editor import CellEditor
from .config_loader import get_config_value, resolve_backend_url
from .conflict_resolution import ConflictResolver
from .error_handler import ErrorHandler
from .schema_model import EntityKind
from .sync_loop import AppState, SyncLoop
from .table_renderer import editable_kinds_from_config

logger = logging.getLogger(__name__)

# Pages
PAGE_DASHBOARD = "dashboard"
PAGE_LIST = "list"
PAGE_DETAIL = "detail"

DEFAULT_PAGE = PAGE_DASHBOARD


class SessionManager:
    """Manages Streamlit session state for the Valter console."""

    @staticmethod
    def initialize(config: Dict[str, Any]):
        """Initialize all session state variables with default values."""
        defaults = {
            'current_page': DEFAULT_PAGE,
            'route': {'kind': None, 'name': None, 'identity': None},
            'console_config': config,
            'config_status': None,
            'oracle_answer': None,
            'last_activity': datetime.now(),
            'session_id': None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

        if 'app_state' not in st.session_state:
            SessionManager._build_services(config)

        if not st.session_state.session_id:
            st.session_state.session_id = f"session_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
            logger.info(f"Session initialized: {st.session_state.session_id}")

    @staticmethod
    def _build_services(config: Dict[str, Any]):
        client = BackendClient(
            resolve_backend_url(config),
            timeout=float(get_config_value('backend', 'timeout_seconds', 15, config)),
        )
        state = AppState()
        sync = SyncLoop(
            client,
            state,
            poll_interval=float(get_config_value('sync', 'poll_interval_ms', 5000, config)) / 1000.0,
            settle_delay=float(get_config_value('sync', 'rescan_settle_ms', 1000, config)) / 1000.0,
            include_rows_in_poll=bool(get_config_value('sync', 'include_rows_in_poll', True, config)),
            on_error=ErrorHandler.record_error,
        )
        editable_kinds = editable_kinds_from_config(
            get_config_value('capabilities', 'editable_kinds', None, config)
        )

        def write_field(row_id: str, key: str, value: str):
            route = st.session_state.route
            return client.update_field(route['kind'], route['name'], row_id, key, value)

        st.session_state.backend_client = client
        st.session_state.app_state = state
        st.session_state.sync_loop = sync
        st.session_state.resolver = ConflictResolver(client, sync.refresh_after_mutation)
        st.session_state.cell_editor = CellEditor(
            write_field,
            display_window=float(get_config_value('sync', 'success_display_seconds', 2, config)),
        )
        st.session_state.editable_kinds = editable_kinds
        logger.info(f"Backend endpoint: {client.base_url}")

    @staticmethod
    def get_app_state() -> AppState:
        return st.session_state.app_state

    @staticmethod
    def get_sync_loop() -> SyncLoop:
        return st.session_state.sync_loop

    @staticmethod
    def get_resolver() -> ConflictResolver:
        return st.session_state.resolver

    @staticmethod
    def get_cell_editor() -> CellEditor:
        return st.session_state.cell_editor

    @staticmethod
    def get_backend_client() -> BackendClient:
        return st.session_state.backend_client

    @staticmethod
    def get_editable_kinds():
        return st.session_state.editable_kinds

    @staticmethod
    def get_current_page() -> str:
        """Get the current page."""
        return st.session_state.get('current_page', DEFAULT_PAGE)

    @staticmethod
    def get_route() -> Dict[str, Any]:
        return st.session_state.get('route', {'kind': None, 'name': None, 'identity': None})

    @staticmethod
    def navigate(page: str, kind: Optional[EntityKind] = None, name: Optional[str] = None,
                 identity: Optional[str] = None):
        """Set the current page and route, switching the active table when it changes."""
        old_page = st.session_state.get('current_page')
        old_route = SessionManager.get_route()
        route = {'kind': kind, 'name': name, 'identity': identity}
        moved = old_page != page or old_route != route

        if moved:
            logger.info(f"Page transition: {old_page} {old_route} -> {page} {route}")

            if old_route.get('identity') != identity or old_route.get('name') != name:
                SessionManager.get_cell_editor().clear()

            st.session_state.current_page = page
            st.session_state.route = route
            SessionManager.update_activity()

        sync = SessionManager.get_sync_loop()
        if page == PAGE_DASHBOARD:
            sync.set_active_view(None)
        elif not sync.set_active_view(kind, name) and moved and page == PAGE_DETAIL:
            # The detail page always works from a fresh copy of the row set
            sync.refresh_active_view()

    @staticmethod
    def update_activity():
        """Update last activity timestamp."""
        st.session_state.last_activity = datetime.now()

    @staticmethod
    def get_session_id() -> str:
        """Get the session ID."""
        return st.session_state.get('session_id', 'unknown')

    @staticmethod
    def reset_session():
        """Tear down the session: close the backend client and clear all state."""
        logger.info(f"Resetting session: {SessionManager.get_session_id()}")
        config = st.session_state.get('console_config')

        client = st.session_state.get('backend_client')
        if client is not None:
            client.close()

        for key in list(st.session_state.keys()):
            del st.session_state[key]

        if config is not None:
            SessionManager.initialize(config)

    @staticmethod
    def get_session_info() -> Dict[str, Any]:
        """Get session information for debugging."""
        state = SessionManager.get_app_state()
        return {
            'session_id': SessionManager.get_session_id(),
            'current_page': SessionManager.get_current_page(),
            'route': SessionManager.get_route(),
            'connection': state.connection.value,
            'active_view': str(state.active_view) if state.active_view else None,
            'pending_actions': len(state.pending_actions),
            'in_flight': sorted(state.in_flight),
        }
