"""
Entity list view: the table of every row of one Cloud or Island.
"""

import streamlit as st
from typing import Dict, Optional
import logging

from .error_handler import ErrorHandler
from .exceptions import BackendError
from .schema_model import EntityKind, IslandSchema
from .session_manager import PAGE_DETAIL, SessionManager
from .table_renderer import TableModel, build_table
from .ui_feedback import Notify, show_loading

logger = logging.getLogger(__name__)


class EntityListView:
    """Manages the list view for one ``(kind, name)`` route."""

    @staticmethod
    def render(kind: EntityKind, name: str):
        state = SessionManager.get_app_state()
        sync = SessionManager.get_sync_loop()

        schema = state.registry.schema_of(kind, name)
        if schema is None:
            st.warning(f"Entity definition not found: {kind.value}/{name}")
            if state.rows_loaded:
                # Without a definition the columns come from the data itself
                EntityListView._render_table(kind, name, build_table(None, state.rows, title=name))
            return

        st.header(f"{name} List")
        st.caption(f"Manage all {name} entries")

        if st.button("🔄 Refresh", key="list_refresh_btn"):
            with show_loading("Loading data..."):
                sync.refresh_active_view()

        if state.rows_error is not None:
            ErrorHandler.show_error(state.rows_error, f"loading {kind.value}/{name}")
            return

        if not state.rows_loaded:
            st.info("Loading data...")
            return

        table = build_table(schema, state.rows)
        EntityListView._render_table(kind, name, table)

        if isinstance(schema, IslandSchema):
            EntityListView._render_create_island(schema)

    @staticmethod
    def _render_table(kind: EntityKind, name: str, table: TableModel):
        if table.is_empty:
            st.info(table.empty_message)
            return

        frame = table.to_dataframe()
        frame.columns = [column.replace("_", " ").upper() for column in table.columns]

        table_key = f"table_{kind.value}_{name}"
        event = st.dataframe(
            frame,
            hide_index=True,
            use_container_width=True,
            on_select="rerun",
            selection_mode="single-row",
            key=table_key,
        )
        st.caption(f"Showing {len(table.cells)} entries")

        selected = EntityListView._selected_identity(event, table)
        if selected is not None:
            # Drop the selection so returning to the list does not reopen the row
            st.session_state.pop(table_key, None)
            SessionManager.navigate(PAGE_DETAIL, kind, name, selected)
            st.rerun()

    @staticmethod
    def _selected_identity(event, table: TableModel) -> Optional[str]:
        rows = getattr(getattr(event, 'selection', None), 'rows', None) or []
        if not rows:
            return None
        index = rows[0]
        if index >= len(table.identities):
            return None
        identity = table.identities[index]
        if identity is None:
            Notify.warn("This row has neither an id nor a name and cannot be opened")
        return identity

    @staticmethod
    def _render_create_island(schema: IslandSchema):
        with st.expander(f"➕ New {schema.name}", expanded=False):
            with st.form(key=f"create_island_{schema.name}", clear_on_submit=True):
                new_name = st.text_input("Name")
                raw_pairs = st.text_area(
                    "Initial fields (one key=value per line)",
                    help="Optional metadata written to the new Island's meta file",
                )
                submitted = st.form_submit_button("Create Island")

            if submitted:
                EntityListView._create_island(schema.name, new_name, raw_pairs)

    @staticmethod
    def _create_island(island_kind: str, name: str, raw_pairs: str):
        if not name.strip():
            Notify.warn("A name is required")
            return

        initial_data = parse_key_value_lines(raw_pairs)
        client = SessionManager.get_backend_client()
        try:
            with show_loading("Creating..."):
                client.create_island(island_kind, name.strip(), initial_data)
        except BackendError as e:
            ErrorHandler.handle_error(e, f"creating {island_kind} {name}")
            return

        Notify.success(f"Created {name}")
        SessionManager.get_sync_loop().refresh_active_view()
        st.rerun()


def parse_key_value_lines(text: str) -> Dict[str, str]:
    """Parse ``key=value`` lines; blank lines and lines without '=' are skipped."""
    pairs: Dict[str, str] = {}
    for line in (text or "").splitlines():
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        if key.strip():
            pairs[key.strip()] = value.strip()
    return pairs
