"""
Entity detail view: one row of a Cloud or Island rendered as an in-place
editable form. Each field commits on its own through the cell editor.
"""

import streamlit as st
from typing import Any, Dict
import logging

from .cell_editor import CellPhase
from .schema_model import EntityKind, EntitySchema
from .session_manager import PAGE_LIST, SessionManager
from .table_renderer import FormField, build_form_fields, find_row
from .ui_feedback import Notify, cell_phase_icon

logger = logging.getLogger(__name__)


def widget_key(entity_name: str, field_key: str) -> str:
    return f"field_{entity_name}_{field_key}"


class EntityDetailView:
    """Manages the detail view for one ``(kind, name, identity)`` route."""

    @staticmethod
    def render(kind: EntityKind, name: str, identity: str):
        state = SessionManager.get_app_state()

        if st.button("← Back to List", key="detail_back_btn"):
            SessionManager.navigate(PAGE_LIST, kind, name)
            st.rerun()

        schema = state.registry.schema_of(kind, name)
        if schema is None:
            st.warning(f"Entity definition not found: {kind.value}/{name}")
            return

        if state.rows_error is not None:
            st.error(f"❌ Could not load {name}: {state.rows_error}")
            return

        if not state.rows_loaded:
            st.info("Loading data...")
            return

        row = find_row(state.rows, identity)
        if row is None:
            st.warning(f"Entity not found (ID: {identity})")
            return

        st.header(str(row.get('name') or identity))
        st.caption(f"Editing {name}")

        EntityDetailView._render_form(schema, row, identity)

        if kind not in SessionManager.get_editable_kinds():
            st.caption(f"* {kind.value.title()} entities are read-only in this version.")

    @staticmethod
    def _render_form(schema: EntitySchema, row: Dict[str, Any], identity: str):
        editor = SessionManager.get_cell_editor()
        entity_name = str(row.get('name') or identity)
        fields = build_form_fields(schema, row, SessionManager.get_editable_kinds())

        st.subheader(f"{schema.name} Details")
        columns = st.columns(2)
        for index, form_field in enumerate(fields):
            with columns[index % 2]:
                EntityDetailView._render_field(editor, entity_name, form_field)

    @staticmethod
    def _render_field(editor, entity_name: str, form_field: FormField):
        key = widget_key(entity_name, form_field.key)
        cell_state = editor.state(entity_name, form_field.key)

        # Keep a failed value in the box for correction; otherwise show the fetched value
        if cell_state.phase == CellPhase.ERROR and cell_state.pending_value is not None:
            st.session_state.setdefault(key, cell_state.pending_value)
        elif key not in st.session_state or cell_state.phase == CellPhase.IDLE:
            st.session_state[key] = form_field.value

        label = f"{form_field.key} {cell_phase_icon(cell_state.phase)}".strip()
        help_text = f"Options: {', '.join(form_field.options)}" if form_field.options else None

        input_col, cancel_col = st.columns([6, 1])
        with input_col:
            st.text_input(
                label,
                key=key,
                disabled=not form_field.editable,
                help=help_text,
                on_change=EntityDetailView._on_commit,
                args=(entity_name, form_field),
            )
        with cancel_col:
            if form_field.editable:
                st.button("↺", key=f"cancel_{key}", help="Discard this edit",
                          on_click=EntityDetailView._on_cancel,
                          args=(entity_name, form_field))

        if cell_state.phase == CellPhase.ERROR:
            st.caption(f"⚠️ {cell_state.error_message}")

    @staticmethod
    def _on_commit(entity_name: str, form_field: FormField):
        editor = SessionManager.get_cell_editor()
        key = widget_key(entity_name, form_field.key)
        new_value = st.session_state.get(key, "")

        if not editor.begin_edit(entity_name, form_field.key, form_field.editable):
            return

        result = editor.commit(entity_name, form_field.key, new_value, form_field.value,
                               editable=form_field.editable)
        if result.phase == CellPhase.SUCCESS:
            # The authoritative value comes from a re-fetch, never from the edit
            SessionManager.get_sync_loop().refresh_active_view()
        elif result.phase == CellPhase.ERROR:
            Notify.error(f"Saving {form_field.key} failed")

    @staticmethod
    def _on_cancel(entity_name: str, form_field: FormField):
        editor = SessionManager.get_cell_editor()
        editor.cancel(entity_name, form_field.key)
        st.session_state[widget_key(entity_name, form_field.key)] = form_field.value
