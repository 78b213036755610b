"""
Action Center view: the Pending Action queue with its resolution controls.
"""

import streamlit as st
from typing import List
import logging

from .actions import PendingAction
from .conflict_resolution import ConflictResolver, ResolutionOutcome, resolution_controls
from .error_handler import ErrorHandler
from .ui_feedback import Notify

logger = logging.getLogger(__name__)


class ActionCenterView:
    """Renders every pending action reported by the backend."""

    @staticmethod
    def render(actions: List[PendingAction], resolver: ConflictResolver):
        queue = resolver.queue(actions)

        st.subheader(f"⚠️ Conflict Resolution ({len(queue)})")
        if not queue:
            st.success("✅ No pending actions")
            return

        for action in queue:
            ActionCenterView._render_action(action, resolver)

    @staticmethod
    def _render_action(action: PendingAction, resolver: ConflictResolver):
        controls = resolution_controls(action)

        with st.container(border=True):
            st.caption(f"UNKNOWN ENTRY · {action.target_entity_kind or 'unknown target'}")
            st.markdown(f"~~{action.raw_value}~~ → **?**")

            if controls.merge_options:
                st.caption("🔗 Link to existing:")
                for index, option in enumerate(controls.merge_options):
                    if st.button(option.label, key=f"merge_{action.id}_{index}",
                                 help="Fix the source file and retire this action",
                                 use_container_width=True):
                        ActionCenterView._finish(resolver.merge(action, option.suggestion))

            col1, col2 = st.columns(2)
            with col1:
                if st.button(controls.create_new.label, key=f"approve_{action.id}",
                             type="primary", use_container_width=True):
                    ActionCenterView._finish(resolver.approve(action.id))
            with col2:
                if st.button(controls.ignore.label, key=f"reject_{action.id}",
                             use_container_width=True):
                    ActionCenterView._finish(resolver.reject(action.id))

    @staticmethod
    def _finish(outcome: ResolutionOutcome):
        if outcome.ok:
            Notify.success(outcome.message)
            st.rerun()
        elif outcome.error is not None:
            ErrorHandler.handle_error(outcome.error, f"resolving action {outcome.action_id}",
                                      user_message=outcome.message)
        else:
            Notify.error(outcome.message)
