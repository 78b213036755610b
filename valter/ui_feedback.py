"""
UI feedback utilities for the Valter console.
Provides scoped loading indicators, toast notifications and status badges.
"""

import streamlit as st
from typing import Optional
from contextlib import contextmanager
import logging

from .cell_editor import CellPhase
from .sync_loop import ConnectionStatus

logger = logging.getLogger(__name__)

CELL_PHASE_ICONS = {
    CellPhase.IDLE: "",
    CellPhase.SAVING: "💾",
    CellPhase.SUCCESS: "✅",
    CellPhase.ERROR: "⚠️",
}

CONNECTION_BADGES = {
    ConnectionStatus.ONLINE: ("🟢", "Online"),
    ConnectionStatus.CONNECTING: ("🟡", "Connecting"),
    ConnectionStatus.DISCONNECTED: ("🔴", "Disconnected"),
}
DEGRADED_BADGE = ("🟠", "Degraded")


@contextmanager
def show_loading(message: str = "Loading..."):
    """Context manager for a spinner scoped to one operation."""
    with st.spinner(message):
        yield


class Notify:
    """
    Toast-first notification helper.

    Usage:
    Notify.success("Operation successful!")
    Notify.error("Something went wrong.")
    Notify.once("Unique message", notification_type="info", key="my_once_key")
    """

    _ICONS = {
        'success': '✅',
        'info': 'ℹ️',
        'warning': '⚠️',
        'error': '❌'
    }

    @staticmethod
    def _display_notification(message: str, notification_type: str = 'info') -> None:
        icon = Notify._ICONS.get(notification_type, 'ℹ️')
        logger.debug(f"Notify[{notification_type}]: {message}")
        st.toast(message, icon=icon)

    @staticmethod
    def success(message: str) -> None:
        Notify._display_notification(message, 'success')

    @staticmethod
    def info(message: str) -> None:
        Notify._display_notification(message, 'info')

    @staticmethod
    def warn(message: str) -> None:
        Notify._display_notification(message, 'warning')

    @staticmethod
    def error(message: str) -> None:
        Notify._display_notification(message, 'error')

    @staticmethod
    def once(message: str, notification_type: str = 'info', key: Optional[str] = None) -> None:
        """Show a notification only once per session."""
        once_key = f"notify_once_{key or message}"
        if st.session_state.get(once_key):
            return
        st.session_state[once_key] = True
        Notify._display_notification(message, notification_type)


def cell_phase_icon(phase: CellPhase) -> str:
    return CELL_PHASE_ICONS.get(phase, "")


def connection_badge(status: ConnectionStatus, error: Optional[Exception] = None) -> str:
    """Badge for the sidebar; an online session whose last refresh failed shows as degraded."""
    if status == ConnectionStatus.ONLINE and error is not None:
        icon, label = DEGRADED_BADGE
    else:
        icon, label = CONNECTION_BADGES.get(status, ("⚪", str(status)))
    return f"{icon} {label}"
