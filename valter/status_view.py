"""
Full-screen status views: missing configuration and lost connection.
Both replace the whole page until the operator rechecks or retries.
"""

import streamlit as st
from typing import Callable, Optional
import logging

from .config_loader import ConfigStatus
from .exceptions import MissingEnvironmentError, ValterError

logger = logging.getLogger(__name__)


class StatusView:

    @staticmethod
    def render_configuration_error(status: ConfigStatus, on_recheck: Callable[[], None]):
        """Takes over the screen while required environment values are missing."""
        error = MissingEnvironmentError(status.missing_keys)

        st.error("🔧 **Configuration Error**")
        st.write("The console cannot start because these environment values are missing:")
        for key in error.missing_keys:
            st.markdown(f"- `{key}`")

        st.info("💡 **Recovery Options:**")
        for suggestion in error.recovery_suggestions:
            st.info(f"• {suggestion}")

        st.button("🔄 Recheck", key="config_recheck_btn", type="primary", on_click=on_recheck)

    @staticmethod
    def render_disconnected(error: Optional[ValterError], on_retry: Callable[[], None]):
        """Shown when the initial config load failed; nothing else renders."""
        st.error("🔴 **Connection Lost**")
        st.write("The Valter core is unreachable. Ensure the backend is running.")
        if error is not None:
            st.caption(str(error))
            for suggestion in error.recovery_suggestions:
                st.caption(f"• {suggestion}")

        st.button("🔄 Retry", key="reconnect_btn", type="primary", on_click=on_retry)
