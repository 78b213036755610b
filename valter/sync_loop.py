"""
Application state and the sync loop.

``AppState`` is the single owner of everything the console shows: the
backend config, the Pending Action queue and the active table. ``SyncLoop``
is the only code that replaces those values, always wholesale.

Row fetches carry a ``ViewToken``; a response for a view that has since been
replaced is discarded. Each operation has an in-flight guard, so a trigger
that fires while the same operation is running issues no second request.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

from .actions import PendingAction
from .exceptions import BackendError, ValterError
from .schema_model import AppConfig, EntityKind, SchemaRegistry

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_SETTLE_SECONDS = 1.0

OP_CONFIG = "config"
OP_PENDING_ACTIONS = "pendingActions"
OP_ROWS = "rows"
OP_RESCAN = "rescan"


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    ONLINE = "online"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class ViewKey:
    kind: EntityKind
    name: str

    def __str__(self) -> str:
        return f"{self.kind.value}/{self.name}"


@dataclass(frozen=True)
class ViewToken:
    view: ViewKey
    generation: int


@dataclass
class AppState:
    """Session-scoped state; created at session start, dropped at session end."""
    config: Optional[AppConfig] = None
    registry: SchemaRegistry = field(default_factory=lambda: SchemaRegistry(None))
    pending_actions: List[PendingAction] = field(default_factory=list)
    connection: ConnectionStatus = ConnectionStatus.CONNECTING
    connection_error: Optional[ValterError] = None
    active_view: Optional[ViewKey] = None
    view_generation: int = 0
    rows: List[Dict[str, Any]] = field(default_factory=list)
    rows_view: Optional[ViewKey] = None
    rows_error: Optional[ValterError] = None
    actions_error: Optional[ValterError] = None
    rescan_error: Optional[ValterError] = None
    in_flight: Set[str] = field(default_factory=set)
    last_synced_at: Optional[float] = None

    def replace_config(self, config: AppConfig) -> None:
        self.config = config
        self.registry = SchemaRegistry(config)

    def begin_view(self, view: Optional[ViewKey]) -> bool:
        """
        Make ``view`` the active view.

        Returns:
            True if the view changed; rows of the old view are dropped
        """
        if view == self.active_view:
            return False
        logger.info(f"Active view: {self.active_view} -> {view}")
        self.active_view = view
        self.view_generation += 1
        self.rows = []
        self.rows_view = None
        self.rows_error = None
        return True

    def current_token(self) -> Optional[ViewToken]:
        if self.active_view is None:
            return None
        return ViewToken(self.active_view, self.view_generation)

    def is_current(self, token: ViewToken) -> bool:
        return token == self.current_token()

    def is_loading(self, operation: str) -> bool:
        return operation in self.in_flight

    @property
    def rows_loaded(self) -> bool:
        return self.active_view is not None and self.rows_view == self.active_view

    @contextmanager
    def guard(self, operation: str) -> Iterator[bool]:
        """Yield False if ``operation`` is already running, else mark it running."""
        if operation in self.in_flight:
            logger.debug(f"{operation} already in flight, skipping")
            yield False
            return
        self.in_flight.add(operation)
        try:
            yield True
        finally:
            self.in_flight.discard(operation)


class SyncLoop:
    """Keeps AppState eventually consistent with the backend."""

    def __init__(self, client, state: AppState,
                 poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
                 settle_delay: float = DEFAULT_SETTLE_SECONDS,
                 include_rows_in_poll: bool = True,
                 on_error: Optional[Callable[[Exception, str], None]] = None,
                 sleeper: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        self.client = client
        self.state = state
        self.poll_interval = poll_interval
        self.settle_delay = settle_delay
        self.include_rows_in_poll = include_rows_in_poll
        self.on_error = on_error
        self.sleeper = sleeper
        self.clock = clock

    def initial_load(self) -> bool:
        """
        Fetch config, then pending actions.

        A config failure leaves the session disconnected; the UI must not
        render past that point.
        """
        self.state.connection = ConnectionStatus.CONNECTING
        if not self.refresh_config():
            return False
        self.refresh_pending_actions()
        self.state.last_synced_at = self.clock()
        return True

    def refresh_config(self) -> bool:
        with self.state.guard(OP_CONFIG) as acquired:
            if not acquired:
                return False
            try:
                config = self.client.fetch_config()
            except BackendError as e:
                self._report(e, OP_CONFIG, f"Config fetch failed: {e}")
                self.state.connection_error = e
                if self.state.config is None or self.state.connection != ConnectionStatus.ONLINE:
                    self.state.connection = ConnectionStatus.DISCONNECTED
                return False

            self.state.replace_config(config)
            self.state.connection = ConnectionStatus.ONLINE
            self.state.connection_error = None
            return True

    def refresh_pending_actions(self) -> bool:
        with self.state.guard(OP_PENDING_ACTIONS) as acquired:
            if not acquired:
                return False
            try:
                actions = self.client.fetch_pending_actions()
            except BackendError as e:
                self._report(e, OP_PENDING_ACTIONS, f"Pending action fetch failed: {e}")
                self.state.actions_error = e
                return False

            self.state.pending_actions = actions
            self.state.actions_error = None
            return True

    def set_active_view(self, kind: Optional[EntityKind], name: Optional[str] = None) -> bool:
        """
        Switch the active table; rows are fetched when the view changes.

        Returns:
            True if the view changed
        """
        view = ViewKey(EntityKind.parse(kind), name) if kind is not None and name else None
        changed = self.state.begin_view(view)
        if changed and view is not None:
            self.refresh_active_view()
        return changed

    def refresh_active_view(self) -> bool:
        """Re-fetch the active table, discarding the response if the view moved on."""
        token = self.state.current_token()
        if token is None:
            return False

        with self.state.guard(f"{OP_ROWS}:{token.view}") as acquired:
            if not acquired:
                return False
            try:
                rows = self.client.fetch_rows(token.view.kind, token.view.name)
            except BackendError as e:
                self._report(e, f"{OP_ROWS}:{token.view}", f"Row fetch for {token.view} failed: {e}")
                if self.state.is_current(token):
                    self.state.rows_error = e
                return False

            if not self.state.is_current(token):
                logger.debug(f"Discarding stale rows for {token.view}")
                return False

            self.state.rows = rows
            self.state.rows_view = token.view
            self.state.rows_error = None
            return True

    def is_due(self) -> bool:
        last = self.state.last_synced_at
        return last is None or self.clock() - last >= self.poll_interval

    def poll(self) -> bool:
        """
        One timer tick: config and pending actions, plus the active table.

        Returns:
            True if anything shown on screen changed
        """
        before = self._fingerprint()
        if self.state.config is None:
            self.initial_load()
        else:
            self.refresh_config()
            self.refresh_pending_actions()
        if self.include_rows_in_poll and self.state.connection == ConnectionStatus.ONLINE:
            self.refresh_active_view()
        self.state.last_synced_at = self.clock()
        return self._fingerprint() != before

    def rescan(self) -> bool:
        """
        Ask the backend to re-ingest, wait the settle delay, then refresh
        pending actions and the active table without waiting for the timer.
        """
        with self.state.guard(OP_RESCAN) as acquired:
            if not acquired:
                return False
            try:
                self.client.rescan_islands()
            except BackendError as e:
                self._report(e, OP_RESCAN, f"Rescan failed: {e}")
                self.state.rescan_error = e
                return False

            self.state.rescan_error = None

            if self.settle_delay > 0:
                self.sleeper(self.settle_delay)

        self.refresh_pending_actions()
        self.refresh_active_view()
        self.state.last_synced_at = self.clock()
        return True

    def handle_rescan_signal(self) -> bool:
        """Entry point for rescan requests delivered by the host application."""
        logger.info("Rescan signal received")
        return self.rescan()

    def refresh_after_mutation(self) -> None:
        self.refresh_pending_actions()
        self.refresh_active_view()

    def _report(self, error: BackendError, operation: str, message: str) -> None:
        """Log a failed fetch once, at the moment it fails."""
        logger.error(message)
        if self.on_error is not None:
            self.on_error(error, operation)

    def _fingerprint(self):
        state = self.state
        return (
            state.connection,
            state.connection_error is not None,
            state.config,
            tuple(state.pending_actions),
            state.rows_view,
            repr(state.rows),
        )
