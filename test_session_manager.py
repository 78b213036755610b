"""
Tests for session_manager module with a mocked Streamlit session.
"""

import logging
import pytest
from unittest.mock import MagicMock, patch

from valter.config_loader import get_default_config
from valter.schema_model import EntityKind
from valter.session_manager import (
    PAGE_DASHBOARD,
    PAGE_DETAIL,
    PAGE_LIST,
    SessionManager,
)
from valter.sync_loop import ConnectionStatus, ViewKey
from test_fixtures import FakeBackendClient, MockSessionState


@pytest.fixture
def fake_client():
    return FakeBackendClient()


@pytest.fixture
def session(fake_client):
    """Initialized session backed by the in-memory backend."""
    mock_state = MockSessionState()
    with patch('streamlit.session_state', mock_state), \
         patch.dict('os.environ', {}, clear=True), \
         patch('valter.session_manager.BackendClient', MagicMock(return_value=fake_client)) as factory:
        SessionManager.initialize(get_default_config())
        yield {'state': mock_state, 'client': fake_client, 'factory': factory}


class TestInitialize:
    """Test cases for session initialization."""

    def test_defaults_and_services(self, session):
        state = session['state']

        assert state.current_page == PAGE_DASHBOARD
        assert state.session_id.startswith("session_")
        assert SessionManager.get_app_state().connection == ConnectionStatus.CONNECTING
        assert SessionManager.get_backend_client() is session['client']
        assert SessionManager.get_editable_kinds() == frozenset({EntityKind.ISLAND})

    def test_client_built_from_config(self, session):
        url, = session['factory'].call_args[0]

        assert url.endswith('/graphql')
        assert session['factory'].call_args[1]['timeout'] == 15.0

    def test_endpoint_logged_from_client(self, caplog):
        client = FakeBackendClient(base_url="http://valter.internal:9000/graphql")
        with patch('streamlit.session_state', MockSessionState()), \
             patch('valter.session_manager.BackendClient', MagicMock(return_value=client)), \
             caplog.at_level(logging.INFO, logger='valter.session_manager'):
            SessionManager.initialize(get_default_config())

        assert "Backend endpoint: http://valter.internal:9000/graphql" in caplog.text

    def test_sync_timing_from_config(self, session):
        sync = SessionManager.get_sync_loop()

        assert sync.poll_interval == 5.0
        assert sync.settle_delay == 1.0
        assert SessionManager.get_cell_editor().display_window == 2.0

    def test_second_initialize_keeps_services(self, session):
        app_state = SessionManager.get_app_state()

        SessionManager.initialize(get_default_config())

        assert SessionManager.get_app_state() is app_state
        assert session['factory'].call_count == 1


class TestNavigation:
    """Test cases for page navigation."""

    def test_navigate_to_list_fetches_rows(self, session):
        SessionManager.get_sync_loop().initial_load()

        SessionManager.navigate(PAGE_LIST, EntityKind.ISLAND, 'Projects')

        assert SessionManager.get_current_page() == PAGE_LIST
        assert SessionManager.get_app_state().active_view == ViewKey(EntityKind.ISLAND, 'Projects')
        assert session['client'].calls_to('fetch_rows') == [('fetch_rows', EntityKind.ISLAND, 'Projects')]

    def test_list_to_detail_refetches_rows(self, session):
        SessionManager.navigate(PAGE_LIST, EntityKind.ISLAND, 'Projects')
        SessionManager.navigate(PAGE_DETAIL, EntityKind.ISLAND, 'Projects', 'Alpha')

        assert SessionManager.get_route()['identity'] == 'Alpha'
        assert len(session['client'].calls_to('fetch_rows')) == 2

    def test_repeated_navigation_does_not_refetch(self, session):
        SessionManager.navigate(PAGE_DETAIL, EntityKind.ISLAND, 'Projects', 'Alpha')
        SessionManager.navigate(PAGE_DETAIL, EntityKind.ISLAND, 'Projects', 'Alpha')

        assert len(session['client'].calls_to('fetch_rows')) == 1

    def test_dashboard_clears_active_view(self, session):
        SessionManager.navigate(PAGE_LIST, EntityKind.ISLAND, 'Projects')
        SessionManager.navigate(PAGE_DASHBOARD)

        assert SessionManager.get_app_state().active_view is None

    def test_changing_row_clears_edit_state(self, session):
        editor = SessionManager.get_cell_editor()
        SessionManager.navigate(PAGE_DETAIL, EntityKind.ISLAND, 'Projects', 'Alpha')
        editor.set_pending('Alpha', 'client', 'Pho')

        SessionManager.navigate(PAGE_DETAIL, EntityKind.ISLAND, 'Projects', 'Beta')

        assert editor.state('Alpha', 'client').pending_value is None

    def test_cell_writer_uses_current_route(self, session):
        SessionManager.navigate(PAGE_DETAIL, EntityKind.ISLAND, 'Projects', 'Alpha')
        editor = SessionManager.get_cell_editor()

        editor.commit('Alpha', 'status', 'paused', 'active')

        assert session['client'].calls_to('update_field') == [
            ('update_field', EntityKind.ISLAND, 'Projects', 'Alpha', 'status', 'paused')
        ]


class TestSessionLifecycle:

    def test_session_info(self, session):
        info = SessionManager.get_session_info()

        assert info['current_page'] == PAGE_DASHBOARD
        assert info['connection'] == 'connecting'
        assert info['pending_actions'] == 0

    def test_reset_session_closes_client_and_rebuilds(self, session):
        old_state = SessionManager.get_app_state()

        SessionManager.reset_session()

        assert session['client'].calls_to('close') == [('close',)]
        assert SessionManager.get_app_state() is not old_state
        assert SessionManager.get_current_page() == PAGE_DASHBOARD
