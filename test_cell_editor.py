"""
Unit tests for cell_editor module: the per-cell edit state machine.
"""

from unittest.mock import MagicMock

from valter.cell_editor import IDLE_STATE, CellEditor, CellPhase
from valter.exceptions import FieldUpdateRejected, TransportError


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestCellEditor:
    """Test cases for CellEditor."""

    def setup_method(self):
        self.writer = MagicMock(return_value="Success")
        self.clock = FakeClock()
        self.editor = CellEditor(self.writer, display_window=2.0, clock=self.clock)

    def test_initial_state_is_idle(self):
        assert self.editor.state('Alpha', 'client') == IDLE_STATE

    def test_unchanged_value_issues_no_request(self):
        state = self.editor.commit('Alpha', 'client', 'Phenix', 'Phenix')

        assert state.phase == CellPhase.IDLE
        self.writer.assert_not_called()

    def test_successful_commit(self):
        state = self.editor.commit('Alpha', 'client', 'Phoenix Ltd', 'Phenix')

        assert state.phase == CellPhase.SUCCESS
        self.writer.assert_called_once_with('Alpha', 'client', 'Phoenix Ltd')

    def test_success_falls_back_to_idle_after_window(self):
        self.editor.commit('Alpha', 'client', 'Phoenix Ltd', 'Phenix')

        self.clock.now = 101.5
        assert self.editor.state('Alpha', 'client').phase == CellPhase.SUCCESS

        self.clock.now = 102.0
        assert self.editor.state('Alpha', 'client').phase == CellPhase.IDLE

    def test_failed_commit_keeps_value_for_correction(self):
        self.writer.side_effect = FieldUpdateRejected('updateIslandField', 'File locked')

        state = self.editor.commit('Alpha', 'client', 'Phoenix Ltd', 'Phenix')

        assert state.phase == CellPhase.ERROR
        assert state.pending_value == 'Phoenix Ltd'
        assert 'File locked' in state.error_message

    def test_error_persists_until_next_edit(self):
        self.writer.side_effect = TransportError('updateIslandField', 'Connection refused')
        self.editor.commit('Alpha', 'client', 'Phoenix Ltd', 'Phenix')

        self.clock.now += 60
        assert self.editor.state('Alpha', 'client').phase == CellPhase.ERROR

        assert self.editor.begin_edit('Alpha', 'client', editable=True)
        assert self.editor.state('Alpha', 'client') == IDLE_STATE

    def test_no_automatic_retry(self):
        self.writer.side_effect = TransportError('updateIslandField', 'Connection refused')

        self.editor.commit('Alpha', 'client', 'Phoenix Ltd', 'Phenix')

        assert self.writer.call_count == 1

    def test_read_only_cell_never_edits(self):
        assert not self.editor.begin_edit('Alpha', 'updated_at', editable=False)

        state = self.editor.commit('Alpha', 'updated_at', '2025-01-01', '2024-05-01', editable=False)

        assert state.phase == CellPhase.IDLE
        self.writer.assert_not_called()

    def test_saving_cell_refuses_second_commit(self):
        """A commit that arrives while the same cell is saving issues no request."""
        editor = self.editor
        nested_results = []

        def reentrant_writer(row_id, key, value):
            nested_results.append(editor.begin_edit(row_id, key, editable=True))
            nested_results.append(editor.commit(row_id, key, 'other', 'Phenix').phase)
            return "Success"

        editor.writer = reentrant_writer
        editor.commit('Alpha', 'client', 'Phoenix Ltd', 'Phenix')

        assert nested_results == [False, CellPhase.SAVING]

    def test_cancel_discards_pending_value(self):
        self.editor.set_pending('Alpha', 'client', 'Phoe')

        assert self.editor.state('Alpha', 'client').pending_value == 'Phoe'

        state = self.editor.cancel('Alpha', 'client')

        assert state == IDLE_STATE
        self.writer.assert_not_called()

    def test_cells_are_independent(self):
        self.writer.side_effect = [FieldUpdateRejected('updateIslandField', 'nope'), "Success"]

        self.editor.commit('Alpha', 'client', 'x', 'Phenix')
        self.editor.commit('Alpha', 'status', 'closed', 'active')

        assert self.editor.state('Alpha', 'client').phase == CellPhase.ERROR
        assert self.editor.state('Alpha', 'status').phase == CellPhase.SUCCESS

    def test_clear(self):
        self.editor.commit('Alpha', 'client', 'x', 'Phenix')

        self.editor.clear()

        assert self.editor.state('Alpha', 'client') == IDLE_STATE
