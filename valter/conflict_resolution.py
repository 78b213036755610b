"""
Conflict resolution engine for Pending Actions.

Three resolutions are offered for every queued action:

- Create New (APPROVE): the backend materializes the raw value as a new entity.
- Ignore (REJECT): the action is discarded.
- Merge: the source Island's offending field is rewritten to a chosen
  suggestion, then the action is retired with REJECT. The rewrite must
  succeed before the action is retired.

Every successful resolution is followed by a forced refresh of the queue and
the active table. Failures are returned as outcomes, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from .actions import PendingAction, ResolutionChoice, parse_action_context
from .exceptions import ContextParseError, ValterError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionControl:
    label: str
    choice: ResolutionChoice
    suggestion: Optional[str] = None

    @property
    def is_merge(self) -> bool:
        return self.suggestion is not None


class ResolutionControls(NamedTuple):
    """The three resolution controls of one action; merge holds one option per suggestion."""
    create_new: ResolutionControl
    ignore: ResolutionControl
    merge_options: Tuple[ResolutionControl, ...]


@dataclass(frozen=True)
class ResolutionOutcome:
    ok: bool
    action_id: str
    message: str
    error: Optional[ValterError] = None


def resolution_controls(action: PendingAction) -> ResolutionControls:
    merge_options = tuple(
        ResolutionControl(label=suggestion, choice=ResolutionChoice.REJECT, suggestion=suggestion)
        for suggestion in action.suggestions
    )
    return ResolutionControls(
        create_new=ResolutionControl("Create New", ResolutionChoice.APPROVE),
        ignore=ResolutionControl("Ignore", ResolutionChoice.REJECT),
        merge_options=merge_options,
    )


class ConflictResolver:
    """Mediates the Pending Action queue against the backend."""

    def __init__(self, client, refresh: Callable[[], None]):
        self.client = client
        self.refresh = refresh

    @staticmethod
    def queue(actions: Sequence[PendingAction]) -> List[PendingAction]:
        # The backend owns status; nothing is filtered locally.
        return list(actions)

    def approve(self, action_id: str) -> ResolutionOutcome:
        return self._resolve(action_id, ResolutionChoice.APPROVE, "Created new entry")

    def reject(self, action_id: str) -> ResolutionOutcome:
        return self._resolve(action_id, ResolutionChoice.REJECT, "Ignored")

    def _resolve(self, action_id: str, choice: ResolutionChoice, success_message: str) -> ResolutionOutcome:
        try:
            result = self.client.resolve_action(action_id, choice)
        except ValterError as e:
            logger.error(f"Resolving {action_id} with {choice.value} failed: {e}", exc_info=True)
            return ResolutionOutcome(False, action_id, str(e), e)

        self.refresh()
        return ResolutionOutcome(True, action_id, f"{success_message} ({result})")

    def merge(self, action: PendingAction, suggestion: str) -> ResolutionOutcome:
        """
        Rewrite the source field to ``suggestion`` and retire the action.

        If the rewrite fails the action is left Pending and nothing else is sent.
        """
        if not action.has_suggestions or suggestion not in action.suggestions:
            error = ContextParseError(action.context, f"{suggestion!r} is not a suggestion for this action")
            logger.warning(str(error))
            return ResolutionOutcome(False, action.id, str(error), error)

        try:
            context = parse_action_context(action.context)
        except ContextParseError as e:
            logger.warning(f"Merge of {action.id} aborted: {e.reason}")
            return ResolutionOutcome(False, action.id, str(e), e)

        try:
            self.client.update_island_field(
                context.source_island_kind,
                context.source_island_name,
                context.field,
                suggestion,
            )
        except ValterError as e:
            logger.error(f"Merge of {action.id} aborted, source rewrite failed: {e}", exc_info=True)
            return ResolutionOutcome(False, action.id, f"Auto-fix failed: {e}", e)

        try:
            self.client.resolve_action(action.id, ResolutionChoice.REJECT)
        except ValterError as e:
            logger.error(f"Source of {action.id} fixed but retiring the action failed: {e}", exc_info=True)
            self.refresh()
            return ResolutionOutcome(False, action.id, f"File fixed, but the action could not be retired: {e}", e)

        self.refresh()
        return ResolutionOutcome(
            True,
            action.id,
            f"Linked {context.source_island_name}.{context.field} to {suggestion}",
        )
