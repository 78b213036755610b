"""
Pending Action model and context parsing.

A Pending Action is raised by backend ingestion when an Island references a
Cloud value that does not exist. The backend stores its ``context`` and
``suggestions`` as text, so both are parsed defensively here.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import ContextParseError

logger = logging.getLogger(__name__)

# Accepted spellings of each context key, structured form first
_CONTEXT_KEYS = {
    'source_island_kind': ('sourceIslandKind', 'source_island_kind', 'source_island_type', 'sourceIslandType'),
    'source_island_name': ('sourceIslandName', 'source_island_name'),
    'field': ('field', 'sourceField', 'source_field'),
}

# Legacy plain-text context: "key=value" pairs separated by ';', newlines, or a
# comma that starts the next pair. Values may contain commas ("Acme, Inc.").
_LEGACY_PAIR = re.compile(
    r"([A-Za-z_][A-Za-z0-9_]*)[ \t]*[=:][ \t]*([^;\n]*?)[ \t]*"
    r"(?=[;\n]|,[ \t]*[A-Za-z_][A-Za-z0-9_]*[ \t]*[=:]|$)"
)


class ActionStatus(str, Enum):
    PENDING = "Pending"
    RESOLVED = "Resolved"
    REJECTED = "Rejected"


class ResolutionChoice(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class PendingAction(BaseModel):
    """One queued data-integrity conflict, as reported by the backend."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)

    id: str
    kind: str = Field(default="", alias="type")
    target_entity_kind: str = Field(default="", alias="target_table")
    key_field: str = ""
    raw_value: str = Field(default="", alias="value")
    context: Optional[Union[str, Dict[str, Any]]] = None
    suggestions: List[str] = Field(default_factory=list)
    status: str = ActionStatus.PENDING.value
    created_at: Optional[str] = None

    @field_validator('id', 'raw_value', mode='before')
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if value is None:
            return ""
        return str(value)

    @field_validator('suggestions', mode='before')
    @classmethod
    def _parse_suggestions(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                logger.warning(f"Unparsable suggestions payload ignored: {value[:80]!r}")
                return []
        if not isinstance(value, list):
            logger.warning(f"Suggestions payload is not a list: {type(value).__name__}")
            return []
        return [str(item) for item in value if item is not None]

    @property
    def has_suggestions(self) -> bool:
        return bool(self.suggestions)


def parse_pending_actions(raw: Any) -> List[PendingAction]:
    """
    Parse the backend ``pendingActions`` payload.

    Entries that cannot be parsed are skipped with a warning so one bad row
    never hides the rest of the queue.
    """
    if isinstance(raw, str):
        raw = json.loads(raw)
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError(f"pendingActions payload must be a list, got {type(raw).__name__}")

    actions = []
    for entry in raw:
        try:
            actions.append(PendingAction.model_validate(entry))
        except ValueError as e:
            logger.warning(f"Skipping malformed pending action: {e}")
    return actions


@dataclass(frozen=True)
class ActionContext:
    """Where the offending value was found."""
    source_island_kind: str
    source_island_name: str
    field: str


def _pick(mapping: Dict[str, Any], canonical: str) -> Optional[str]:
    for key in _CONTEXT_KEYS[canonical]:
        value = mapping.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _context_from_mapping(mapping: Dict[str, Any], raw: Any) -> ActionContext:
    values = {canonical: _pick(mapping, canonical) for canonical in _CONTEXT_KEYS}
    missing = [name for name, value in values.items() if value is None]
    if missing:
        raise ContextParseError(raw, f"context is missing {', '.join(missing)}")
    return ActionContext(**values)


def parse_action_context(raw: Any) -> ActionContext:
    """
    Turn a pending action's context into a merge target.

    Accepts a structured mapping, its JSON text, or the legacy plain-text
    ``key=value; key=value`` form.

    Raises:
        ContextParseError: If no complete context can be recovered
    """
    if isinstance(raw, dict):
        return _context_from_mapping(raw, raw)

    if raw is None or not str(raw).strip():
        raise ContextParseError(raw, "action has no context")

    text = str(raw).strip()
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        decoded = None

    if isinstance(decoded, dict):
        return _context_from_mapping(decoded, raw)
    if decoded is not None:
        raise ContextParseError(raw, f"context is a JSON {type(decoded).__name__}, not an object")

    pairs = {key: value.strip() for key, value in _LEGACY_PAIR.findall(text) if value.strip()}
    if not pairs:
        raise ContextParseError(raw, "context is neither JSON nor key=value text")
    return _context_from_mapping(pairs, raw)
