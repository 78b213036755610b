"""
Dynamic table and form rendering helpers.

Turns ``(schema, rows)`` into a column set and cell mapping, and
``(schema, row)`` into an editable field list. Nothing here touches
Streamlit; the list and detail views only display what these helpers build.
"""

import logging
from dataclasses import dataclass, field
from numbers import Number
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

import pandas as pd

from .schema_model import (
    CloudSchema,
    EntityKind,
    EntitySchema,
    IslandSchema,
    infer_columns,
    kind_of,
)

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

DEFAULT_EDITABLE_KINDS: FrozenSet[EntityKind] = frozenset({EntityKind.ISLAND})

# Column names starting with one of these prefixes are computed totals
COMPUTED_COLUMN_PREFIXES = ("total", "ukupno")

READ_ONLY_ISLAND_COLUMNS = frozenset({"updated_at"})


@dataclass
class TableModel:
    """Columns plus display text for every cell, one dict per row."""
    columns: List[str]
    cells: List[Dict[str, str]] = field(default_factory=list)
    identities: List[Optional[str]] = field(default_factory=list)
    empty_message: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.empty_message is not None

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(self.cells, columns=self.columns)


@dataclass(frozen=True)
class FormField:
    key: str
    value: str
    editable: bool
    options: Optional[List[str]] = None


def editable_kinds_from_config(kinds: Optional[Iterable[str]]) -> FrozenSet[EntityKind]:
    """Capability flags from the ``capabilities.editable_kinds`` setting."""
    if kinds is None:
        return DEFAULT_EDITABLE_KINDS
    return frozenset(EntityKind.parse(kind) for kind in kinds)


def is_editable(schema: EntitySchema, column: str,
                editable_kinds: FrozenSet[EntityKind] = DEFAULT_EDITABLE_KINDS) -> bool:
    """
    Whether ``column`` of ``schema`` may be edited in place.

    Computed Island columns (updated_at, aggregation outputs and ``total_*``
    columns) are always read-only since the next aggregation pass overwrites
    them.
    """
    kind = kind_of(schema)
    if kind not in editable_kinds:
        return False

    if isinstance(schema, CloudSchema):
        return True
    if isinstance(schema, IslandSchema):
        if column in READ_ONLY_ISLAND_COLUMNS:
            return False
        if column in schema.aggregation_names():
            return False
        return not column.startswith(COMPUTED_COLUMN_PREFIXES)
    raise TypeError(f"Unhandled schema type: {type(schema).__name__}")


def format_cell(value: Any) -> str:
    """Display text for one scalar cell; absent and null render empty."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, Number):
        if float(value).is_integer():
            return f"{int(value):,}"
        return f"{float(value):,.2f}".rstrip("0").rstrip(".")
    return str(value)


def _is_composite(value: Any) -> bool:
    return isinstance(value, (dict, list, tuple, set))


def infer_columns_from_rows(rows: Sequence[Row]) -> List[str]:
    """Fallback columns: the first row's keys, minus composite values."""
    if not rows:
        return []
    first = rows[0]
    return [key for key, value in first.items() if not _is_composite(value)]


def row_identity(row: Row) -> Optional[str]:
    """A row's identity: its ``id`` if present, else its ``name``."""
    for key in ("id", "name"):
        value = row.get(key)
        if value is not None and str(value) != "":
            return str(value)
    return None


def find_row(rows: Iterable[Row], identity: str) -> Optional[Row]:
    """
    Linear scan for the row whose ``id`` or ``name`` stringifies to ``identity``.

    Returns:
        The row, or None when nothing matches
    """
    for row in rows:
        for key in ("id", "name"):
            value = row.get(key)
            if value is not None and str(value) == identity:
                return row
    return None


def build_table(schema: Optional[EntitySchema], rows: Sequence[Row],
                title: str = "") -> TableModel:
    """
    Build the table for a list view.

    With a schema the columns are authoritative and never inferred from
    data. Without one the first row's scalar keys are used.
    """
    if schema is not None:
        columns = infer_columns(schema)
        label = schema.name
    else:
        columns = infer_columns_from_rows(rows)
        label = title

    if not rows:
        return TableModel(columns=columns, empty_message=f"No data found in {label or 'this view'}.")

    cells = [{column: format_cell(row.get(column)) for column in columns} for row in rows]
    identities = [row_identity(row) for row in rows]
    return TableModel(columns=columns, cells=cells, identities=identities)


def build_form_fields(schema: EntitySchema, row: Row,
                      editable_kinds: FrozenSet[EntityKind] = DEFAULT_EDITABLE_KINDS) -> List[FormField]:
    """
    Field list for the detail form.

    Clouds use their declared fields in order. Islands have no field
    declaration, so the row's scalar keys are used in row order.
    """
    if isinstance(schema, CloudSchema):
        descriptors = [(f.key, f.options) for f in schema.fields]
    elif isinstance(schema, IslandSchema):
        descriptors = [(key, None) for key, value in row.items() if not _is_composite(value)]
    else:
        raise TypeError(f"Unhandled schema type: {type(schema).__name__}")

    return [
        FormField(
            key=key,
            value=committed_text(row.get(key)),
            editable=is_editable(schema, key, editable_kinds),
            options=options,
        )
        for key, options in descriptors
    ]


def committed_text(value: Any) -> str:
    """The string form an edit is compared against."""
    if value is None:
        return ""
    return str(value)
