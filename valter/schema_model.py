"""
Schema model for the Valter console.

Cloud and Island definitions arrive from the backend in two different
shapes. They are parsed into explicit, tagged descriptors (``CloudSchema``
and ``IslandSchema``) so that every consumer dispatches on ``kind`` instead
of probing the raw dictionaries for a ``fields`` key.
"""

import json
import logging
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Island columns every row carries regardless of its aggregations
ISLAND_LEADING_COLUMNS = ["name", "status"]
ISLAND_TRAILING_COLUMNS = ["updated_at"]


class EntityKind(str, Enum):
    """The two entity categories the console presents."""
    CLOUD = "cloud"
    ISLAND = "island"

    @classmethod
    def parse(cls, value: Union[str, "EntityKind"]) -> "EntityKind":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class AggregationKind(str, Enum):
    SUM = "sum"
    COUNT = "count"
    AVERAGE = "average"


class _SchemaPart(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore', frozen=True)


class FieldDescriptor(_SchemaPart):
    """One declared column of a Cloud."""
    key: str
    value_type: str = Field(default="string", alias="type")
    required: bool = False
    options: Optional[List[str]] = None


class RelationRule(_SchemaPart):
    field: str
    target_cloud_name: str = Field(alias="target_cloud")


class AggregationRule(_SchemaPart):
    """A backend-computed Island output, exposed on each row under ``name``."""
    name: str
    source_path: str = Field(default="", alias="path")
    target_field: str = ""
    aggregation_kind: AggregationKind = Field(alias="logic")
    filter: Optional[str] = None

    @field_validator('aggregation_kind', mode='before')
    @classmethod
    def _normalize_logic(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class CloudSchema(_SchemaPart):
    """A rigidly-schematized entity kind with an ordered field list."""
    kind: Literal["cloud"] = "cloud"
    name: str
    icon: str = ""
    fields: List[FieldDescriptor] = Field(default_factory=list)


class IslandSchema(_SchemaPart):
    """A filesystem-backed entity kind whose rows carry computed aggregations."""
    kind: Literal["island"] = "island"
    name: str
    root_path: str = ""
    meta_file_name: str = Field(default="meta.yaml", alias="meta_file")
    relations: List[RelationRule] = Field(default_factory=list)
    aggregations: List[AggregationRule] = Field(default_factory=list)

    def aggregation_names(self) -> List[str]:
        return [aggregation.name for aggregation in self.aggregations]


EntitySchema = Union[CloudSchema, IslandSchema]


class GlobalSettings(_SchemaPart):
    model_config = ConfigDict(populate_by_name=True, extra='allow', frozen=True)

    company_name: str = ""
    currency_symbol: str = ""
    locale: str = ""
    port: int = 8000


class AppConfig(_SchemaPart):
    """
    Aggregate root of the backend configuration.

    Instances are immutable; a refresh replaces the whole object.
    """
    global_settings: GlobalSettings = Field(default_factory=GlobalSettings, alias="GLOBAL")
    clouds: List[CloudSchema] = Field(default_factory=list, alias="CLOUDS")
    islands: List[IslandSchema] = Field(default_factory=list, alias="ISLANDS")


def parse_app_config(raw: Union[str, Dict[str, Any]]) -> AppConfig:
    """
    Parse the backend ``config`` payload.

    Args:
        raw: Decoded JSON object, or the JSON text of one

    Returns:
        AppConfig

    Raises:
        ValueError: If the payload is not a valid configuration
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Config payload is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ValueError(f"Config payload must be an object, got {type(raw).__name__}")

    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ValueError(f"Config payload does not match the expected shape: {e}") from e


class SchemaRegistry:
    """Read-only lookup of schemas by ``(kind, name)`` over one AppConfig."""

    def __init__(self, config: Optional[AppConfig]):
        self.config = config
        self._clouds: Dict[str, CloudSchema] = {}
        self._islands: Dict[str, IslandSchema] = {}

        if config is not None:
            self._clouds = {cloud.name: cloud for cloud in config.clouds}
            self._islands = {island.name: island for island in config.islands}

            if len(self._clouds) != len(config.clouds):
                logger.warning("Duplicate Cloud names in config; the last definition wins")
            if len(self._islands) != len(config.islands):
                logger.warning("Duplicate Island names in config; the last definition wins")

    def schema_of(self, kind: Union[str, EntityKind], name: str) -> Optional[EntitySchema]:
        """
        Look up a schema.

        Returns:
            The schema, or None when no definition exists for ``(kind, name)``
        """
        try:
            kind = EntityKind.parse(kind)
        except ValueError:
            logger.warning(f"Unknown entity kind requested: {kind!r}")
            return None

        if kind == EntityKind.CLOUD:
            schema: Optional[EntitySchema] = self._clouds.get(name)
        elif kind == EntityKind.ISLAND:
            schema = self._islands.get(name)
        else:
            raise TypeError(f"Unhandled entity kind: {kind}")

        if schema is None:
            logger.debug(f"Definition not found: {kind.value}/{name}")
        return schema

    def names(self, kind: Union[str, EntityKind]) -> List[str]:
        kind = EntityKind.parse(kind)
        if kind == EntityKind.CLOUD:
            return list(self._clouds)
        return list(self._islands)

    @property
    def cloud_count(self) -> int:
        return len(self._clouds)

    @property
    def island_count(self) -> int:
        return len(self._islands)


def kind_of(schema: EntitySchema) -> EntityKind:
    return EntityKind(schema.kind)


def infer_columns(schema: EntitySchema) -> List[str]:
    """
    Columns for a schema, independent of row content.

    Clouds use their declared fields in order. Islands use
    name, status, every aggregation in declared order, then updated_at.
    """
    if isinstance(schema, CloudSchema):
        return [f.key for f in schema.fields]
    if isinstance(schema, IslandSchema):
        return ISLAND_LEADING_COLUMNS + schema.aggregation_names() + ISLAND_TRAILING_COLUMNS
    raise TypeError(f"Unhandled schema type: {type(schema).__name__}")
