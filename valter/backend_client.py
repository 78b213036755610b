"""
Backend client for the Valter console.

Speaks the core's query/mutation protocol over HTTP: every request is a
POST of ``{query, variables}``; the response is ``{data}`` or
``{errors: [{message}, ...]}``. Non-2xx statuses, ``errors`` arrays,
malformed payloads and timeouts are raised as ``BackendError`` subclasses.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

import httpx

from .actions import PendingAction, ResolutionChoice, parse_pending_actions
from .exceptions import (
    BackendTimeoutError,
    FieldUpdateRejected,
    ProtocolError,
    TransportError,
    UnsupportedWriteError,
)
from .schema_model import AppConfig, EntityKind, parse_app_config

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

FIELD_UPDATE_SUCCESS = "Success"
ISLAND_CREATED = "Created"

QUERIES = {
    'config': "query { config }",
    'pendingActions': "query { pendingActions }",
    'cloudData': "query($name: String!) { cloudData(name: $name) }",
    'islandData': "query($name: String!) { islandData(name: $name) }",
    'askOracle': "query($q: String!) { askOracle(question: $q) }",
}

MUTATIONS = {
    'resolveAction': (
        "mutation($id: String!, $choice: String!) "
        "{ resolveAction(actionId: $id, choice: $choice) }"
    ),
    'updateIslandField': (
        "mutation($type: String!, $name: String!, $key: String!, $value: String!) "
        "{ updateIslandField(islandType: $type, islandName: $name, key: $key, value: $value) }"
    ),
    'rescanIslands': "mutation { rescanIslands }",
    'createIsland': (
        "mutation($type: String!, $name: String!, $data: String!) "
        "{ createIsland(islandType: $type, name: $name, initialData: $data) }"
    ),
}

Row = Dict[str, Any]


class BackendClient:
    """Thin request/response shaping over one ``httpx.Client``."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url
        self.timeout = float(timeout)
        self._http = httpx.Client(
            timeout=self.timeout,
            transport=transport,
            headers={'Content-Type': 'application/json'},
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def execute(self, operation: str, query: str,
                variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one query or mutation and return its ``data`` object.

        Args:
            operation: Protocol-level operation name, used in errors and logs
            query: Query document
            variables: Query variables

        Returns:
            The ``data`` object of the response

        Raises:
            BackendTimeoutError: If the request exceeded the timeout
            TransportError: If the backend is unreachable or answered non-2xx
            ProtocolError: If the response carries errors or is malformed
        """
        logger.debug(f"Backend request: {operation}")
        payload = {'query': query, 'variables': variables or {}}

        try:
            response = self._http.post(self.base_url, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"{operation} timed out after {self.timeout}s: {e}")
            raise BackendTimeoutError(operation, self.timeout) from e
        except httpx.HTTPError as e:
            logger.error(f"{operation} could not reach {self.base_url}: {e}")
            raise TransportError(operation, str(e) or type(e).__name__) from e

        if not response.is_success:
            raise TransportError(operation, response.reason_phrase or "request failed",
                                 status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise ProtocolError(operation, f"{operation} returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise ProtocolError(operation, f"{operation} returned an unexpected body")

        errors = body.get('errors')
        if errors is not None and not isinstance(errors, list):
            raise ProtocolError(operation, f"{operation} returned a malformed errors field", [errors])
        if errors:
            first = errors[0]
            message = first.get('message') if isinstance(first, dict) else str(first)
            raise ProtocolError(operation, message or "Unknown backend error", errors)

        data = body.get('data')
        if not isinstance(data, dict) or operation not in data:
            raise ProtocolError(operation, f"{operation} returned no data")

        return data

    def _field(self, operation: str, query: str,
               variables: Optional[Dict[str, Any]] = None) -> Any:
        return self.execute(operation, query, variables)[operation]

    # Queries

    def fetch_config(self) -> AppConfig:
        raw = self._field('config', QUERIES['config'])
        try:
            return parse_app_config(raw)
        except ValueError as e:
            raise ProtocolError('config', str(e)) from e

    def fetch_pending_actions(self) -> List[PendingAction]:
        raw = self._field('pendingActions', QUERIES['pendingActions'])
        try:
            return parse_pending_actions(raw)
        except ValueError as e:
            raise ProtocolError('pendingActions', str(e)) from e

    def fetch_cloud_data(self, name: str) -> List[Row]:
        return self._rows('cloudData', name)

    def fetch_island_data(self, name: str) -> List[Row]:
        return self._rows('islandData', name)

    def fetch_rows(self, kind: Union[str, EntityKind], name: str) -> List[Row]:
        """Row collection for a named schema of either kind."""
        kind = EntityKind.parse(kind)
        if kind == EntityKind.CLOUD:
            return self.fetch_cloud_data(name)
        if kind == EntityKind.ISLAND:
            return self.fetch_island_data(name)
        raise TypeError(f"Unhandled entity kind: {kind}")

    def _rows(self, operation: str, name: str) -> List[Row]:
        raw = self._field(operation, QUERIES[operation], {'name': name})
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except json.JSONDecodeError as e:
                raise ProtocolError(operation, f"{operation} returned invalid JSON") from e
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ProtocolError(operation, f"{operation} did not return a list")
        return [row for row in raw if isinstance(row, dict)]

    def ask_oracle(self, question: str) -> str:
        return str(self._field('askOracle', QUERIES['askOracle'], {'q': question}))

    # Mutations

    def resolve_action(self, action_id: str, choice: Union[str, ResolutionChoice]) -> str:
        choice = ResolutionChoice(choice)
        result = self._field('resolveAction', MUTATIONS['resolveAction'],
                             {'id': action_id, 'choice': choice.value})
        logger.info(f"Resolved action {action_id} with {choice.value}: {result}")
        return str(result)

    def update_island_field(self, island_kind: str, island_name: str, key: str, value: Any) -> str:
        """
        Rewrite one field of one Island row.

        Raises:
            FieldUpdateRejected: If the backend did not answer ``Success``
        """
        variables = {
            'type': island_kind,
            'name': island_name,
            'key': key,
            'value': "" if value is None else str(value),
        }
        result = self._field('updateIslandField', MUTATIONS['updateIslandField'], variables)
        if result != FIELD_UPDATE_SUCCESS:
            raise FieldUpdateRejected('updateIslandField', result)
        logger.info(f"Updated {island_kind}/{island_name}.{key}")
        return result

    def update_field(self, kind: Union[str, EntityKind], schema_name: str,
                     entity_name: str, key: str, value: Any) -> str:
        """Field write for either kind; only Islands have a write path."""
        kind = EntityKind.parse(kind)
        if kind == EntityKind.ISLAND:
            return self.update_island_field(schema_name, entity_name, key, value)
        raise UnsupportedWriteError(kind.value)

    def rescan_islands(self) -> str:
        result = self._field('rescanIslands', MUTATIONS['rescanIslands'])
        logger.info(f"Rescan requested: {result}")
        return str(result)

    def create_island(self, island_kind: str, name: str,
                      initial_data: Optional[Dict[str, Any]] = None) -> str:
        """
        Create a new Island entry.

        Raises:
            FieldUpdateRejected: If the backend did not answer ``Created``
        """
        variables = {
            'type': island_kind,
            'name': name,
            'data': json.dumps({k: str(v) for k, v in (initial_data or {}).items()}),
        }
        result = self._field('createIsland', MUTATIONS['createIsland'], variables)
        if result != ISLAND_CREATED:
            raise FieldUpdateRejected('createIsland', result)
        logger.info(f"Created {island_kind}/{name}")
        return result
