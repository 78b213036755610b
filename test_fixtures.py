"""
Test fixtures and fake backends for the Valter console tests.

Provides reusable backend payloads, a scripted in-memory backend client,
and an httpx transport that answers protocol requests from a handler table.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx

from valter.actions import PendingAction, ResolutionChoice
from valter.exceptions import TransportError
from valter.schema_model import AppConfig, EntityKind, parse_app_config


class PayloadFixtures:
    """Backend payloads shaped the way the core returns them."""

    @staticmethod
    def get_config_payload() -> Dict[str, Any]:
        """Two Clouds and one Island with two aggregations."""
        return {
            'GLOBAL': {
                'company_name': 'Acme Studio',
                'currency_symbol': '€',
                'locale': 'it-IT',
                'port': 8000,
            },
            'CLOUDS': [
                {
                    'name': 'Clients',
                    'icon': 'users',
                    'fields': [
                        {'key': 'name', 'type': 'string', 'required': True},
                        {'key': 'email', 'type': 'string'},
                        {'key': 'tier', 'type': 'select', 'options': ['gold', 'silver']},
                    ],
                },
                {
                    'name': 'Suppliers',
                    'icon': 'truck',
                    'fields': [
                        {'key': 'name', 'type': 'string', 'required': True},
                        {'key': 'vat', 'type': 'string'},
                    ],
                },
            ],
            'ISLANDS': [
                {
                    'name': 'Projects',
                    'root_path': './data/projects',
                    'meta_file': 'meta.yaml',
                    'relations': [{'field': 'client', 'target_cloud': 'Clients'}],
                    'aggregations': [
                        {'name': 'total_hours', 'path': 'timesheets', 'target_field': 'hours', 'logic': 'sum'},
                        {'name': 'invoice_count', 'path': 'invoices', 'target_field': 'id', 'logic': 'COUNT'},
                    ],
                },
            ],
        }

    @staticmethod
    def get_config() -> AppConfig:
        return parse_app_config(PayloadFixtures.get_config_payload())

    @staticmethod
    def get_action_payload(action_id: str = "a1", suggestions: Optional[List[str]] = None,
                           context: Any = None) -> Dict[str, Any]:
        if suggestions is None:
            suggestions = ["Phoenix Ltd", "Microsoft"]
        if context is None:
            context = json.dumps({
                'sourceIslandKind': 'Projects',
                'sourceIslandName': 'Alpha',
                'field': 'client',
            })
        return {
            'id': action_id,
            'type': 'MISSING_ENTITY',
            'target_table': 'Clients',
            'key_field': 'name',
            'value': 'Phenix',
            'context': context,
            'suggestions': json.dumps(suggestions),
            'status': 'Pending',
            'created_at': '2024-05-01T10:00:00Z',
        }

    @staticmethod
    def get_action(action_id: str = "a1", suggestions: Optional[List[str]] = None,
                   context: Any = None) -> PendingAction:
        return PendingAction.model_validate(
            PayloadFixtures.get_action_payload(action_id, suggestions, context)
        )

    @staticmethod
    def get_project_rows() -> List[Dict[str, Any]]:
        return [
            {'name': 'Alpha', 'status': 'active', 'client': 'Phenix',
             'total_hours': 1234.5, 'invoice_count': 3, 'updated_at': '2024-05-01',
             'timesheets': [{'hours': 1234.5}]},
            {'name': 'Beta', 'status': 'closed', 'client': 'Microsoft',
             'total_hours': 40, 'invoice_count': 0, 'updated_at': '2024-04-01'},
        ]

    @staticmethod
    def get_client_rows() -> List[Dict[str, Any]]:
        return [
            {'id': 1, 'name': 'Phoenix Ltd', 'email': 'info@phoenix.example', 'tier': 'gold'},
            {'id': 2, 'name': 'Microsoft', 'email': None, 'tier': 'silver'},
        ]


class FakeBackendClient:
    """
    In-memory stand-in for BackendClient.

    Every call is recorded in ``calls``. Assign an exception to
    ``failures[method_name]`` to make that method raise it.
    """

    def __init__(self, config: Optional[AppConfig] = None,
                 actions: Optional[List[PendingAction]] = None,
                 rows: Optional[Dict[tuple, List[Dict[str, Any]]]] = None,
                 base_url: str = "http://core.test/graphql"):
        self.base_url = base_url
        self.timeout = 15.0
        self.config = config or PayloadFixtures.get_config()
        self.actions = list(actions or [])
        self.rows = rows or {
            (EntityKind.ISLAND, 'Projects'): PayloadFixtures.get_project_rows(),
            (EntityKind.CLOUD, 'Clients'): PayloadFixtures.get_client_rows(),
        }
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.on_rescan: Optional[Callable[[], None]] = None
        self.on_fetch_rows: Optional[Callable[[EntityKind, str], None]] = None

    def _record(self, method: str, *args):
        self.calls.append((method,) + args)
        if method in self.failures:
            raise self.failures[method]

    def calls_to(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    def fetch_config(self) -> AppConfig:
        self._record('fetch_config')
        return self.config

    def fetch_pending_actions(self) -> List[PendingAction]:
        self._record('fetch_pending_actions')
        return list(self.actions)

    def fetch_rows(self, kind, name):
        kind = EntityKind.parse(kind)
        self._record('fetch_rows', kind, name)
        if self.on_fetch_rows is not None:
            self.on_fetch_rows(kind, name)
        return list(self.rows.get((kind, name), []))

    def resolve_action(self, action_id: str, choice) -> str:
        self._record('resolve_action', action_id, ResolutionChoice(choice))
        self.actions = [a for a in self.actions if a.id != action_id]
        return "Resolved"

    def update_island_field(self, island_kind, island_name, key, value) -> str:
        self._record('update_island_field', island_kind, island_name, key, value)
        return "Success"

    def update_field(self, kind, schema_name, entity_name, key, value) -> str:
        self._record('update_field', EntityKind.parse(kind), schema_name, entity_name, key, value)
        return "Success"

    def rescan_islands(self) -> str:
        self._record('rescan_islands')
        if self.on_rescan is not None:
            self.on_rescan()
        return "Rescan started"

    def ask_oracle(self, question: str) -> str:
        self._record('ask_oracle', question)
        return "Forty-two"

    def create_island(self, island_kind, name, initial_data=None) -> str:
        self._record('create_island', island_kind, name, initial_data)
        return "Created"

    def close(self):
        self._record('close')


def unreachable(operation: str = "config") -> TransportError:
    return TransportError(operation, "Connection refused")


def protocol_transport(handlers: Dict[str, Callable[[Dict[str, Any]], httpx.Response]],
                       seen: Optional[List[Dict[str, Any]]] = None) -> httpx.MockTransport:
    """
    MockTransport dispatching on the operation name found in the query text.

    Each handler receives the decoded request body and returns a response.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if seen is not None:
            seen.append(body)
        for operation, respond in handlers.items():
            if operation in body['query']:
                return respond(body)
        return httpx.Response(404, json={'errors': [{'message': 'no handler'}]})

    return httpx.MockTransport(handler)


def data_response(operation: str, value: Any) -> Callable[[Dict[str, Any]], httpx.Response]:
    return lambda body: httpx.Response(200, json={'data': {operation: value}})


class MockSessionState(dict):
    """Mock session state that supports both dict and attribute access."""
    def __setattr__(self, key, value):
        self[key] = value

    def __getattr__(self, key):
        try:
            return self[key]
        except KeyError:
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{key}'")
