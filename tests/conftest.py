import json
from types import SimpleNamespace

import pytest
from supabase import AuthError

from backend import BackendConfig, ConnectionManager
from events import event_bus
from execution import ScriptExecutionEngine
from panel.channel import PanelChannel
from protocol import MessageRouter
from storage import PersistentStore

CONFIG_A = BackendConfig("https://project-a.supabase.co", "anon-key-a")
CONFIG_B = BackendConfig("https://project-b.supabase.co", "anon-key-b")


class FakeAuthError(AuthError):
    def __init__(self, message):
        super().__init__(message, None)


class FakeAuth:
    """Stand-in for the async client's auth namespace"""

    def __init__(self):
        self.calls = []
        self.session = None
        self.sign_in_error = None
        self.sign_out_error = None
        self.set_session_error = None

    async def sign_in_with_password(self, credentials):
        self.calls.append(("sign_in_with_password", credentials))
        if self.sign_in_error is not None:
            raise self.sign_in_error
        self.session = {
            "access_token": "access-" + credentials["email"],
            "refresh_token": "refresh-" + credentials["email"],
            "user": {"email": credentials["email"]},
        }
        return SimpleNamespace(session=self.session)

    async def sign_out(self):
        self.calls.append(("sign_out",))
        if self.sign_out_error is not None:
            raise self.sign_out_error
        self.session = None

    async def get_session(self):
        self.calls.append(("get_session",))
        return self.session

    async def set_session(self, access_token, refresh_token):
        self.calls.append(("set_session", access_token, refresh_token))
        if self.set_session_error is not None:
            raise self.set_session_error
        self.session = {"access_token": access_token, "refresh_token": refresh_token}
        return SimpleNamespace(session=self.session)


class FakeQuery:
    def __init__(self, rows):
        self.rows = list(rows)

    def select(self, *columns):
        return self

    def eq(self, column, value):
        self.rows = [row for row in self.rows if row.get(column) == value]
        return self

    async def execute(self):
        return SimpleNamespace(data=self.rows)


class FakeSupabaseClient:
    def __init__(self, supabase_url, supabase_key):
        if not supabase_url.startswith(("http://", "https://")):
            raise ValueError("Invalid URL")
        self.supabase_url = supabase_url
        self.supabase_key = supabase_key
        self.auth = FakeAuth()
        self.tables = {
            "users": [
                {"id": 1, "name": "Ada"},
                {"id": 2, "name": "Grace"},
            ]
        }

    def table(self, name):
        return FakeQuery(self.tables.get(name, []))


class MemoryKeyValueStore:
    """In-memory key/value facility with the same surface as JsonFileKeyValueStore"""

    def __init__(self, data=None):
        self.data = dict(data or {})
        self.put_calls = []
        self.put_error = None

    def get(self, key, default=None):
        return self.data.get(key, default)

    async def put(self, key, value):
        self.put_calls.append((key, value))
        if self.put_error is not None:
            raise self.put_error
        if value is None:
            self.data.pop(key, None)
        else:
            self.data[key] = value


class RecordingChannel(PanelChannel):
    """Channel that records every delivered envelope as decoded JSON"""

    def __init__(self, view_type="supabaseTester", title="Supabase Function Tester"):
        super().__init__(view_type, title)
        self.sent = []
        self.deliver_error = None

    async def _deliver(self, payload):
        if self.deliver_error is not None:
            raise self.deliver_error
        self.sent.append(json.loads(payload))
        return True

    def commands(self):
        return [message["command"] for message in self.sent]


@pytest.fixture(autouse=True)
def clean_event_bus():
    event_bus.clear()
    yield
    event_bus.clear()


@pytest.fixture
def created_clients():
    return []


@pytest.fixture
def client_factory(created_clients):
    def factory(endpoint, key):
        client = FakeSupabaseClient(endpoint, key)
        created_clients.append(client)
        return client
    return factory


@pytest.fixture
def kv_store():
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv_store):
    persistent_store = PersistentStore()
    persistent_store.initialize(kv_store)
    return persistent_store


@pytest.fixture
def connection_manager(client_factory):
    return ConnectionManager(client_factory)


@pytest.fixture
def engine(connection_manager):
    return ScriptExecutionEngine(connection_manager)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def router(connection_manager, engine, store, channel):
    message_router = MessageRouter(connection_manager, engine, store, channel.post_message)
    message_router.mark_ready()
    return message_router
