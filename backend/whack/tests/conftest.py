import pytest
from starlette.testclient import TestClient

from whack.messaging.router import MessageRouter
from whack.server.app import create_app
from whack.server.settings import GameServerSettings
from whack.session.groups import GroupBroadcaster
from whack.session.registry import SessionRegistry
from whack.tests.helpers.session import MANUAL_SETTINGS
from whack.tests.mocks import MockConnection


@pytest.fixture
def groups():
    return GroupBroadcaster()


@pytest.fixture
async def registry(groups):
    registry = SessionRegistry(groups, settings=MANUAL_SETTINGS, empty_grace_seconds=30.0)
    yield registry
    registry.shutdown()


@pytest.fixture
def router(registry):
    return MessageRouter(registry)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def server_settings():
    return GameServerSettings(
        cube_spawn_delay_min=0.05,
        cube_spawn_delay_max=0.05,
        cube_stay_duration=0.2,
        rate_limit_rate=1000.0,
        rate_limit_burst=1000,
    )


@pytest.fixture
def client(server_settings):
    app = create_app(settings=server_settings)
    with TestClient(app) as client:
        yield client
