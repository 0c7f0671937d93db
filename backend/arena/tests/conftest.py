import pytest

from arena.messaging.router import MessageRouter
from arena.server.app import create_app
from arena.server.settings import ArenaServerSettings
from arena.session.directory import SessionDirectory
from arena.session.manager import SessionManager
from arena.tests.helpers.rooms import FAST_SETTINGS
from arena.tests.mocks.connection import MockConnection


@pytest.fixture
def game_settings():
    return FAST_SETTINGS


@pytest.fixture
def directory():
    return SessionDirectory()


@pytest.fixture
def session_manager(directory, game_settings):
    return SessionManager(directory, game_settings=game_settings, base_url="http://testserver")


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def server_settings():
    return ArenaServerSettings(
        base_url="http://testserver",
        cors_origins=["http://localhost:3001"],
        log_dir=None,
        countdown_interval_seconds=0.01,
    )


@pytest.fixture
def app(server_settings, session_manager, message_router):
    return create_app(
        settings=server_settings,
        session_manager=session_manager,
        message_router=message_router,
    )
