"""
Pytest configuration and shared fixtures for context engine tests.
"""
import pytest
import os
import sys
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(autouse=True)
def mock_environment():
    """Ensure environment variables are set for testing."""
    env_vars = {
        'OPENAI_API_KEY': 'test-openai-key',
        'OPENAI_MODEL': 'gpt-4.1-mini',
        'LOG_LEVEL': 'WARNING',
        'ENVIRONMENT': 'development',
        'APP_NAME': 'Test Context Engine',
        'APP_VERSION': '1.0.0',
        'CONTEXT_PERSISTENCE_ENABLED': 'false',
        # Redis env vars (Docker on port 6380)
        'REDIS_URL': 'redis://localhost:6380/0',
    }
    with patch.dict(os.environ, env_vars):
        yield


class FakeClock:
    """Controllable clock returning timezone-aware datetimes."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 9, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Return a controllable clock."""
    return FakeClock()


@pytest.fixture
def settings():
    """Return default engine settings."""
    from app.core.settings import EngineSettings
    return EngineSettings()


@pytest.fixture
def store(clock):
    """Return a context store driven by the fake clock."""
    from app.services.context_store import ContextStore
    return ContextStore(session_timeout_minutes=30, max_contexts=50, clock=clock)


@pytest.fixture
def engine(store, settings):
    """Return a context engine on the fake-clock store."""
    from app.services.context_engine import ContextEngine
    return ContextEngine(store=store, settings=settings)


@pytest.fixture
def mock_openai_client():
    """Return a mocked OpenAI client."""
    with patch('app.services.typo_correction.OpenAI') as mock:
        mock_client = Mock()
        mock_response = Mock()
        mock_response.choices = [Mock(message=Mock(content='{"hasTypos": false}'))]
        mock_client.chat.completions.create.return_value = mock_response
        mock.return_value = mock_client
        yield mock_client


@pytest.fixture
def mock_redis():
    """Return a mocked Redis client."""
    mock_client = Mock()
    mock_client.ping.return_value = True
    mock_client.get.return_value = None
    mock_client.setex.return_value = True
    mock_client.delete.return_value = 1
    return mock_client
