"""
Pytest Configuration and Shared Fixtures for All Tests

This conftest.py provides:
- Settings with every provider key blanked
- Scripted generation backends for orchestrator tests
- TestClient fixtures for API tests (lifespan runs, so the demo seed is loaded)
- Test markers configuration
"""
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Callable, Iterator, List, Optional

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent))

from dataprosim.core.config import Settings  # noqa: E402
from dataprosim.services.ai_service import AIService, build_ai_service  # noqa: E402
from dataprosim.services.providers import (  # noqa: E402
    GenerationBackend,
    GenerationOptions,
    GenerationPrompt,
    ProviderRegistry,
)
from dataprosim.services.storage import InMemoryStorage  # noqa: E402


# =============================================================================
# Pytest Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires real API)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (mocked, fast)"
    )


# =============================================================================
# Scripted backend
# =============================================================================

class FakeBackend(GenerationBackend):
    """
    Backend returning scripted responses in order.

    When ``error`` is set every call raises it. An exhausted script yields an
    empty string, which the base class reports as a provider failure.
    """

    def __init__(
        self,
        name: str = "fake",
        responses: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        api_key: str = "test-key",
        timeout: float = 1.0,
    ):
        super().__init__(api_key=api_key, model="fake-model", timeout=timeout)
        self.name = name
        self.responses = list(responses or [])
        self.error = error
        self.calls: List[tuple] = []

    async def _generate(self, prompt: GenerationPrompt, options: GenerationOptions) -> str:
        self.calls.append((prompt, options))
        if self.error is not None:
            raise self.error
        return self.responses.pop(0) if self.responses else ""


@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    """Factory for scripted backends."""
    return FakeBackend


# =============================================================================
# Settings, storage and services
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Settings isolated from any .env file, with no provider credentials."""
    return Settings(
        _env_file=None,
        app_env="testing",
        openai_api_key="",
        gemini_api_key="",
        anthropic_api_key="",
        log_level="WARNING",
        log_dir="",
        log_json=False,
        seed_demo_data=True,
        demo_user_id="user-1",
    )


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def unavailable_ai_service(test_settings) -> AIService:
    """AIService wired to real backends that all lack credentials."""
    registry = ProviderRegistry.from_settings(test_settings)
    return build_ai_service(registry, test_settings)


# =============================================================================
# API Test Fixtures - TestClient
# =============================================================================

@pytest.fixture
def build_client(test_settings) -> Iterator[Callable[..., TestClient]]:
    """
    Factory for started TestClients.

    Each client owns a fresh in-memory store; pass ``ai_service`` to control
    what the AI routes return.
    """
    from main import create_app

    with ExitStack() as stack:
        def _build(
            ai_service: Optional[AIService] = None,
            app_settings: Optional[Settings] = None,
        ) -> TestClient:
            app = create_app(
                app_settings=app_settings or test_settings,
                storage=InMemoryStorage(),
                ai_service=ai_service,
            )
            return stack.enter_context(TestClient(app))

        yield _build


@pytest.fixture
def client(build_client) -> TestClient:
    """Client whose AI providers are all unavailable."""
    return build_client()
