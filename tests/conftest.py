import functools

import httpx
import pytest

from maxflow.client import MaxflowClient
from maxflow.models import MaxflowConfig
from tests.mocks.api import FakeMaxflowAPI, make_maxflow_transport


@pytest.fixture(autouse=True)
def test_set_env(monkeypatch):
    monkeypatch.setenv("MAXFLOW_API_KEY", "test-key")
    monkeypatch.setenv("MAXFLOW_API_SECRET", "test-secret")
    monkeypatch.setenv("MAXFLOW_TEAM_ID", "team-1")
    monkeypatch.setenv("MAXFLOW_APPLICATION_ID", "app-1")
    monkeypatch.setenv("MAXFLOW_BASE_URL", "https://maxflow.test")


@pytest.fixture
def fake_api() -> FakeMaxflowAPI:
    return FakeMaxflowAPI()


@pytest.fixture
def config() -> MaxflowConfig:
    return MaxflowConfig(
        api_key="test-key",
        api_secret="test-secret",
        team_id="team-1",
        application_id="app-1",
        base_url="https://maxflow.test",
    )


@pytest.fixture
def make_client(fake_api: FakeMaxflowAPI, config: MaxflowConfig):
    """
    Build clients whose HTTP traffic goes to ``fake_api``.
    """

    def _make(config: MaxflowConfig = config) -> MaxflowClient:
        client = MaxflowClient(config=config)
        client._client_factory = functools.partial(
            httpx.AsyncClient, transport=make_maxflow_transport(api=fake_api)
        )
        return client

    return _make
