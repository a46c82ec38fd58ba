import os

import pytest
from fastapi.testclient import TestClient

from multichat.config.settings import get_settings
from multichat.core.container import AppContainer, set_container
from multichat.db.base import Base
from multichat.db.models.chat import ChatRecord  # noqa: F401
from multichat.db.session import create_schema, get_engine, reset_sessionmaker
from multichat.main import create_app
from multichat.providers.http import HTTPClientProvider
from tests.fakes import build_fake_registry


@pytest.fixture(scope="session", autouse=True)
def test_env() -> None:
    os.environ["DATABASE_URL"] = "sqlite:///./test_multichat.db"
    for key in ("GOOGLE_API_KEY", "HUGGINGFACE_API_TOKEN", "NVIDIA_API_KEY"):
        os.environ[key] = ""
    get_settings.cache_clear()
    reset_sessionmaker()
    Base.metadata.drop_all(bind=get_engine())
    create_schema()


@pytest.fixture
def fake_registry():
    return build_fake_registry()


@pytest.fixture
def client(fake_registry):
    set_container(AppContainer(registry=fake_registry, http=HTTPClientProvider()))
    app = create_app()
    yield TestClient(app)
    set_container(None)

