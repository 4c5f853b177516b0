#tests\conftest.py

"""Pytest configuration and fixtures."""

from typing import List

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from deploy_engine.core.models import Framework, IngressController
from deploy_engine.deploy.collaborators import (
    BuildRequest, ImageConfig, ImageConfigProvider, ImageConfigRequest, SourceBuilder,
)
from deploy_engine.deploy.runner import Services
from deploy_engine.infrastructure.memory.repository import (
    InMemoryApplicationRepository,
    InMemoryFrameworkRepository,
)
from deploy_engine.infrastructure.postgres.database import Base, get_session_factory
from deploy_engine.infrastructure.postgres.repository import (
    SqlApplicationRepository,
    SqlFrameworkRepository,
)


# ============================================
# Collaborator fakes
# ============================================

class FakeImageConfigProvider(ImageConfigProvider):
    """Returns a fixed config and records requests."""

    def __init__(self, config: ImageConfig = None, error: Exception = None):
        self.config = config or ImageConfig(
            entrypoint=["/bin/server"],
            cmd=["--port", "8080"],
            exposed_ports=["8080/tcp"],
        )
        self.error = error
        self.requests: List[ImageConfigRequest] = []

    def get_image_config(self, request: ImageConfigRequest) -> ImageConfig:
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.config


class FakeBuilder(SourceBuilder):
    def __init__(self, error: Exception = None):
        self.error = error
        self.requests: List[BuildRequest] = []

    def build(self, request: BuildRequest) -> None:
        self.requests.append(request)
        if self.error:
            raise self.error


# ============================================
# Repositories / services
# ============================================

@pytest.fixture
def framework():
    return Framework(
        name="framework",
        namespace_name="ketch-gke",
        ingress_controller=IngressController(
            class_name="ingress-class",
            service_endpoint="10.10.10.10",
            cluster_issuer="letsencrypt-production",
        ),
    )


@pytest.fixture
def framework_repo(framework):
    repo = InMemoryFrameworkRepository()
    repo.create(framework)
    return repo


@pytest.fixture
def app_repo():
    return InMemoryApplicationRepository()


@pytest.fixture
def image_config():
    return FakeImageConfigProvider()


@pytest.fixture
def builder():
    return FakeBuilder()


@pytest.fixture
def services(app_repo, framework_repo, image_config, builder):
    return Services(
        app_repo=app_repo,
        framework_repo=framework_repo,
        image_config=image_config,
        builder=builder,
    )


@pytest.fixture
def no_sleep():
    """Retry options that skip backoff sleeps."""
    return {"sleep": lambda seconds: None}


# ============================================
# SQL
# ============================================

@pytest.fixture
def test_engine():
    """In-memory SQLite shared across sessions of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def test_session_factory(test_engine):
    return get_session_factory(test_engine)


@pytest.fixture
def sql_app_repo(test_session_factory):
    return SqlApplicationRepository(session_factory=test_session_factory)


@pytest.fixture
def sql_framework_repo(test_session_factory, framework):
    repo = SqlFrameworkRepository(session_factory=test_session_factory)
    repo.create(framework)
    return repo
