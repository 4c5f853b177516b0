#deploy_engine\container.py

"""Dependency injection container - wires all services together."""

from deploy_engine.deploy.runner import Services
from deploy_engine.infrastructure.pack.builder import PackBuilder
from deploy_engine.infrastructure.postgres.repository import (
    SqlApplicationRepository,
    SqlFrameworkRepository,
)
from deploy_engine.infrastructure.registry.client import RegistryImageConfigProvider


def build_services() -> Services:
    """Production wiring: SQL store, registry reads, pack builds."""
    return Services(
        app_repo=SqlApplicationRepository(),
        framework_repo=SqlFrameworkRepository(),
        image_config=RegistryImageConfigProvider(),
        builder=PackBuilder(),
    )
