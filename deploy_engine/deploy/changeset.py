#deploy_engine\deploy\changeset.py
"""Validated deploy request and the guarded assignment helper."""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, TypeVar

from deploy_engine.config import settings
from deploy_engine.core.errors import FieldNotSupplied, ValidationError
from deploy_engine.core.models import Application, Env

T = TypeVar("T")


def assign(getter: Callable[[], T], apply: Callable[[T], bool]) -> bool:
    """
    Call apply with the getter's value.

    Returns False without calling apply when the field was not supplied.
    Returns what apply returns (True when it changed something). Any other
    getter or apply error propagates.
    """
    try:
        value = getter()
    except FieldNotSupplied:
        return False
    return apply(value)


def value_or(getter: Callable[[], T], default: T) -> T:
    try:
        return getter()
    except FieldNotSupplied:
        return default


@dataclass
class ChangeSet:
    """
    Everything a caller asked to change for one deploy.

    Unset fields mean "keep what the application has". Getters raise
    FieldNotSupplied for them.
    """
    app_name: str

    image: Optional[str] = None
    framework: Optional[str] = None
    description: Optional[str] = None
    environment: Optional[List[str]] = None
    docker_registry_secret: Optional[str] = None

    # Source deploys
    source_path: Optional[str] = None
    builder: Optional[str] = None
    build_packs: Optional[List[str]] = None

    # Canary
    steps: Optional[int] = None
    step_weight: Optional[int] = None
    step_interval: Optional[timedelta] = None

    # Scaling
    units: Optional[int] = None
    units_process: Optional[str] = None

    process_config: Optional[Dict[str, Any]] = field(default=None)

    # -------------------------
    # SCALARS
    # -------------------------

    def get_image(self) -> str:
        if not self.image:
            raise FieldNotSupplied("image")
        return self.image

    def get_description(self) -> str:
        if self.description is None:
            raise FieldNotSupplied("description")
        return self.description

    def get_docker_registry_secret(self) -> str:
        if self.docker_registry_secret is None:
            raise FieldNotSupplied("docker_registry_secret")
        return self.docker_registry_secret

    def get_environments(self) -> List[Env]:
        """Parse "NAME=value" entries."""
        if self.environment is None:
            raise FieldNotSupplied("environment")
        envs = []
        for entry in self.environment:
            name, sep, value = entry.partition("=")
            if not sep or not name.strip():
                raise ValidationError(f"env variables should have NAME=VALUE format, got {entry!r}")
            envs.append(Env(name=name.strip(), value=value))
        return envs

    def get_framework(self) -> str:
        if not self.framework:
            raise FieldNotSupplied("framework")
        return self.framework

    # -------------------------
    # SOURCE
    # -------------------------

    def get_source_directory(self) -> str:
        if self.source_path is None:
            raise FieldNotSupplied("source_path")
        return self.source_path

    def get_procfile_path(self) -> str:
        return os.path.join(self.get_source_directory(), settings.default_procfile)

    def get_builder(self, application: Application) -> str:
        """Requested builder, else the app's, else the platform default."""
        if self.builder:
            return self.builder
        if application.builder:
            return application.builder
        return settings.default_builder

    def get_build_packs(self) -> List[str]:
        if self.build_packs is None:
            raise FieldNotSupplied("build_packs")
        return list(self.build_packs)

    # -------------------------
    # CANARY / SCALING
    # -------------------------

    def get_steps(self) -> int:
        if self.steps is None:
            raise FieldNotSupplied("steps")
        return self.steps

    def get_step_weight(self) -> int:
        """Requested weight, or an even split across the steps."""
        if self.step_weight is not None:
            return self.step_weight
        steps = self.get_steps()
        if steps <= 0:
            raise FieldNotSupplied("step_weight")
        return 100 // steps

    def get_step_interval(self) -> timedelta:
        if self.step_interval is None:
            raise FieldNotSupplied("step_interval")
        return self.step_interval

    def get_units(self) -> int:
        if self.units is None:
            raise FieldNotSupplied("units")
        return self.units

    def get_units_process(self) -> str:
        if not self.units_process:
            raise FieldNotSupplied("units_process")
        return self.units_process

    def get_process_config(self) -> Dict[str, Any]:
        if self.process_config is None:
            raise FieldNotSupplied("process_config")
        return self.process_config
