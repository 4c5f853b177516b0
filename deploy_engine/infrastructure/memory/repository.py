# deploy_engine/infrastructure/memory/repository.py

import copy
from threading import Lock
from typing import Dict, List, Optional

from deploy_engine.core.errors import (
    ApplicationAlreadyExists,
    ApplicationConflictError,
    ApplicationNotFound,
)
from deploy_engine.core.models import Application, Framework
from deploy_engine.core.repository import ApplicationRepository, FrameworkRepository


class InMemoryApplicationRepository(ApplicationRepository):
    """Stores copies so callers never share state with the store."""

    def __init__(self):
        self._store: Dict[str, Application] = {}
        self._lock = Lock()

    def create(self, application: Application) -> Application:
        with self._lock:
            if application.name in self._store:
                raise ApplicationAlreadyExists(f"app {application.name!r} already exists")
            stored = copy.deepcopy(application)
            stored.resource_version = 1
            self._store[application.name] = stored
            return copy.deepcopy(stored)

    def get(self, name: str) -> Optional[Application]:
        with self._lock:
            stored = self._store.get(name)
            return copy.deepcopy(stored) if stored else None

    def update(self, application: Application) -> Application:
        with self._lock:
            stored = self._store.get(application.name)
            if not stored:
                raise ApplicationNotFound(f"app {application.name!r} not found")

            if stored.resource_version != application.resource_version:
                raise ApplicationConflictError(
                    f"app {application.name!r} was modified "
                    f"(have {application.resource_version}, stored {stored.resource_version})"
                )

            updated = copy.deepcopy(application)
            updated.resource_version = stored.resource_version + 1
            self._store[application.name] = updated
            return copy.deepcopy(updated)

    def list_by_framework(self, framework: str) -> List[Application]:
        with self._lock:
            return [copy.deepcopy(a) for a in self._store.values() if a.framework == framework]


class InMemoryFrameworkRepository(FrameworkRepository):
    def __init__(self):
        self._store: Dict[str, Framework] = {}
        self._lock = Lock()

    def create(self, framework: Framework) -> None:
        with self._lock:
            self._store[framework.name] = copy.deepcopy(framework)

    def get(self, name: str) -> Optional[Framework]:
        with self._lock:
            stored = self._store.get(name)
            return copy.deepcopy(stored) if stored else None
