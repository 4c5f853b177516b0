# deploy_engine/core/repository.py

from abc import ABC, abstractmethod
from typing import List, Optional

from deploy_engine.core.models import Application, Framework


class ApplicationRepository(ABC):
    """
    Persistence contract for applications.
    """

    @abstractmethod
    def create(self, application: Application) -> Application:
        """
        Persist a new application.
        Must raise ApplicationAlreadyExists if the name is taken.
        Returns the stored copy carrying its resource_version.
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, name: str) -> Optional[Application]:
        """
        Fetch application by name.
        Returns None if not found.
        """
        raise NotImplementedError

    @abstractmethod
    def update(self, application: Application) -> Application:
        """
        Persist an application read earlier.
        Must enforce optimistic concurrency: raise ApplicationConflictError
        when resource_version no longer matches the stored one, and
        ApplicationNotFound when the record is gone.
        """
        raise NotImplementedError

    @abstractmethod
    def list_by_framework(self, framework: str) -> List[Application]:
        """
        List applications placed in a framework.
        Used for quota checks.
        """
        raise NotImplementedError


class FrameworkRepository(ABC):
    """
    Read access to frameworks.
    """

    @abstractmethod
    def get(self, name: str) -> Optional[Framework]:
        raise NotImplementedError

    @abstractmethod
    def create(self, framework: Framework) -> None:
        raise NotImplementedError
