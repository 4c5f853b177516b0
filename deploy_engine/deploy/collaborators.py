#deploy_engine\deploy\collaborators.py
"""Contracts of the services a deploy relies on but does not implement."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class BuildRequest:
    image: str
    app_name: str
    builder: str
    build_packs: List[str] = field(default_factory=list)
    working_directory: str = "."


class SourceBuilder(ABC):
    """Builds and pushes an image from a source directory."""

    @abstractmethod
    def build(self, request: BuildRequest) -> None:
        """Raise on build failure."""
        raise NotImplementedError


@dataclass
class ImageConfigRequest:
    image_name: str
    secret_name: str = ""
    secret_namespace: str = ""


@dataclass
class ImageConfig:
    """The parts of an image's registry config a deploy needs."""
    entrypoint: List[str] = field(default_factory=list)
    cmd: List[str] = field(default_factory=list)
    # Registry notation, e.g. "8080/tcp"
    exposed_ports: List[str] = field(default_factory=list)
    working_dir: Optional[str] = None


class ImageConfigProvider(ABC):
    """Reads image configuration from a registry."""

    @abstractmethod
    def get_image_config(self, request: ImageConfigRequest) -> ImageConfig:
        raise NotImplementedError
