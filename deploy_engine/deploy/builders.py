#deploy_engine\deploy\builders.py
"""Well-known cloud native buildpack builders."""

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class BuilderInfo:
    vendor: str
    image: str
    description: str


DEFAULT_BUILDERS = (
    BuilderInfo("Google", "gcr.io/buildpacks/builder:v1", "GCP Builder for all runtimes"),
    BuilderInfo(
        "Heroku", "heroku/buildpacks:18",
        "heroku-18 base image with buildpacks for Ruby, Java, Node.js, Python, Golang, & PHP",
    ),
    BuilderInfo(
        "Heroku", "heroku/buildpacks:20",
        "heroku-20 base image with buildpacks for Ruby, Java, Node.js, Python, Golang, & PHP",
    ),
    BuilderInfo(
        "Paketo Buildpacks", "paketobuildpacks/builder:base",
        "Small base image with buildpacks for Java, Node.js, Golang, & .NET Core",
    ),
    BuilderInfo(
        "Paketo Buildpacks", "paketobuildpacks/builder:full",
        "Larger base image with buildpacks for Java, Node.js, Golang, .NET Core, & PHP",
    ),
    BuilderInfo(
        "Paketo Buildpacks", "paketobuildpacks/builder:tiny",
        "Tiny base image (bionic build image, distroless run image) with buildpacks for Golang",
    ),
)


def list_builders(additional: Iterable[BuilderInfo] = ()) -> List[BuilderInfo]:
    """Defaults followed by user configured builders."""
    return list(DEFAULT_BUILDERS) + list(additional)
