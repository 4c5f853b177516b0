# deploy_engine/infrastructure/pack/builder.py
"""Source builder backed by the `pack` CLI."""

import logging
import shutil
import subprocess
from typing import List

from deploy_engine.core.errors import UpstreamError
from deploy_engine.deploy.collaborators import BuildRequest, SourceBuilder

logger = logging.getLogger(__name__)


class PackBuilder(SourceBuilder):
    """Runs `pack build ... --publish` in the source directory."""

    def __init__(self, executable: str = "pack", timeout: int = 1800):
        self.executable = executable
        self.timeout = timeout

    def command(self, request: BuildRequest) -> List[str]:
        cmd = [
            self.executable, "build", request.image,
            "--builder", request.builder,
            "--path", request.working_directory,
            "--publish",
        ]
        for buildpack in request.build_packs:
            cmd.extend(["--buildpack", buildpack])
        return cmd

    def build(self, request: BuildRequest) -> None:
        if shutil.which(self.executable) is None:
            raise UpstreamError(f"{self.executable} executable not found")

        logger.info(f"[pack] building {request.image} for {request.app_name}")
        try:
            subprocess.run(
                self.command(request),
                check=True,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise UpstreamError(f"build of {request.image} timed out after {self.timeout}s")
        except subprocess.CalledProcessError as e:
            raise UpstreamError(f"build of {request.image} failed: {e.stderr or e}") from e

        logger.info(f"[pack] ✅ {request.image} published")
