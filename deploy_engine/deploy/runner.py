#deploy_engine\deploy\runner.py
"""
Deploy runner - ties reconciliation, build, image config and the
deployment slot update together.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from deploy_engine.core.errors import DeployEngineError, FrameworkNotFound, UpstreamError
from deploy_engine.core.models import Application, ExposedPort, Framework
from deploy_engine.core.repository import ApplicationRepository, FrameworkRepository
from deploy_engine.core.retry import retry_on_conflict
from deploy_engine.deploy.changeset import ChangeSet, value_or
from deploy_engine.deploy.collaborators import (
    BuildRequest, ImageConfig, ImageConfigProvider, ImageConfigRequest, SourceBuilder,
)
from deploy_engine.deploy.processes import DeploymentRequest, apply_deployment
from deploy_engine.deploy.procfile import Procfile, load_procfile, procfile_from_image
from deploy_engine.deploy.reconciler import ApplicationReconciler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    app_repo: ApplicationRepository
    framework_repo: FrameworkRepository
    image_config: ImageConfigProvider
    builder: Optional[SourceBuilder] = None


class Runner:
    """
    Executes one deploy.

    Flow:
    1. Apply the change set to the application in memory (validation only)
    2. Build from source, or use the given image
    3. Read image config and derive processes
    4. Re-read, re-apply the change set and the slot update, write once

    Any failure before step 4 leaves the stored application untouched.
    Step 4 restarts from the read on conflict; builds and registry reads
    are not repeated.
    """

    def __init__(self, changeset: ChangeSet, **retry_options):
        self._changeset = changeset
        self._retry_options = retry_options

    def run(self, services: Services) -> Application:
        reconciler = ApplicationReconciler(services.app_repo, services.framework_repo)
        application, _, _ = reconciler.prepare(self._changeset)

        if self._changeset.source_path is not None:
            request = self._deploy_from_source(services, application)
        else:
            request = self._deploy_from_image(services, application)

        def attempt() -> Application:
            fresh, creating, _ = reconciler.prepare(self._changeset)
            apply_deployment(fresh, request)
            if creating:
                return services.app_repo.create(fresh)
            fresh.updated_at = datetime.now(timezone.utc)
            return services.app_repo.update(fresh)

        application = retry_on_conflict(attempt, **self._retry_options)
        logger.info(
            f"[deploy] {application.name}: {len(application.deployments)} deployment(s), "
            f"latest v{application.deployments_count}"
        )
        return application

    # -------------------------
    # PATHS
    # -------------------------

    def _deploy_from_source(self, services: Services, application: Application) -> DeploymentRequest:
        cs = self._changeset
        framework = self._load_framework(services, application)
        image = cs.get_image()
        source = cs.get_source_directory()

        if services.builder is None:
            raise UpstreamError("deploy from source failed: no source builder configured")

        logger.info(f"[deploy] {cs.app_name}: building {image} with {application.builder}")
        try:
            services.builder.build(
                BuildRequest(
                    image=image,
                    app_name=cs.app_name,
                    builder=application.builder,
                    build_packs=list(application.build_packs),
                    working_directory=source,
                )
            )
        except DeployEngineError:
            raise
        except Exception as e:
            raise UpstreamError(f"deploy from source failed: build of {image} failed: {e}") from e

        image_config = self._image_config(services, application, framework, image, "source")
        procfile = load_procfile(cs.get_procfile_path())
        return self._deployment_request(image, procfile, image_config)

    def _deploy_from_image(self, services: Services, application: Application) -> DeploymentRequest:
        cs = self._changeset
        framework = self._load_framework(services, application)
        image = cs.get_image()

        image_config = self._image_config(services, application, framework, image, "image")
        procfile = procfile_from_image(image_config.entrypoint, image_config.cmd)
        return self._deployment_request(image, procfile, image_config)

    # -------------------------
    # HELPERS
    # -------------------------

    def _load_framework(self, services: Services, application: Application) -> Framework:
        framework = services.framework_repo.get(application.framework)
        if framework is None:
            raise FrameworkNotFound(f"failed to get framework {application.framework!r}")
        return framework

    def _image_config(
        self,
        services: Services,
        application: Application,
        framework: Framework,
        image: str,
        stage: str,
    ) -> ImageConfig:
        request = ImageConfigRequest(
            image_name=image,
            secret_name=application.docker_registry_secret,
            secret_namespace=framework.namespace_name,
        )
        try:
            return services.image_config.get_image_config(request)
        except DeployEngineError:
            raise
        except Exception as e:
            raise UpstreamError(f"deploy from {stage} failed: can't read config of image {image}: {e}") from e

    def _deployment_request(
        self,
        image: str,
        procfile: Procfile,
        image_config: ImageConfig,
    ) -> DeploymentRequest:
        cs = self._changeset
        steps = value_or(cs.get_steps, 0)
        exposed_ports = sorted(
            (ExposedPort.parse(port) for port in image_config.exposed_ports),
            key=lambda p: (p.port, p.protocol),
        )

        return DeploymentRequest(
            image=image,
            processes=procfile.to_process_specs(),
            exposed_ports=exposed_ports,
            process_config=value_or(cs.get_process_config, None),
            steps=steps,
            step_weight=value_or(cs.get_step_weight, 0) if steps > 0 else 0,
            step_interval=value_or(cs.get_step_interval, timedelta(0)),
            units=value_or(cs.get_units, 0),
            units_process=value_or(cs.get_units_process, procfile.routable_process_name),
        )
