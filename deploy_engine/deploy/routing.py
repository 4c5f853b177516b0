#deploy_engine\deploy\routing.py
"""Update custom domains, TLS secrets and metadata rules of an application."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from deploy_engine.core.errors import ApplicationNotFound, FrameworkNotFound
from deploy_engine.core.models import Application, Cname, MetadataRule
from deploy_engine.core.repository import ApplicationRepository, FrameworkRepository
from deploy_engine.core.retry import retry_on_conflict
from deploy_engine.render.ingress import resolve_ingress

logger = logging.getLogger(__name__)


@dataclass
class RoutingChange:
    """None leaves the field as stored."""
    cnames: Optional[List[Cname]] = None
    secret_names: Optional[List[str]] = None
    labels: Optional[List[MetadataRule]] = None
    annotations: Optional[List[MetadataRule]] = None


def update_routing(
    app_repo: ApplicationRepository,
    framework_repo: FrameworkRepository,
    app_name: str,
    change: RoutingChange,
    **retry_options,
) -> Application:
    """
    Apply the change and write it back under conflict retry. A change that
    matches what is stored is not written.

    Secure domains are resolved against the framework before writing so an
    app never stores domains it cannot render.
    """

    def attempt() -> Application:
        application = app_repo.get(app_name)
        if application is None:
            raise ApplicationNotFound(f"app {app_name!r} not found")

        changed = False
        if change.cnames is not None and change.cnames != application.ingress.cnames:
            application.ingress.cnames = list(change.cnames)
            changed = True
        if change.secret_names is not None and change.secret_names != application.secret_names:
            application.secret_names = list(change.secret_names)
            changed = True
        if change.labels is not None and change.labels != application.labels:
            application.labels = list(change.labels)
            changed = True
        if change.annotations is not None and change.annotations != application.annotations:
            application.annotations = list(change.annotations)
            changed = True

        framework = framework_repo.get(application.framework)
        if framework is None:
            raise FrameworkNotFound(f"failed to get framework {application.framework!r}")
        resolve_ingress(
            application.ingress.cnames,
            application.secret_names,
            framework.ingress_controller.cluster_issuer,
            app_name=application.name,
        )

        if not changed:
            logger.debug(f"[routing] {app_name}: nothing changed, skipping write")
            return application

        application.updated_at = datetime.now(timezone.utc)
        logger.info(f"[routing] {app_name}: {len(application.ingress.cnames)} cname(s)")
        return app_repo.update(application)

    return retry_on_conflict(attempt, **retry_options)
