#deploy_engine\deploy\reconciler.py
"""Merge a change set into the stored application under conflict retry."""

import logging
from datetime import datetime, timezone
from typing import Any, Tuple

from deploy_engine.core.errors import FrameworkChangeError, FrameworkNotFound
from deploy_engine.core.models import Application, IngressSpec
from deploy_engine.core.repository import ApplicationRepository, FrameworkRepository
from deploy_engine.core.retry import retry_on_conflict
from deploy_engine.deploy.changeset import ChangeSet, assign
from deploy_engine.deploy.validation import (
    validate_create_app, validate_deploy, validate_source_deploy,
)

logger = logging.getLogger(__name__)


def _update_field(application: Application, attr: str, value: Any) -> bool:
    """Set attr when the value differs. Returns True if it changed."""
    if getattr(application, attr) == value:
        return False
    setattr(application, attr, value)
    return True


class ApplicationReconciler:
    """
    Applies a change set to an application: fetch (or start a new one),
    mutate the requested fields, write once.

    The whole cycle is restarted from the fetch when the store reports a
    conflict.
    """

    def __init__(
        self,
        app_repo: ApplicationRepository,
        framework_repo: FrameworkRepository,
        **retry_options,
    ):
        self._app_repo = app_repo
        self._framework_repo = framework_repo
        self._retry_options = retry_options

    def reconcile(self, changeset: ChangeSet) -> Application:
        return retry_on_conflict(lambda: self._attempt(changeset), **self._retry_options)

    # -------------------------
    # ONE ATTEMPT
    # -------------------------

    def _fetch_or_new(self, changeset: ChangeSet) -> Tuple[Application, bool]:
        application = self._app_repo.get(changeset.app_name)
        if application is not None:
            return application, False

        validate_create_app(changeset, self._app_repo, self._framework_repo)
        logger.info(f"[reconcile] {changeset.app_name}: not found, creating")
        return Application(
            name=changeset.app_name,
            deployments=[],
            ingress=IngressSpec(generate_default_cname=True),
        ), True

    def prepare(self, changeset: ChangeSet) -> Tuple[Application, bool, bool]:
        """
        Fetch (or start) the application and apply the change set in memory.

        Nothing is written. Returns (application, creating, changed).
        """
        application, creating = self._fetch_or_new(changeset)
        changed = False

        if changeset.source_path is not None:
            validate_source_deploy(changeset)
            changed |= _update_field(application, "builder", changeset.get_builder(application))
            changed |= assign(
                changeset.get_build_packs,
                lambda packs: _update_field(application, "build_packs", packs),
            )

        validate_deploy(changeset, application)

        changed |= assign(changeset.get_framework, lambda name: self._set_framework(application, name))
        changed |= assign(
            changeset.get_description,
            lambda desc: _update_field(application, "description", desc),
        )
        changed |= assign(
            changeset.get_environments,
            lambda envs: _update_field(application, "env", envs),
        )
        changed |= assign(
            changeset.get_docker_registry_secret,
            lambda secret: _update_field(application, "docker_registry_secret", secret),
        )
        return application, creating, changed

    def _attempt(self, changeset: ChangeSet) -> Application:
        application, creating, changed = self.prepare(changeset)
        if creating:
            return self._app_repo.create(application)

        if not changed:
            logger.debug(f"[reconcile] {application.name}: nothing to update")
            return application

        application.updated_at = datetime.now(timezone.utc)
        logger.info(f"[reconcile] {application.name}: updating (version {application.resource_version})")
        return self._app_repo.update(application)

    def _set_framework(self, application: Application, name: str) -> bool:
        if application.framework and application.framework != name:
            raise FrameworkChangeError("can't change framework once app has been created")
        if self._framework_repo.get(name) is None:
            raise FrameworkNotFound(f"framework {name!r} not found")
        return _update_field(application, "framework", name)


def reconcile_application(
    changeset: ChangeSet,
    app_repo: ApplicationRepository,
    framework_repo: FrameworkRepository,
    **retry_options,
) -> Application:
    return ApplicationReconciler(app_repo, framework_repo, **retry_options).reconcile(changeset)
