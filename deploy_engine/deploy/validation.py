#deploy_engine\deploy\validation.py
import os
import re
from typing import Optional

from deploy_engine.config import settings
from deploy_engine.core.errors import FieldNotSupplied, FrameworkNotFound, ValidationError
from deploy_engine.core.models import Application
from deploy_engine.core.repository import ApplicationRepository, FrameworkRepository
from deploy_engine.deploy.changeset import ChangeSet, value_or

_APP_NAME = re.compile(r"^[a-z]([-a-z0-9]{0,38}[a-z0-9])?$")


def validate_create_app(
    changeset: ChangeSet,
    app_repo: ApplicationRepository,
    framework_repo: FrameworkRepository,
) -> None:
    """Checks run before a brand new application is created."""
    # -------------------------
    # Identity
    # -------------------------
    if not _APP_NAME.match(changeset.app_name):
        raise ValidationError(
            f"invalid app name {changeset.app_name!r}: use lowercase letters, digits "
            f"and '-', start with a letter, at most 40 characters"
        )

    # -------------------------
    # Framework
    # -------------------------
    try:
        framework_name = changeset.get_framework()
    except FieldNotSupplied:
        raise ValidationError("a framework is required to create an app")

    framework = framework_repo.get(framework_name)
    if framework is None:
        raise FrameworkNotFound(f"framework {framework_name!r} not found")

    # -------------------------
    # Quota
    # -------------------------
    if framework.app_quota_limit >= 0:
        placed = len(app_repo.list_by_framework(framework_name))
        if placed >= framework.app_quota_limit:
            raise ValidationError(
                f"framework {framework_name!r} reached its quota of {framework.app_quota_limit} apps"
            )


def validate_source_deploy(changeset: ChangeSet) -> None:
    """Source directory must exist, hold files, and contain a Procfile."""
    source = changeset.get_source_directory()

    if not os.path.isdir(source):
        raise ValidationError(f"source directory {source!r} does not exist")

    if not os.listdir(source):
        raise ValidationError(f"source directory {source!r} is empty")

    if not os.path.isfile(changeset.get_procfile_path()):
        raise ValidationError(f"no {settings.default_procfile} found in {source!r}")

    if not changeset.image:
        raise ValidationError("an image name is required to build from source")


def resolve_source_path(root: Optional[str], requested: str) -> str:
    """Resolve a client supplied source path, keeping it inside root."""
    if not root:
        raise ValidationError("deploy from source is disabled: no source root configured")

    base = os.path.realpath(root)
    path = os.path.realpath(os.path.join(base, requested))
    if os.path.commonpath([base, path]) != base:
        raise ValidationError(f"source path {requested!r} is outside the source root")
    return path


def validate_deploy(changeset: ChangeSet, application: Application) -> None:
    """Checks shared by image and source deploys."""
    # -------------------------
    # Image
    # -------------------------
    if not changeset.image:
        raise ValidationError("missing image")

    # -------------------------
    # Scaling
    # -------------------------
    units = value_or(changeset.get_units, 0)
    if units < 0:
        raise ValidationError("units must be a non-negative number")

    # -------------------------
    # Canary
    # -------------------------
    validate_slot_state(application, canary=False)

    steps = value_or(changeset.get_steps, 0)
    if steps == 0:
        return

    if steps < settings.min_canary_steps or steps > settings.max_canary_steps:
        raise ValidationError(
            f"steps must be within the range {settings.min_canary_steps} to {settings.max_canary_steps}"
        )

    step_weight = changeset.get_step_weight()
    if step_weight < 1 or step_weight > 100:
        raise ValidationError("step weight must be within the range 1 to 100")

    try:
        interval = changeset.get_step_interval()
    except FieldNotSupplied:
        raise ValidationError("step interval is required for a canary deployment")
    if interval.total_seconds() <= 0:
        raise ValidationError("step interval must be positive")

    validate_slot_state(application, canary=True)


def validate_slot_state(application: Application, canary: bool) -> None:
    """
    Slot preconditions of a deploy: no canary in flight, and exactly one
    slot to start a canary from. Must hold on the record the slots are
    written to, not only on an earlier read.
    """
    if application.canary is not None and application.canary.active:
        raise ValidationError(
            f"canary deployment of app {application.name!r} is still active"
        )
    if canary and len(application.deployments) != 1:
        raise ValidationError("canary deployment requires exactly one existing deployment")
