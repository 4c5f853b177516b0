#deploy_engine\deploy\processes.py
"""Process diff and deployment slot / canary bookkeeping."""

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from deploy_engine.core.errors import ApplicationNotFound
from deploy_engine.core.models import (
    DEFAULT_TRAFFIC_WEIGHT, Application, CanaryState, DeploymentSlot, ExposedPort,
    ProcessSpec, Selector,
)
from deploy_engine.core.repository import ApplicationRepository
from deploy_engine.core.retry import retry_on_conflict
from deploy_engine.deploy.validation import validate_slot_state

logger = logging.getLogger(__name__)


@dataclass
class DeploymentRequest:
    """What the next deployment slot should run."""
    image: str
    processes: List[ProcessSpec]
    exposed_ports: List[ExposedPort] = field(default_factory=list)
    process_config: Optional[Dict[str, Any]] = None

    steps: int = 0
    step_weight: int = 0
    step_interval: timedelta = timedelta(0)

    units: int = 0
    # None targets every process of the slot
    units_process: Optional[str] = None

    def is_canary(self) -> bool:
        return self.steps > 1


# ============================================
# PROCESS DIFF
# ============================================

def processes_changed(existing: Sequence[ProcessSpec], desired: Sequence[ProcessSpec]) -> bool:
    """
    Positional comparison of names and commands.

    Length mismatch is decided before looking at any element. Units, env,
    resources and volumes are not compared.
    """
    if len(existing) != len(desired):
        logger.debug("[processes] differ in length")
        return True

    for current, wanted in zip(existing, desired):
        if current.name != wanted.name:
            logger.debug(f"[processes] name changed {current.name} -> {wanted.name}")
            return True
        if len(current.cmd) != len(wanted.cmd):
            logger.debug(f"[processes] {current.name}: command length changed")
            return True
        for before, after in zip(current.cmd, wanted.cmd):
            if before != after:
                logger.debug(f"[processes] {current.name}: command changed")
                return True

    return False


def diff_processes(
    existing: List[ProcessSpec],
    desired: Sequence[ProcessSpec],
) -> Tuple[bool, List[ProcessSpec]]:
    """Return (changed, processes to keep). Changed lists are replaced whole."""
    if processes_changed(existing, desired):
        return True, copy.deepcopy(list(desired))
    return False, existing


# ============================================
# SLOT / CANARY STATE
# ============================================

def _new_slot(application: Application, request: DeploymentRequest, weight: int) -> DeploymentSlot:
    return DeploymentSlot(
        image=request.image,
        version=application.deployments_count + 1,
        processes=copy.deepcopy(list(request.processes)),
        routing_weight=weight,
        exposed_ports=list(request.exposed_ports),
        process_config=copy.deepcopy(request.process_config),
    )


def _apply_units(application: Application, slot: DeploymentSlot, request: DeploymentRequest) -> None:
    if request.units > 0:
        selector = Selector(deployment_version=slot.version, process_name=request.units_process)
        application.set_units(selector, request.units)


def apply_deployment(
    application: Application,
    request: DeploymentRequest,
    now: Optional[datetime] = None,
) -> Application:
    """
    Fold a deployment request into the application in memory.

    - Not a canary and one existing slot: update that slot in place.
    - Not a canary otherwise: replace slots with one new version.
    - Canary: append a new version at weight 0 and start canary state. The
      outgoing slot keeps its weight.

    Raises ValidationError when a canary is in flight or a canary has no
    single slot to start from, and SelectorError when the units target is
    missing. Both happen before anything is persisted.
    """
    validate_slot_state(application, canary=request.is_canary())
    now = now or datetime.now(timezone.utc)

    if not request.is_canary() and len(application.deployments) == 1:
        slot = application.deployments[0]
        changed, slot.processes = diff_processes(slot.processes, request.processes)
        if changed:
            logger.info(f"[processes] {application.name} v{slot.version}: processes replaced")

        slot.image = request.image
        slot.exposed_ports = list(request.exposed_ports)
        slot.process_config = copy.deepcopy(request.process_config)
        slot.routing_weight = DEFAULT_TRAFFIC_WEIGHT

        _apply_units(application, slot, request)
        return application

    if request.is_canary():
        slot = _new_slot(application, request, weight=0)
        application.canary = CanaryState(
            steps=request.steps,
            step_weight=request.step_weight,
            step_interval=request.step_interval,
            current_step=1,
            active=True,
            next_scheduled_time=now + request.step_interval,
            started_at=now,
        )
        application.deployments.append(slot)
        logger.info(
            f"[processes] {application.name}: canary v{slot.version} started "
            f"({request.steps} steps of {request.step_weight}%)"
        )
    else:
        slot = _new_slot(application, request, weight=DEFAULT_TRAFFIC_WEIGHT)
        application.deployments = [slot]
        application.canary = None
        logger.info(f"[processes] {application.name}: deployment v{slot.version} created")

    application.deployments_count += 1
    _apply_units(application, slot, request)
    return application


def update_application_deployments(
    app_repo: ApplicationRepository,
    app_name: str,
    request: DeploymentRequest,
    now: Optional[datetime] = None,
    **retry_options,
) -> Application:
    """Read, apply_deployment, write. Restarted from the read on conflict."""

    def attempt() -> Application:
        application = app_repo.get(app_name)
        if application is None:
            raise ApplicationNotFound(f"could not get app to deploy {app_name!r}")
        logger.debug(f"[processes] {app_name}: found {len(application.deployments)} deployment(s)")

        apply_deployment(application, request, now=now)
        return app_repo.update(application)

    return retry_on_conflict(attempt, **retry_options)
