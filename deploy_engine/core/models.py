#deploy_engine\core\models.py
"""Domain models for applications, deployment slots, and frameworks."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from deploy_engine.core.errors import SelectorError, ValidationError


DEFAULT_ROUTABLE_PROCESS = "web"
DEFAULT_TRAFFIC_WEIGHT = 100


# ============================================
# PROCESSES
# ============================================

@dataclass
class Env:
    """Environment variable."""
    name: str
    value: str


@dataclass
class ExposedPort:
    """Port exposed by an image."""
    port: int
    protocol: str = "TCP"

    @classmethod
    def parse(cls, raw: str) -> "ExposedPort":
        """Parse registry notation such as "8080/tcp"."""
        port, _, protocol = raw.partition("/")
        try:
            number = int(port)
        except ValueError:
            raise ValidationError(f"invalid exposed port {raw!r}")
        return cls(port=number, protocol=(protocol or "tcp").upper())


@dataclass
class ResourceRequirements:
    """Resource requests/limits, e.g. {"cpu": "500m", "memory": "512Mi"}."""
    requests: Dict[str, str] = field(default_factory=dict)
    limits: Dict[str, str] = field(default_factory=dict)


@dataclass
class Volume:
    name: str
    source: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VolumeMount:
    name: str
    mount_path: str


@dataclass
class ProcessSpec:
    """One named process of a deployment slot."""
    name: str
    cmd: List[str] = field(default_factory=list)
    units: Optional[int] = None
    env: List[Env] = field(default_factory=list)
    resources: Optional[ResourceRequirements] = None
    volumes: List[Volume] = field(default_factory=list)
    volume_mounts: List[VolumeMount] = field(default_factory=list)


# ============================================
# DEPLOYMENT SLOTS / CANARY
# ============================================

@dataclass
class DeploymentSlot:
    """One versioned, independently routable release of an application."""
    image: str
    version: int
    processes: List[ProcessSpec] = field(default_factory=list)
    routing_weight: int = DEFAULT_TRAFFIC_WEIGHT
    exposed_ports: List[ExposedPort] = field(default_factory=list)
    process_config: Optional[Dict[str, Any]] = None

    def process_names(self) -> List[str]:
        return [p.name for p in self.processes]


@dataclass
class CanaryState:
    """
    Staged rollout state.

    Only initialized here. A periodic controller advances current_step and
    moves weight between the two slots.
    """
    steps: int
    step_weight: int
    step_interval: timedelta
    current_step: int = 1
    active: bool = True
    next_scheduled_time: Optional[datetime] = None
    started_at: Optional[datetime] = None


# ============================================
# INGRESS / METADATA
# ============================================

@dataclass
class Cname:
    """Custom domain of an application."""
    name: str
    secure: bool = False


@dataclass
class IngressSpec:
    generate_default_cname: bool = False
    cnames: List[Cname] = field(default_factory=list)


@dataclass(frozen=True)
class MetadataTarget:
    """Kind + API version of a rendered resource."""
    api_version: str
    kind: str


@dataclass
class MetadataRule:
    """Labels or annotations to apply to matching rendered resources."""
    apply: Dict[str, str]
    target: MetadataTarget
    deployment_version: Optional[int] = None
    process_name: Optional[str] = None


@dataclass(frozen=True)
class Selector:
    """Picks processes by deployment version and/or process name."""
    deployment_version: Optional[int] = None
    process_name: Optional[str] = None


# ============================================
# FRAMEWORK
# ============================================

@dataclass
class IngressController:
    class_name: str = ""
    service_endpoint: str = ""
    cluster_issuer: str = ""
    type: str = "traefik"


@dataclass
class Framework:
    """Named placement target applications deploy into."""
    name: str
    namespace_name: str
    app_quota_limit: int = -1
    ingress_controller: IngressController = field(default_factory=IngressController)


# ============================================
# APPLICATION
# ============================================

@dataclass
class Application:
    """Persistent record of one deployed application."""
    name: str
    framework: str = ""

    deployments: List[DeploymentSlot] = field(default_factory=list)
    deployments_count: int = 0
    canary: Optional[CanaryState] = None

    ingress: IngressSpec = field(default_factory=IngressSpec)
    secret_names: List[str] = field(default_factory=list)

    env: List[Env] = field(default_factory=list)
    docker_registry_secret: str = ""
    description: str = ""
    builder: str = ""
    build_packs: List[str] = field(default_factory=list)

    labels: List[MetadataRule] = field(default_factory=list)
    annotations: List[MetadataRule] = field(default_factory=list)

    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    # Optimistic concurrency, maintained by the repository
    resource_version: int = 0

    def set_units(self, selector: Selector, units: int) -> None:
        """Set replica units on every process matched by the selector."""
        if units < 0:
            raise ValidationError("units must be a non-negative number")

        found = False
        for deployment in self.deployments:
            if selector.deployment_version is not None and deployment.version != selector.deployment_version:
                continue
            for process in deployment.processes:
                if selector.process_name is not None and process.name != selector.process_name:
                    continue
                process.units = units
                found = True

        if not found:
            raise SelectorError(
                f"no process matches selector version={selector.deployment_version} "
                f"process={selector.process_name!r} in app {self.name}"
            )
