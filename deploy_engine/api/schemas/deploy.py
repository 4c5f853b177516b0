from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from deploy_engine.config import settings
from deploy_engine.core.models import Cname, MetadataRule, MetadataTarget
from deploy_engine.deploy.changeset import ChangeSet
from deploy_engine.deploy.routing import RoutingChange
from deploy_engine.deploy.validation import resolve_source_path


# ============================================
# Requests
# ============================================

class DeployRequest(BaseModel):
    """Body of POST /apps/{name}/deploy. Omitted fields are left unchanged."""

    image: str
    framework: Optional[str] = None
    description: Optional[str] = None
    env: Optional[List[str]] = None
    docker_registry_secret: Optional[str] = None

    # relative to the configured source root
    source_path: Optional[str] = None
    builder: Optional[str] = None
    build_packs: Optional[List[str]] = None

    steps: Optional[int] = Field(default=None, ge=0)
    step_weight: Optional[int] = Field(default=None, ge=1, le=100)
    step_interval_seconds: Optional[float] = Field(default=None, gt=0)

    units: Optional[int] = Field(default=None, ge=0)
    process: Optional[str] = None

    process_config: Optional[Dict[str, Any]] = None

    def to_changeset(self, app_name: str) -> ChangeSet:
        interval = None
        if self.step_interval_seconds is not None:
            interval = timedelta(seconds=self.step_interval_seconds)
        source_path = None
        if self.source_path is not None:
            source_path = resolve_source_path(settings.source_root, self.source_path)
        return ChangeSet(
            app_name=app_name,
            image=self.image,
            framework=self.framework,
            description=self.description,
            environment=self.env,
            docker_registry_secret=self.docker_registry_secret,
            source_path=source_path,
            builder=self.builder,
            build_packs=self.build_packs,
            steps=self.steps,
            step_weight=self.step_weight,
            step_interval=interval,
            units=self.units,
            units_process=self.process,
            process_config=self.process_config,
        )


class IngressControllerSchema(BaseModel):
    class_name: str = ""
    service_endpoint: str = ""
    cluster_issuer: str = ""
    type: str = "traefik"

    model_config = ConfigDict(from_attributes=True)


class MetadataRuleSchema(BaseModel):
    apply: Dict[str, str]
    api_version: str
    kind: str
    deployment_version: Optional[int] = None
    process_name: Optional[str] = None

    def to_rule(self) -> MetadataRule:
        return MetadataRule(
            apply=dict(self.apply),
            target=MetadataTarget(api_version=self.api_version, kind=self.kind),
            deployment_version=self.deployment_version,
            process_name=self.process_name,
        )


class CnameRequest(BaseModel):
    name: str
    secure: bool = False


class RoutingRequest(BaseModel):
    """Body of PATCH /apps/{name}/routing. Omitted fields are left unchanged."""

    cnames: Optional[List[CnameRequest]] = None
    secret_names: Optional[List[str]] = None
    labels: Optional[List[MetadataRuleSchema]] = None
    annotations: Optional[List[MetadataRuleSchema]] = None

    def to_change(self) -> RoutingChange:
        return RoutingChange(
            cnames=[Cname(name=c.name, secure=c.secure) for c in self.cnames] if self.cnames is not None else None,
            secret_names=self.secret_names,
            labels=[r.to_rule() for r in self.labels] if self.labels is not None else None,
            annotations=[r.to_rule() for r in self.annotations] if self.annotations is not None else None,
        )


class FrameworkCreateRequest(BaseModel):
    name: str
    namespace_name: str
    app_quota_limit: int = Field(default=-1, ge=-1)
    ingress_controller: IngressControllerSchema = Field(default_factory=IngressControllerSchema)


# ============================================
# Responses
# ============================================

class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class ProcessSchema(_FromAttributes):
    name: str
    cmd: List[str]
    units: Optional[int] = None


class ExposedPortSchema(_FromAttributes):
    port: int
    protocol: str


class DeploymentSlotSchema(_FromAttributes):
    image: str
    version: int
    routing_weight: int
    processes: List[ProcessSchema]
    exposed_ports: List[ExposedPortSchema]


class CanarySchema(_FromAttributes):
    steps: int
    step_weight: int
    step_interval: timedelta
    current_step: int
    active: bool
    next_scheduled_time: Optional[datetime] = None
    started_at: Optional[datetime] = None


class CnameSchema(_FromAttributes):
    name: str
    secure: bool


class IngressSchema(_FromAttributes):
    generate_default_cname: bool
    cnames: List[CnameSchema]


class ApplicationResponse(_FromAttributes):
    name: str
    framework: str
    description: str
    builder: str
    build_packs: List[str]
    deployments: List[DeploymentSlotSchema]
    deployments_count: int
    canary: Optional[CanarySchema] = None
    ingress: IngressSchema
    secret_names: List[str]
    resource_version: int


class FrameworkResponse(_FromAttributes):
    name: str
    namespace_name: str
    app_quota_limit: int
    ingress_controller: IngressControllerSchema


class HttpsEndpointSchema(_FromAttributes):
    cname: str
    secret_name: str
    cluster_issuer: str


class IngressOverlaySchema(_FromAttributes):
    http_hosts: List[str]
    https_endpoints: List[HttpsEndpointSchema]


class MetadataTargetSchema(_FromAttributes):
    api_version: str
    kind: str


class ResourceMetadataSchema(_FromAttributes):
    target: MetadataTargetSchema
    labels: Dict[str, str]
    annotations: Dict[str, str]


class ProcessOverlaySchema(_FromAttributes):
    name: str
    units: Optional[int] = None
    resources: List[ResourceMetadataSchema]


class DeploymentOverlaySchema(_FromAttributes):
    version: int
    image: str
    routing_weight: int
    processes: List[ProcessOverlaySchema]


class AppOverlayResponse(_FromAttributes):
    app_name: str
    namespace: str
    ingress_class: str
    ingress: IngressOverlaySchema
    deployments: List[DeploymentOverlaySchema]


class BuilderSchema(_FromAttributes):
    vendor: str
    image: str
    description: str
