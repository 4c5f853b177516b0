#deploy_engine\render\overlay.py
"""Render model handed to the manifest rendering engine."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from deploy_engine.config import settings
from deploy_engine.core.models import Application, Cname, Framework, MetadataTarget
from deploy_engine.render.ingress import IngressOverlay, default_cname, resolve_ingress
from deploy_engine.render.metadata import select_metadata


DEPLOYMENT_TARGET = MetadataTarget(api_version="apps/v1", kind="Deployment")
SERVICE_TARGET = MetadataTarget(api_version="v1", kind="Service")
RENDERED_TARGETS = (DEPLOYMENT_TARGET, SERVICE_TARGET)


@dataclass
class ResourceMetadata:
    target: MetadataTarget
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class ProcessOverlay:
    name: str
    units: Optional[int]
    resources: List[ResourceMetadata] = field(default_factory=list)


@dataclass
class DeploymentOverlay:
    version: int
    image: str
    routing_weight: int
    processes: List[ProcessOverlay] = field(default_factory=list)


@dataclass
class AppOverlay:
    app_name: str
    namespace: str
    ingress_class: str
    ingress: IngressOverlay
    deployments: List[DeploymentOverlay] = field(default_factory=list)


def build_app_overlay(
    application: Application,
    framework: Framework,
    cname_suffix: Optional[str] = None,
) -> AppOverlay:
    """
    Build ingress and per-process metadata for every deployment slot.

    Raises ClusterIssuerRequired from the ingress resolver.
    """
    cnames: List[Cname] = []
    if application.ingress.generate_default_cname:
        host = default_cname(application.name, framework, cname_suffix or settings.default_cname_suffix)
        if host:
            cnames.append(Cname(name=host))
    cnames.extend(application.ingress.cnames)

    ingress = resolve_ingress(
        cnames,
        application.secret_names,
        framework.ingress_controller.cluster_issuer,
        app_name=application.name,
    )

    deployments = []
    for slot in application.deployments:
        processes = []
        for process in slot.processes:
            resources = [
                ResourceMetadata(
                    target=target,
                    labels=select_metadata(application.labels, target, slot.version, process.name),
                    annotations=select_metadata(application.annotations, target, slot.version, process.name),
                )
                for target in RENDERED_TARGETS
            ]
            processes.append(ProcessOverlay(name=process.name, units=process.units, resources=resources))
        deployments.append(
            DeploymentOverlay(
                version=slot.version,
                image=slot.image,
                routing_weight=slot.routing_weight,
                processes=processes,
            )
        )

    return AppOverlay(
        app_name=application.name,
        namespace=framework.namespace_name,
        ingress_class=framework.ingress_controller.class_name,
        ingress=ingress,
        deployments=deployments,
    )
