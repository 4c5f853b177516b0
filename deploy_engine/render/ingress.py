#deploy_engine\render\ingress.py
"""Resolve custom domains into http hosts and TLS endpoints."""

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from deploy_engine.core.errors import ClusterIssuerRequired
from deploy_engine.core.models import Cname, Framework

SECRET_HASH_LENGTH = 10


@dataclass(frozen=True)
class HttpsEndpoint:
    cname: str
    secret_name: str
    cluster_issuer: str


@dataclass
class IngressOverlay:
    """Routing part of the render model. Recomputed on every render."""
    http_hosts: List[str] = field(default_factory=list)
    https_endpoints: List[HttpsEndpoint] = field(default_factory=list)


def cname_secret_name(app_name: str, cname: str) -> str:
    """
    Name of the certificate secret for a domain.

    Same domain always gives the same name, so re-rendering does not
    request a new certificate.
    """
    digest = hashlib.sha256(cname.encode("utf-8")).hexdigest()[:SECRET_HASH_LENGTH]
    return f"{app_name}-cname-{digest}"


def default_cname(app_name: str, framework: Framework, suffix: str) -> Optional[str]:
    """Auto-generated host, or None when the framework has no service endpoint."""
    endpoint = framework.ingress_controller.service_endpoint
    if not endpoint:
        return None
    return f"{app_name}.{endpoint}.{suffix}"


def resolve_ingress(
    cnames: Sequence[Cname],
    secret_names: Sequence[str],
    cluster_issuer: str,
    app_name: str = "",
) -> IngressOverlay:
    """
    Split domains into plain http hosts and https endpoints.

    App level secrets win over framework issuance: the first secret is used
    for every secure domain along with "<secret>-clusterissuer". Otherwise
    the framework's cluster issuer is required.

    Raises:
        ClusterIssuerRequired: secure domain, no app secret, no issuer.
    """
    http_hosts: List[str] = []
    https_endpoints: List[HttpsEndpoint] = []

    for cname in cnames:
        if not cname.secure:
            http_hosts.append(cname.name)
            continue

        if secret_names:
            secret_name = secret_names[0]
            issuer = f"{secret_name}-clusterissuer"
        elif not cluster_issuer:
            raise ClusterIssuerRequired(
                f"secure cname {cname.name!r} requires a cluster issuer on the framework"
            )
        else:
            secret_name = cname_secret_name(app_name, cname.name)
            issuer = cluster_issuer

        https_endpoints.append(
            HttpsEndpoint(cname=cname.name, secret_name=secret_name, cluster_issuer=issuer)
        )

    return IngressOverlay(http_hosts=http_hosts, https_endpoints=https_endpoints)
