# deploy_engine/infrastructure/registry/client.py
"""Docker Registry HTTP API v2 client that reads image configuration."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from deploy_engine.core.errors import UpstreamError
from deploy_engine.deploy.collaborators import ImageConfig, ImageConfigProvider, ImageConfigRequest

logger = logging.getLogger(__name__)

DOCKER_HUB_REGISTRY = "registry-1.docker.io"

MANIFEST_ACCEPT = ", ".join([
    "application/vnd.docker.distribution.manifest.v2+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.oci.image.index.v1+json",
])
_INDEX_TYPES = {
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.index.v1+json",
}
_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


@dataclass(frozen=True)
class ImageReference:
    registry: str
    repository: str
    reference: str  # tag or digest

    @classmethod
    def parse(cls, image: str) -> "ImageReference":
        """
        Split "host/repo:tag" or "repo@sha256:...".

        Names without a registry host go to Docker Hub, single component
        names get the "library/" prefix.
        """
        name, digest = image, None
        if "@" in image:
            name, digest = image.split("@", 1)

        first, _, rest = name.partition("/")
        if rest and ("." in first or ":" in first or first == "localhost"):
            registry, path = first, rest
        else:
            registry, path = DOCKER_HUB_REGISTRY, name

        tag = "latest"
        last = path.rsplit("/", 1)[-1]
        if ":" in last:
            path, tag = path.rsplit(":", 1)

        if registry == DOCKER_HUB_REGISTRY and "/" not in path:
            path = f"library/{path}"

        return cls(registry=registry, repository=path, reference=digest or tag)


class RegistryImageConfigProvider(ImageConfigProvider):
    """
    Reads entrypoint, cmd and exposed ports from a registry.

    Credentials are looked up by pull secret name; the lookup of the secret
    contents belongs to the caller.
    """

    def __init__(
        self,
        credentials: Optional[Dict[str, Tuple[str, str]]] = None,
        timeout: int = 30,
        platform: Tuple[str, str] = ("linux", "amd64"),
        session: Optional[requests.Session] = None,
        scheme: str = "https",
    ):
        """
        Args:
            credentials: pull secret name -> (username, password)
            timeout: Request timeout in seconds
            platform: (os, architecture) picked from multi-arch indexes
            session: requests session, injectable for tests
        """
        self._credentials = credentials or {}
        self.timeout = timeout
        self._platform = platform
        self._session = session or requests.Session()
        self._scheme = scheme

    def get_image_config(self, request: ImageConfigRequest) -> ImageConfig:
        ref = ImageReference.parse(request.image_name)
        auth = self._credentials.get(request.secret_name) if request.secret_name else None
        logger.info(f"[registry] reading config of {request.image_name}")

        try:
            manifest = self._get_manifest(ref, ref.reference, auth)
            if manifest.get("mediaType") in _INDEX_TYPES or "manifests" in manifest:
                manifest = self._get_manifest(ref, self._pick_platform(manifest), auth)

            config_digest = manifest["config"]["digest"]
            blob = self._get(ref, f"blobs/{config_digest}", auth).json()
        except requests.exceptions.Timeout:
            raise UpstreamError(f"registry timeout after {self.timeout}s for {request.image_name}")
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"can't read image {request.image_name}: {e}") from e
        except (KeyError, ValueError) as e:
            raise UpstreamError(f"unexpected manifest for {request.image_name}: {e}") from e

        config = blob.get("config") or {}
        return ImageConfig(
            entrypoint=list(config.get("Entrypoint") or []),
            cmd=list(config.get("Cmd") or []),
            exposed_ports=sorted((config.get("ExposedPorts") or {}).keys()),
            working_dir=config.get("WorkingDir") or None,
        )

    # -------------------------
    # HTTP
    # -------------------------

    def _get_manifest(self, ref: ImageReference, reference: str, auth) -> Dict[str, Any]:
        return self._get(ref, f"manifests/{reference}", auth, headers={"Accept": MANIFEST_ACCEPT}).json()

    def _pick_platform(self, index: Dict[str, Any]) -> str:
        os_name, arch = self._platform
        for entry in index.get("manifests", []):
            platform = entry.get("platform") or {}
            if platform.get("os") == os_name and platform.get("architecture") == arch:
                return entry["digest"]
        raise UpstreamError(f"no manifest for platform {os_name}/{arch}")

    def _get(self, ref: ImageReference, path: str, auth, headers: Optional[Dict[str, str]] = None):
        url = f"{self._scheme}://{ref.registry}/v2/{ref.repository}/{path}"
        headers = dict(headers or {})

        response = self._session.get(url, headers=headers, auth=auth, timeout=self.timeout)
        if response.status_code == 401 and "Bearer" in response.headers.get("WWW-Authenticate", ""):
            token = self._token(response.headers["WWW-Authenticate"], auth)
            headers["Authorization"] = f"Bearer {token}"
            response = self._session.get(url, headers=headers, timeout=self.timeout)

        response.raise_for_status()
        return response

    def _token(self, challenge: str, auth) -> str:
        params = dict(_CHALLENGE_PARAM.findall(challenge))
        realm = params.pop("realm", None)
        if not realm:
            raise UpstreamError(f"registry auth challenge without realm: {challenge}")

        response = self._session.get(realm, params=params, auth=auth, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        return data.get("token") or data["access_token"]
