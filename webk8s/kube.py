"""A small Kubernetes API client and the manifests the master submits."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import quote

import requests

from webk8s.models import (
    ContainerRequest,
    CreateDeploymentRequest,
    PodCreateRequest,
)

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"
HOST_ENV_VAR = "KUBERNETES_SERVICE_HOST"
PORT_ENV_VAR = "KUBERNETES_SERVICE_PORT"
APPS_API = "/apis/apps/v1"
REQUEST_TIMEOUT = 30.0

NOT_IN_CLUSTER = (
    "unable to load in-cluster configuration, "
    f"{HOST_ENV_VAR} and {PORT_ENV_VAR} must be defined"
)


class KubeError(RuntimeError):
    """Raised when the Kubernetes API cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class KubeClient:
    """Client for the deployment endpoints of the Kubernetes API."""

    def __init__(
        self,
        host: str,
        token: str | None = None,
        ca_cert: str | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.token = token
        self.ca_cert = ca_cert
        self._session = session if session is not None else requests.Session()

    @classmethod
    def in_cluster(
        cls,
        environ: Mapping[str, str] | None = None,
        root: str | os.PathLike[str] = SERVICE_ACCOUNT_DIR,
    ) -> KubeClient:
        """Build a client from the service account mounted into the pod."""
        env = os.environ if environ is None else environ
        host = env.get(HOST_ENV_VAR, "")
        port = env.get(PORT_ENV_VAR, "")
        if not host or not port:
            raise KubeError(NOT_IN_CLUSTER)

        base = Path(root)
        try:
            token = (base / "token").read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise KubeError(f"could not read service account token: {exc}") from exc

        ca_path = base / "ca.crt"
        ca_cert = str(ca_path) if ca_path.is_file() else None

        if ":" in host:
            host = f"[{host}]"
        return cls(f"https://{host}:{port}", token=token, ca_cert=ca_cert)

    def _deployments_url(self, namespace: str, name: str | None = None) -> str:
        url = self.host + APPS_API
        if namespace:
            url += f"/namespaces/{quote(namespace, safe='')}"
        url += "/deployments"
        if name is not None:
            url += f"/{quote(name, safe='')}"
        return url

    def _request(
        self, method: str, url: str, body: Mapping[str, Any] | None = None
    ) -> requests.Response:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            response = self._session.request(
                method,
                url,
                json=body,
                headers=headers,
                verify=self.ca_cert if self.ca_cert else True,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise KubeError(f"{method} {url}: {exc}") from exc

        if not 200 <= response.status_code < 300:
            raise KubeError(_error_message(response), response.status_code)
        return response

    def create_deployment(
        self, namespace: str, manifest: Mapping[str, Any]
    ) -> dict[str, Any]:
        """Create a deployment in *namespace* and return the created object."""
        response = self._request("POST", self._deployments_url(namespace), manifest)
        try:
            created = response.json()
        except ValueError as exc:
            raise KubeError("invalid JSON in API reply", response.status_code) from exc
        if not isinstance(created, dict):
            raise KubeError("unexpected API reply", response.status_code)
        return created

    def delete_deployment(self, namespace: str, name: str) -> None:
        """Delete the deployment *name* in *namespace*."""
        self._request("DELETE", self._deployments_url(namespace, name))


def _error_message(response: requests.Response) -> str:
    try:
        status = response.json()
    except ValueError:
        status = None
    if isinstance(status, dict) and status.get("message"):
        return str(status["message"])
    return response.text or f"HTTP {response.status_code}"


def _metadata(name: str, namespace: str, labels: Mapping[str, str]) -> dict[str, Any]:
    meta: dict[str, Any] = {}
    if name:
        meta["name"] = name
    if namespace:
        meta["namespace"] = namespace
    if labels:
        meta["labels"] = dict(labels)
    return meta


def _container(container: ContainerRequest) -> dict[str, Any]:
    out: dict[str, Any] = {"name": container.name}
    if container.image:
        out["image"] = container.image
    if container.command:
        out["command"] = list(container.command)
    if container.args:
        out["args"] = list(container.args)
    if container.ports:
        out["ports"] = [{"containerPort": port.container_port} for port in container.ports]
    return out


def build_pod_template(request: PodCreateRequest) -> dict[str, Any]:
    """Pod template (metadata and spec) described by *request*."""
    spec: dict[str, Any] = {
        "containers": [_container(container) for container in request.containers]
    }
    if request.restart_policy is not None:
        spec["restartPolicy"] = request.restart_policy.value
    return {
        "metadata": _metadata(request.name, request.namespace, request.labels),
        "spec": spec,
    }


def build_deployment(request: CreateDeploymentRequest) -> dict[str, Any]:
    """Deployment manifest described by *request*."""
    selector: dict[str, Any] = {}
    if request.match_labels:
        selector["matchLabels"] = dict(request.match_labels)
    strategy: dict[str, Any] = {}
    if request.strategy is not None:
        strategy["type"] = request.strategy.value
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(request.name, request.namespace, request.labels),
        "spec": {
            "replicas": request.replicas,
            "selector": selector,
            "template": build_pod_template(request.pod),
            "strategy": strategy,
        },
    }