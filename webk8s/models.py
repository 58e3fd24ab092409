"""Wire models of the v1 API: requests, replies and resource descriptions."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

ROOT_PATH = "/v1"

NODE_PATH = ROOT_PATH + "/node"
NODE_UPDATE_METHOD = "POST"

BATCH_PATH = NODE_PATH + "/batch"
BATCH_GET_METHOD = "GET"

DEPLOYMENT_PATH = ROOT_PATH + "/deployment"
DEPLOYMENT_CREATE_METHOD = "POST"
DEPLOYMENT_DELETE_METHOD = "DELETE"

_INT32 = (-(2**31), 2**31 - 1)
_UINT32 = (0, 2**32 - 1)
_INT64 = (-(2**63), 2**63 - 1)
_UINT64 = (0, 2**64 - 1)

T = TypeVar("T")


class ModelError(ValueError):
    """Raised when a payload does not fit the expected model."""


def _mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ModelError(f"{what}: expected an object, got {type(data).__name__}")
    return data


def _str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ModelError(f"{key}: expected a string, got {type(value).__name__}")
    return value


def _int(data: Mapping[str, Any], key: str, bounds: tuple[int, int]) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ModelError(f"{key}: expected an integer, got {type(value).__name__}")
    low, high = bounds
    if not low <= value <= high:
        raise ModelError(f"{key}: {value} is out of range [{low}, {high}]")
    return value


def _str_list(data: Mapping[str, Any], key: str) -> list[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ModelError(f"{key}: expected a list of strings")
    return list(value)


def _str_map(data: Mapping[str, Any], key: str) -> dict[str, str]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in value.items()
    ):
        raise ModelError(f"{key}: expected an object of strings")
    return dict(value)


def _objects(
    data: Mapping[str, Any], key: str, factory: Callable[[Any], T]
) -> list[T]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ModelError(f"{key}: expected a list")
    return [factory(item) for item in value]


def _object(data: Mapping[str, Any], key: str, factory: Callable[[Any], T]) -> T:
    value = data.get(key)
    return factory({} if value is None else value)


E = TypeVar("E", bound=Enum)


def _enum(data: Mapping[str, Any], key: str, kind: type[E]) -> E | None:
    raw = _str(data, key)
    if not raw:
        return None
    try:
        return kind(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in kind)
        raise ModelError(f"{key}: {raw!r} is not one of {allowed}") from None


@dataclass
class BaseReply:
    """Common reply: a success flag and, on failure, an error message."""

    success: bool
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.error:
            out["error"] = self.error
        return out


def success_reply() -> BaseReply:
    """A reply reporting success."""
    return BaseReply(success=True)


def error_reply(message: str) -> BaseReply:
    """A reply reporting failure with *message*."""
    return BaseReply(success=False, error=message)


@dataclass
class CPU:
    """Processor model name and number of cores."""

    model: str = ""
    cores: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.model, "cores": self.cores}

    @classmethod
    def from_dict(cls, data: Any) -> CPU:
        data = _mapping(data, "cpu")
        return cls(model=_str(data, "name"), cores=_int(data, "cores", _UINT32))


@dataclass
class GPU:
    """Graphics processor model name and number of cores."""

    model: str = ""
    cores: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.model, "cores": self.cores}

    @classmethod
    def from_dict(cls, data: Any) -> GPU:
        data = _mapping(data, "gpu")
        return cls(model=_str(data, "name"), cores=_int(data, "cores", _INT32))


@dataclass
class Node:
    """Resources a worker node reports about itself."""

    cpu: CPU = field(default_factory=CPU)
    memory: int = 0
    gpus: list[GPU] = field(default_factory=list)
    uptime: int = 0
    disk_free: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cpu": self.cpu.to_dict(),
            "memory": self.memory,
            "gpus": [gpu.to_dict() for gpu in self.gpus],
            "uptime": self.uptime,
            "disk_free": self.disk_free,
        }

    @classmethod
    def from_dict(cls, data: Any) -> Node:
        data = _mapping(data, "node")
        return cls(
            cpu=_object(data, "cpu", CPU.from_dict),
            memory=_int(data, "memory", _UINT64),
            gpus=_objects(data, "gpus", GPU.from_dict),
            uptime=_int(data, "uptime", _INT64),
            disk_free=_int(data, "disk_free", _UINT64),
        )


@dataclass
class Pod:
    """A pod: its name, container images and the node it runs on."""

    name: str
    images: list[str] = field(default_factory=list)
    node: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "images": list(self.images), "node": self.node}


@dataclass
class UpdateNodeRequest:
    """Request sent by a worker to update (or create) its node entry."""

    name: str = ""
    node: Node = field(default_factory=Node)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "node": self.node.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> UpdateNodeRequest:
        data = _mapping(data, "request")
        return cls(name=_str(data, "name"), node=_object(data, "node", Node.from_dict))


@dataclass
class GetBatchReply(BaseReply):
    """Reply carrying every known node by name."""

    nodes: dict[str, Node] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["nodes"] = {name: node.to_dict() for name, node in self.nodes.items()}
        return out


class DeploymentStrategyType(str, Enum):
    """How a deployment replaces its pods."""

    RECREATE = "Recreate"
    ROLLING_UPDATE = "RollingUpdate"


class RestartPolicy(str, Enum):
    """When containers of a pod are restarted."""

    ALWAYS = "Always"
    ON_FAILURE = "OnFailure"
    NEVER = "Never"


@dataclass
class ContainerPortRequest:
    """A port a container exposes."""

    container_port: int = 0

    @classmethod
    def from_dict(cls, data: Any) -> ContainerPortRequest:
        data = _mapping(data, "port")
        return cls(container_port=_int(data, "containerPort", _INT32))


@dataclass
class ContainerRequest:
    """A container to run in a pod."""

    name: str = ""
    image: str = ""
    command: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    ports: list[ContainerPortRequest] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> ContainerRequest:
        data = _mapping(data, "container")
        return cls(
            name=_str(data, "name"),
            image=_str(data, "image"),
            command=_str_list(data, "command"),
            args=_str_list(data, "args"),
            ports=_objects(data, "ports", ContainerPortRequest.from_dict),
        )


@dataclass
class PodCreateRequest:
    """Template of the pods a deployment creates."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    restart_policy: RestartPolicy | None = None
    containers: list[ContainerRequest] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> PodCreateRequest:
        data = _mapping(data, "pod")
        return cls(
            name=_str(data, "name"),
            namespace=_str(data, "namespace"),
            labels=_str_map(data, "labels"),
            restart_policy=_enum(data, "restartPolicy", RestartPolicy),
            containers=_objects(data, "containers", ContainerRequest.from_dict),
        )


@dataclass
class CreateDeploymentRequest:
    """Request to create a deployment."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    replicas: int = 0
    strategy: DeploymentStrategyType | None = None
    match_labels: dict[str, str] = field(default_factory=dict)
    pod: PodCreateRequest = field(default_factory=PodCreateRequest)

    @classmethod
    def from_dict(cls, data: Any) -> CreateDeploymentRequest:
        data = _mapping(data, "request")
        return cls(
            name=_str(data, "name"),
            namespace=_str(data, "namespace"),
            labels=_str_map(data, "labels"),
            replicas=_int(data, "replicas", _INT32),
            strategy=_enum(data, "strategy", DeploymentStrategyType),
            match_labels=_str_map(data, "matchLabels"),
            pod=_object(data, "pod", PodCreateRequest.from_dict),
        )


@dataclass
class CreateDeploymentReply(BaseReply):
    """Reply to a successful deployment creation, with the new object's UID."""

    uuid: uuid.UUID = field(default_factory=lambda: uuid.UUID(int=0))

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out["uuid"] = str(self.uuid)
        return out


@dataclass
class DeleteDeploymentRequest:
    """Request to delete a deployment by namespace and name."""

    namespace: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> DeleteDeploymentRequest:
        data = _mapping(data, "request")
        return cls(namespace=_str(data, "namespace"), name=_str(data, "name"))