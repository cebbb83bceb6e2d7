"""
Data models for the MyApp operator.

These models represent the primary MyApp resource and the two dependent
resources derived from it (a Deployment workload and a Service endpoint).
They serialize to and from Kubernetes-shaped manifests so that every store
backend speaks the same wire format.
"""

import copy
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar

from .errors import SnapshotDecodeError

GROUP = "jk.jk.com"
VERSION = "v1"

# Annotation key holding the last successfully applied spec.
SPEC_ANNOTATION = "spec"

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True, order=True)
class ResourceKey:
    """Namespace-qualified name identifying a resource."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str, default_namespace: str = DEFAULT_NAMESPACE) -> "ResourceKey":
        """Parse "namespace/name" (or a bare "name" in the default namespace)."""
        namespace, sep, name = value.partition("/")
        if not sep:
            return cls(default_namespace, namespace)
        if not namespace or not name or "/" in name:
            raise ValueError(f"Invalid resource key: {value!r}")
        return cls(namespace, name)


def _require_int(name: str, value: Any, low: int, high: int | None = None) -> None:
    # bool is an int subclass; a JSON true must not pass as replicaCount=1
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < low or (high is not None and value > high):
        bounds = f">= {low}" if high is None else f"between {low} and {high}"
        raise ValueError(f"{name} must be {bounds}, got {value}")


@dataclass(frozen=True)
class MyAppSpec:
    """
    Desired state declared on a MyApp resource.

    Equality is per-field, which is what drift detection compares.
    """

    image: str
    replica_count: int
    container_port: int
    service_port: int

    def __post_init__(self) -> None:
        if not isinstance(self.image, str) or not self.image:
            raise ValueError("image must be a non-empty string")
        _require_int("replicaCount", self.replica_count, 0)
        _require_int("containerPort", self.container_port, 1, 65535)
        _require_int("servicePort", self.service_port, 1, 65535)

    def to_dict(self) -> dict[str, Any]:
        """Convert spec to its manifest form (fixed camelCase field names)."""
        return {
            "image": self.image,
            "replicaCount": self.replica_count,
            "containerPort": self.container_port,
            "servicePort": self.service_port,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MyAppSpec":
        """
        Create spec from its manifest form.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field fails validation
        """
        return cls(
            image=data["image"],
            replica_count=data["replicaCount"],
            container_port=data["containerPort"],
            service_port=data["servicePort"],
        )

    def to_json(self) -> str:
        """Canonical snapshot text: sorted keys, no whitespace."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str | None) -> "MyAppSpec":
        """
        Decode a snapshot produced by to_json (field order irrelevant).

        Raises:
            SnapshotDecodeError: If the snapshot is absent or malformed
        """
        if text is None or not text.strip():
            raise SnapshotDecodeError("applied-spec snapshot is missing")
        try:
            data = json.loads(text)
            if not isinstance(data, dict):
                raise ValueError("snapshot is not a JSON object")
            return cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotDecodeError(f"applied-spec snapshot is malformed: {e}") from e


@dataclass(frozen=True)
class OwnerReference:
    """Link from a dependent resource to the resource that controls it."""

    api_version: str
    kind: str
    name: str
    uid: str | None
    controller: bool = True
    block_owner_deletion: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": self.controller,
            "blockOwnerDeletion": self.block_owner_deletion,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OwnerReference":
        return cls(
            api_version=data["apiVersion"],
            kind=data["kind"],
            name=data["name"],
            uid=data.get("uid"),
            controller=bool(data.get("controller", False)),
            block_owner_deletion=bool(data.get("blockOwnerDeletion", False)),
        )


_MODELLED_META_FIELDS = frozenset(
    {
        "name",
        "namespace",
        "uid",
        "resourceVersion",
        "labels",
        "annotations",
        "ownerReferences",
        "deletionTimestamp",
    }
)


@dataclass
class ObjectMeta:
    """Standard object metadata; uid and resourceVersion are store-assigned."""

    name: str
    namespace: str = DEFAULT_NAMESPACE
    uid: str | None = None
    resource_version: str | None = None
    labels: dict[str, str] = field(default_factory=dict)
    annotations: dict[str, str] = field(default_factory=dict)
    owner_references: list[OwnerReference] = field(default_factory=list)
    deletion_timestamp: str | None = None  # Set once deletion is requested
    # Fields this model does not interpret (finalizers, generation, ...),
    # written back exactly as read so updates never drop them
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = copy.deepcopy(self.extra)
        result["name"] = self.name
        result["namespace"] = self.namespace
        if self.uid is not None:
            result["uid"] = self.uid
        if self.resource_version is not None:
            result["resourceVersion"] = self.resource_version
        if self.labels:
            result["labels"] = dict(self.labels)
        if self.annotations:
            result["annotations"] = dict(self.annotations)
        if self.owner_references:
            result["ownerReferences"] = [ref.to_dict() for ref in self.owner_references]
        if self.deletion_timestamp is not None:
            result["deletionTimestamp"] = self.deletion_timestamp
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ObjectMeta":
        return cls(
            name=data["name"],
            namespace=data.get("namespace") or DEFAULT_NAMESPACE,
            uid=data.get("uid"),
            resource_version=data.get("resourceVersion"),
            labels=dict(data.get("labels") or {}),
            annotations=dict(data.get("annotations") or {}),
            owner_references=[
                OwnerReference.from_dict(ref) for ref in data.get("ownerReferences") or []
            ],
            deletion_timestamp=data.get("deletionTimestamp"),
            extra={
                k: copy.deepcopy(v) for k, v in data.items() if k not in _MODELLED_META_FIELDS
            },
        )

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.name)


class Resource(ABC):
    """
    Common surface of every stored kind.

    Subclasses are dataclasses with ``metadata`` and ``spec`` fields and
    provide the spec half of the manifest conversion.
    """

    API_VERSION: ClassVar[str]
    KIND: ClassVar[str]
    PLURAL: ClassVar[str]

    metadata: ObjectMeta

    @property
    def key(self) -> ResourceKey:
        return self.metadata.key

    def to_dict(self) -> dict[str, Any]:
        """Convert resource to its manifest form."""
        return {
            "apiVersion": self.API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),  # type: ignore[attr-defined]
        }

    @classmethod
    @abstractmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resource":
        """Create resource from its manifest form."""


@dataclass
class MyApp(Resource):
    """
    The primary declarative resource, created and edited by users.

    The operator reads ``spec`` and writes only the snapshot annotation.
    """

    API_VERSION = f"{GROUP}/{VERSION}"
    KIND = "MyApp"
    PLURAL = "myapps"

    metadata: ObjectMeta
    spec: MyAppSpec

    @property
    def is_being_deleted(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    @property
    def applied_snapshot(self) -> str | None:
        return self.metadata.annotations.get(SPEC_ANNOTATION)

    def owner_reference(self) -> OwnerReference:
        """Controller reference that dependents carry back to this app."""
        return OwnerReference(
            api_version=self.API_VERSION,
            kind=self.KIND,
            name=self.metadata.name,
            uid=self.metadata.uid,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MyApp":
        return cls(
            metadata=ObjectMeta.from_dict(data["metadata"]),
            spec=MyAppSpec.from_dict(data["spec"]),
        )


@dataclass
class ContainerPort:
    name: str
    container_port: int
    protocol: str = "TCP"

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "containerPort": self.container_port,
            "protocol": self.protocol,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContainerPort":
        return cls(
            name=data.get("name", ""),
            container_port=data["containerPort"],
            protocol=data.get("protocol", "TCP"),
        )


@dataclass
class Container:
    name: str
    image: str
    image_pull_policy: str = "IfNotPresent"
    ports: list[ContainerPort] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "image": self.image,
            "imagePullPolicy": self.image_pull_policy,
            "ports": [port.to_dict() for port in self.ports],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Container":
        return cls(
            name=data["name"],
            image=data.get("image", ""),
            image_pull_policy=data.get("imagePullPolicy", "IfNotPresent"),
            ports=[ContainerPort.from_dict(p) for p in data.get("ports") or []],
        )


@dataclass
class PodTemplate:
    labels: dict[str, str]
    containers: list[Container]

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": {"labels": dict(self.labels)},
            "spec": {"containers": [c.to_dict() for c in self.containers]},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PodTemplate":
        metadata = data.get("metadata") or {}
        spec = data.get("spec") or {}
        return cls(
            labels=dict(metadata.get("labels") or {}),
            containers=[Container.from_dict(c) for c in spec.get("containers") or []],
        )


@dataclass
class WorkloadSpec:
    replicas: int
    selector: dict[str, str]  # matchLabels; immutable once created
    template: PodTemplate

    def to_dict(self) -> dict[str, Any]:
        return {
            "replicas": self.replicas,
            "selector": {"matchLabels": dict(self.selector)},
            "template": self.template.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkloadSpec":
        selector = data.get("selector") or {}
        return cls(
            replicas=data.get("replicas", 1),
            selector=dict(selector.get("matchLabels") or {}),
            template=PodTemplate.from_dict(data.get("template") or {}),
        )


@dataclass
class Workload(Resource):
    """Replica-managed set of containers (an apps/v1 Deployment)."""

    API_VERSION = "apps/v1"
    KIND = "Deployment"
    PLURAL = "deployments"

    metadata: ObjectMeta
    spec: WorkloadSpec

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Workload":
        return cls(
            metadata=ObjectMeta.from_dict(data["metadata"]),
            spec=WorkloadSpec.from_dict(data.get("spec") or {}),
        )


@dataclass
class ServicePort:
    port: int
    target_port: int | str  # Number or container port name
    protocol: str = "TCP"
    name: str | None = None
    node_port: int | None = None  # Platform-allocated for NodePort Services

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "protocol": self.protocol,
            "port": self.port,
            "targetPort": self.target_port,
        }
        if self.name is not None:
            result["name"] = self.name
        if self.node_port is not None:
            result["nodePort"] = self.node_port
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ServicePort":
        return cls(
            port=data["port"],
            target_port=data.get("targetPort", data["port"]),
            protocol=data.get("protocol", "TCP"),
            name=data.get("name"),
            node_port=data.get("nodePort"),
        )


@dataclass
class EndpointSpec:
    ports: list[ServicePort]
    selector: dict[str, str]
    type: str = "NodePort"
    cluster_ip: str | None = None  # Platform-assigned virtual address

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.type,
            "ports": [port.to_dict() for port in self.ports],
            "selector": dict(self.selector),
        }
        if self.cluster_ip is not None:
            result["clusterIP"] = self.cluster_ip
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EndpointSpec":
        return cls(
            ports=[ServicePort.from_dict(p) for p in data.get("ports") or []],
            selector=dict(data.get("selector") or {}),
            type=data.get("type", "ClusterIP"),
            cluster_ip=data.get("clusterIP"),
        )


@dataclass
class NetworkEndpoint(Resource):
    """Stable virtual address exposing a workload (a v1 Service)."""

    API_VERSION = "v1"
    KIND = "Service"
    PLURAL = "services"

    metadata: ObjectMeta
    spec: EndpointSpec

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NetworkEndpoint":
        return cls(
            metadata=ObjectMeta.from_dict(data["metadata"]),
            spec=EndpointSpec.from_dict(data.get("spec") or {}),
        )


RESOURCE_KINDS: dict[str, type[Resource]] = {
    kind.KIND: kind for kind in (MyApp, Workload, NetworkEndpoint)
}
