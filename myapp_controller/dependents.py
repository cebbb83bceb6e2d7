"""
The dependent kinds a MyApp owns.

Each variant knows how to synthesize its canonical form and how to fold a
synthesized form onto a live object without touching fields the platform
owns (the workload selector, the endpoint cluster IP).
"""

import copy
from abc import ABC, abstractmethod

from myapp_common.models import (
    EndpointSpec,
    MyApp,
    NetworkEndpoint,
    Resource,
    Workload,
    WorkloadSpec,
)

from .synthesizer import new_endpoint, new_workload


class Dependent(ABC):
    """A resource kind derived from, and owned by, a MyApp."""

    kind: type[Resource]

    @abstractmethod
    def synthesize(self, app: MyApp) -> Resource:
        """Canonical definition for ``app``."""

    @abstractmethod
    def apply_update(self, live: Resource, desired: Resource) -> Resource:
        """
        Copy of ``live`` with the mutable portion taken from ``desired``.

        Metadata (uid, resourceVersion, labels, annotations) stays as live.
        """


class WorkloadDependent(Dependent):
    kind = Workload

    def synthesize(self, app: MyApp) -> Workload:
        return new_workload(app)

    def apply_update(self, live: Workload, desired: Workload) -> Workload:
        return Workload(
            metadata=copy.deepcopy(live.metadata),
            spec=WorkloadSpec(
                replicas=desired.spec.replicas,
                # The platform rejects selector changes on existing Deployments
                selector=dict(live.spec.selector),
                template=copy.deepcopy(desired.spec.template),
            ),
        )


class EndpointDependent(Dependent):
    kind = NetworkEndpoint

    def synthesize(self, app: MyApp) -> NetworkEndpoint:
        return new_endpoint(app)

    def apply_update(self, live: NetworkEndpoint, desired: NetworkEndpoint) -> NetworkEndpoint:
        allocated = {
            (p.port, p.protocol): p.node_port for p in live.spec.ports if p.node_port
        }
        ports = copy.deepcopy(desired.spec.ports)
        for port in ports:
            # Unchanged mappings keep the node port the platform allocated
            if port.node_port is None:
                port.node_port = allocated.get((port.port, port.protocol))

        return NetworkEndpoint(
            metadata=copy.deepcopy(live.metadata),
            spec=EndpointSpec(
                ports=ports,
                selector=dict(live.spec.selector),
                type=desired.spec.type,
                # Clients hold this address; it must survive every update
                cluster_ip=live.spec.cluster_ip,
            ),
        )


WORKLOAD = WorkloadDependent()
ENDPOINT = EndpointDependent()

# Order matters: the workload is created first and its absence marks Bootstrap.
DEPENDENTS: tuple[Dependent, ...] = (WORKLOAD, ENDPOINT)
