"""
Canonical dependent resources for a MyApp.

Pure functions: the same app always yields the same objects, with no I/O.
The Service cluster IP is never set here; it only ever comes from the live
object.
"""

from myapp_common.models import (
    Container,
    ContainerPort,
    EndpointSpec,
    MyApp,
    NetworkEndpoint,
    ObjectMeta,
    PodTemplate,
    ServicePort,
    Workload,
    WorkloadSpec,
)


def selector_labels(app: MyApp) -> dict[str, str]:
    return {"app": app.metadata.name}


def _dependent_metadata(app: MyApp) -> ObjectMeta:
    return ObjectMeta(
        name=app.metadata.name,
        namespace=app.metadata.namespace,
        owner_references=[app.owner_reference()],
    )


def new_workload(app: MyApp) -> Workload:
    """Deployment running ``app.spec.replica_count`` copies of the app image."""
    labels = selector_labels(app)
    return Workload(
        metadata=_dependent_metadata(app),
        spec=WorkloadSpec(
            replicas=app.spec.replica_count,
            selector=dict(labels),
            template=PodTemplate(
                labels=dict(labels),
                containers=[
                    Container(
                        name=app.metadata.name,
                        image=app.spec.image,
                        image_pull_policy="IfNotPresent",
                        ports=[
                            ContainerPort(
                                name="http", container_port=app.spec.container_port
                            )
                        ],
                    )
                ],
            ),
        ),
    )


def new_endpoint(app: MyApp) -> NetworkEndpoint:
    """NodePort Service mapping the service port to the container port."""
    return NetworkEndpoint(
        metadata=_dependent_metadata(app),
        spec=EndpointSpec(
            type="NodePort",
            ports=[
                ServicePort(
                    protocol="TCP",
                    port=app.spec.service_port,
                    target_port=app.spec.container_port,
                )
            ],
            selector=selector_labels(app),
        ),
    )
