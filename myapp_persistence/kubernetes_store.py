"""
Kubernetes API implementation of the cluster store.

Reads and writes MyApp custom objects, Deployments and Services through the
official kubernetes client. The client is synchronous, so every call runs in
a worker thread; cancelling the awaiting task abandons the call without
waiting for its reply.
"""

import asyncio
import logging
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from myapp_common.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidError,
    NotFoundError,
    StoreError,
)
from myapp_common.models import GROUP, VERSION, MyApp, NetworkEndpoint, ResourceKey, Workload
from myapp_common.store import ClusterStore, R

logger = logging.getLogger(__name__)


def translate_api_exception(e: ApiException, verb: str, what: str) -> StoreError:
    """Map an API server error onto the store error taxonomy."""
    if e.status == 404:
        return NotFoundError(f"{what} not found")
    if e.status == 409:
        if verb == "create":
            return AlreadyExistsError(f"{what} already exists")
        return ConflictError(f"{what}: {e.reason}")
    if e.status == 422:
        return InvalidError(f"{what}: {e.body or e.reason}")
    return StoreError(f"{verb} {what} failed: {e.status} {e.reason}")


class KubernetesClusterStore(ClusterStore):
    """
    Cluster store backed by a Kubernetes API server.

    MyApp objects go through CustomObjectsApi; Deployments through AppsV1Api;
    Services through CoreV1Api.
    """

    def __init__(
        self,
        in_cluster: bool = False,
        request_timeout: float = 30.0,
        api_client: client.ApiClient | None = None,
    ):
        """
        Initialize the Kubernetes store.

        Args:
            in_cluster: Load service-account credentials instead of kubeconfig
            request_timeout: Per-request timeout in seconds
            api_client: Preconfigured API client (skips config loading)
        """
        self.in_cluster = in_cluster
        self.request_timeout = request_timeout
        self._api_client = api_client
        self.core_api: client.CoreV1Api | None = None
        self.apps_api: client.AppsV1Api | None = None
        self.custom_api: client.CustomObjectsApi | None = None

    def _load_config(self) -> None:
        if self.in_cluster:
            config.load_incluster_config()
            logger.info("Loaded in-cluster configuration")
        else:
            config.load_kube_config()
            logger.info("Loaded kubeconfig from default location")

    async def initialize(self) -> None:
        if self._api_client is None:
            await asyncio.to_thread(self._load_config)
            self._api_client = client.ApiClient()
        self.core_api = self.core_api or client.CoreV1Api(self._api_client)
        self.apps_api = self.apps_api or client.AppsV1Api(self._api_client)
        self.custom_api = self.custom_api or client.CustomObjectsApi(self._api_client)

    async def close(self) -> None:
        if self._api_client is not None:
            self._api_client.close()
            self._api_client = None

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert a client model (or custom-object dict) to a camelCase manifest."""
        if self._api_client is None:
            raise StoreError("Kubernetes store not initialized")
        return self._api_client.sanitize_for_serialization(obj)

    def _decode(self, kind: type[R], raw: Any) -> R:
        """
        Convert an API response into ``kind``.

        Raises:
            InvalidError: If the manifest does not decode (e.g. a MyApp spec
                missing a field or out of range)
        """
        data = self._to_dict(raw)
        try:
            return kind.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            meta = data.get("metadata") or {}
            what = f"{meta.get('namespace')}/{meta.get('name')}"
            raise InvalidError(f"{kind.KIND} {what}: cannot decode manifest: {e!r}") from e

    async def _call(self, fn, *args, **kwargs) -> Any:
        return await asyncio.to_thread(
            fn, *args, _request_timeout=self.request_timeout, **kwargs
        )

    async def _read(self, kind: type[R], key: ResourceKey) -> Any:
        if kind is MyApp:
            return await self._call(
                self.custom_api.get_namespaced_custom_object,
                GROUP, VERSION, key.namespace, MyApp.PLURAL, key.name,
            )
        if kind is Workload:
            return await self._call(
                self.apps_api.read_namespaced_deployment, key.name, key.namespace
            )
        if kind is NetworkEndpoint:
            return await self._call(
                self.core_api.read_namespaced_service, key.name, key.namespace
            )
        raise TypeError(f"Unsupported kind: {kind!r}")

    async def _list(self, kind: type[R], namespace: str | None) -> Any:
        if kind is MyApp:
            if namespace:
                return await self._call(
                    self.custom_api.list_namespaced_custom_object,
                    GROUP, VERSION, namespace, MyApp.PLURAL,
                )
            return await self._call(
                self.custom_api.list_cluster_custom_object, GROUP, VERSION, MyApp.PLURAL
            )
        if kind is Workload:
            if namespace:
                return await self._call(self.apps_api.list_namespaced_deployment, namespace)
            return await self._call(self.apps_api.list_deployment_for_all_namespaces)
        if kind is NetworkEndpoint:
            if namespace:
                return await self._call(self.core_api.list_namespaced_service, namespace)
            return await self._call(self.core_api.list_service_for_all_namespaces)
        raise TypeError(f"Unsupported kind: {kind!r}")

    async def _create(self, obj: R) -> Any:
        key = obj.key
        body = obj.to_dict()
        if isinstance(obj, MyApp):
            return await self._call(
                self.custom_api.create_namespaced_custom_object,
                GROUP, VERSION, key.namespace, MyApp.PLURAL, body,
            )
        if isinstance(obj, Workload):
            return await self._call(
                self.apps_api.create_namespaced_deployment, key.namespace, body
            )
        if isinstance(obj, NetworkEndpoint):
            return await self._call(
                self.core_api.create_namespaced_service, key.namespace, body
            )
        raise TypeError(f"Unsupported kind: {type(obj)!r}")

    async def _replace(self, obj: R) -> Any:
        key = obj.key
        body = obj.to_dict()
        if isinstance(obj, MyApp):
            return await self._call(
                self.custom_api.replace_namespaced_custom_object,
                GROUP, VERSION, key.namespace, MyApp.PLURAL, key.name, body,
            )
        if isinstance(obj, Workload):
            return await self._call(
                self.apps_api.replace_namespaced_deployment, key.name, key.namespace, body
            )
        if isinstance(obj, NetworkEndpoint):
            return await self._call(
                self.core_api.replace_namespaced_service, key.name, key.namespace, body
            )
        raise TypeError(f"Unsupported kind: {type(obj)!r}")

    async def _delete(self, kind: type[R], key: ResourceKey) -> Any:
        if kind is MyApp:
            return await self._call(
                self.custom_api.delete_namespaced_custom_object,
                GROUP, VERSION, key.namespace, MyApp.PLURAL, key.name,
            )
        if kind is Workload:
            return await self._call(
                self.apps_api.delete_namespaced_deployment, key.name, key.namespace
            )
        if kind is NetworkEndpoint:
            return await self._call(
                self.core_api.delete_namespaced_service, key.name, key.namespace
            )
        raise TypeError(f"Unsupported kind: {kind!r}")

    async def get(self, kind: type[R], key: ResourceKey) -> R | None:
        try:
            raw = await self._read(kind, key)
        except ApiException as e:
            if e.status == 404:
                return None
            raise translate_api_exception(e, "get", f"{kind.KIND} {key}") from e
        return self._decode(kind, raw)

    async def list(self, kind: type[R], namespace: str | None = None) -> list[R]:
        try:
            raw = await self._list(kind, namespace)
        except ApiException as e:
            raise translate_api_exception(e, "list", kind.PLURAL) from e
        items = []
        for item in self._to_dict(raw).get("items") or []:
            try:
                items.append(self._decode(kind, item))
            except InvalidError as e:
                # One malformed object must not hide the others
                logger.warning(f"Skipping {e}")
        return sorted(items, key=lambda obj: obj.key)

    async def create(self, obj: R) -> R:
        try:
            raw = await self._create(obj)
        except ApiException as e:
            raise translate_api_exception(e, "create", f"{obj.KIND} {obj.key}") from e
        logger.debug(f"Created {obj.KIND} {obj.key}")
        return self._decode(type(obj), raw)

    async def update(self, obj: R) -> R:
        try:
            raw = await self._replace(obj)
        except ApiException as e:
            raise translate_api_exception(e, "update", f"{obj.KIND} {obj.key}") from e
        logger.debug(f"Updated {obj.KIND} {obj.key}")
        return self._decode(type(obj), raw)

    async def delete(self, kind: type[R], key: ResourceKey) -> None:
        try:
            await self._delete(kind, key)
        except ApiException as e:
            raise translate_api_exception(e, "delete", f"{kind.KIND} {key}") from e
        logger.debug(f"Deleted {kind.KIND} {key}")
