"""
Unit tests for KubernetesClusterStore.

The generated API classes are replaced with mocks that return plain
manifest dicts, the shape CustomObjectsApi already returns.
"""

from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio
from conftest import make_app
from kubernetes import client
from kubernetes.client.rest import ApiException

from myapp_common.errors import (
    AlreadyExistsError,
    ConflictError,
    InvalidError,
    NotFoundError,
    StoreError,
)
from myapp_common.models import (
    SPEC_ANNOTATION,
    MyApp,
    NetworkEndpoint,
    ResourceKey,
    Workload,
)
from myapp_controller.controller import AppController
from myapp_controller.reconciler import AppReconciler
from myapp_controller.synthesizer import new_endpoint, new_workload
from myapp_persistence.kubernetes_store import (
    KubernetesClusterStore,
    translate_api_exception,
)

KEY = ResourceKey("default", "web")


def _stored(obj, uid="uid-1", resource_version="1"):
    data = obj.to_dict()
    data["metadata"]["uid"] = uid
    data["metadata"]["resourceVersion"] = resource_version
    return data


@pytest_asyncio.fixture
async def kube_store():
    store = KubernetesClusterStore(api_client=client.ApiClient(), request_timeout=5)
    store.core_api = Mock()
    store.apps_api = Mock()
    store.custom_api = Mock()
    await store.initialize()
    yield store
    await store.close()


class TestTranslateApiException:
    @pytest.mark.parametrize(
        "status,verb,expected",
        [
            (404, "get", NotFoundError),
            (409, "create", AlreadyExistsError),
            (409, "update", ConflictError),
            (422, "update", InvalidError),
            (500, "list", StoreError),
        ],
    )
    def test_status_mapping(self, status, verb, expected):
        error = translate_api_exception(ApiException(status=status), verb, "MyApp default/web")
        assert type(error) is expected


class TestKubernetesClusterStore:
    async def test_initialize_keeps_injected_apis(self, kube_store):
        assert isinstance(kube_store.custom_api, Mock)

    async def test_get_myapp(self, kube_store):
        kube_store.custom_api.get_namespaced_custom_object.return_value = _stored(make_app())

        app = await kube_store.get(MyApp, KEY)

        assert app.spec.image == "app:v1"
        assert app.metadata.uid == "uid-1"
        kube_store.custom_api.get_namespaced_custom_object.assert_called_once_with(
            "jk.jk.com", "v1", "default", "myapps", "web", _request_timeout=5
        )

    async def test_get_missing_returns_none(self, kube_store):
        kube_store.apps_api.read_namespaced_deployment.side_effect = ApiException(status=404)
        assert await kube_store.get(Workload, KEY) is None

    async def test_get_other_error_raises(self, kube_store):
        kube_store.core_api.read_namespaced_service.side_effect = ApiException(status=500)
        with pytest.raises(StoreError):
            await kube_store.get(NetworkEndpoint, KEY)

    async def test_create_workload(self, kube_store):
        app = make_app()
        app.metadata.uid = "app-uid"
        workload = new_workload(app)
        kube_store.apps_api.create_namespaced_deployment.return_value = _stored(workload)

        created = await kube_store.create(workload)

        assert created.metadata.resource_version == "1"
        args = kube_store.apps_api.create_namespaced_deployment.call_args.args
        assert args[0] == "default"
        assert args[1]["spec"]["selector"] == {"matchLabels": {"app": "web"}}
        assert args[1]["metadata"]["ownerReferences"][0]["uid"] == "app-uid"

    async def test_create_conflict_is_already_exists(self, kube_store):
        kube_store.core_api.create_namespaced_service.side_effect = ApiException(status=409)
        with pytest.raises(AlreadyExistsError):
            await kube_store.create(new_endpoint(make_app()))

    async def test_update_service_sends_cluster_ip(self, kube_store):
        endpoint = new_endpoint(make_app())
        endpoint.spec.cluster_ip = "10.96.0.20"
        kube_store.core_api.replace_namespaced_service.return_value = _stored(endpoint)

        updated = await kube_store.update(endpoint)

        assert updated.spec.cluster_ip == "10.96.0.20"
        name, namespace, body = kube_store.core_api.replace_namespaced_service.call_args.args
        assert (name, namespace) == ("web", "default")
        assert body["spec"]["clusterIP"] == "10.96.0.20"

    async def test_update_conflict(self, kube_store):
        kube_store.custom_api.replace_namespaced_custom_object.side_effect = ApiException(
            status=409
        )
        with pytest.raises(ConflictError):
            await kube_store.update(make_app())

    async def test_list_all_namespaces_sorted(self, kube_store):
        kube_store.custom_api.list_cluster_custom_object.return_value = {
            "items": [
                _stored(make_app(name="b", namespace="ns1")),
                _stored(make_app(name="a", namespace="ns2")),
                _stored(make_app(name="a", namespace="ns1")),
            ]
        }

        apps = await kube_store.list(MyApp)

        assert [str(a.key) for a in apps] == ["ns1/a", "ns1/b", "ns2/a"]

    async def test_list_namespaced(self, kube_store):
        kube_store.apps_api.list_namespaced_deployment.return_value = {"items": []}

        assert await kube_store.list(Workload, "demo") == []
        kube_store.apps_api.list_namespaced_deployment.assert_called_once_with(
            "demo", _request_timeout=5
        )

    async def test_delete_missing_raises(self, kube_store):
        kube_store.custom_api.delete_namespaced_custom_object.side_effect = ApiException(
            status=404
        )
        with pytest.raises(NotFoundError):
            await kube_store.delete(MyApp, KEY)


class TestUnmodelledFields:
    async def test_persist_keeps_finalizers_and_generation(self, kube_store):
        live = _stored(make_app(), uid="u1", resource_version="7")
        live["metadata"]["finalizers"] = ["other.io/cleanup"]
        live["metadata"]["generation"] = 3
        kube_store.custom_api.get_namespaced_custom_object.return_value = live
        kube_store.custom_api.replace_namespaced_custom_object.side_effect = (
            lambda *args, **kwargs: args[-1]
        )
        kube_store.apps_api.read_namespaced_deployment.side_effect = ApiException(status=404)
        kube_store.core_api.read_namespaced_service.side_effect = ApiException(status=404)
        app = MyApp.from_dict(live)
        kube_store.apps_api.create_namespaced_deployment.return_value = _stored(new_workload(app))
        kube_store.core_api.create_namespaced_service.return_value = _stored(new_endpoint(app))

        result = await AppReconciler(kube_store).reconcile(KEY)

        assert result.snapshot_written
        body = kube_store.custom_api.replace_namespaced_custom_object.call_args.args[-1]
        assert body["metadata"]["finalizers"] == ["other.io/cleanup"]
        assert body["metadata"]["generation"] == 3
        assert body["metadata"]["resourceVersion"] == "7"
        assert body["metadata"]["annotations"][SPEC_ANNOTATION] == app.spec.to_json()


class TestMalformedObjects:
    @staticmethod
    def _missing_replica_count(name):
        data = _stored(make_app(name=name))
        del data["spec"]["replicaCount"]
        return data

    async def test_list_skips_malformed_item(self, kube_store):
        kube_store.custom_api.list_cluster_custom_object.return_value = {
            "items": [_stored(make_app(name="web")), self._missing_replica_count("broken")]
        }

        apps = await kube_store.list(MyApp)

        assert [str(a.key) for a in apps] == ["default/web"]

    async def test_malformed_item_does_not_block_other_apps(self, kube_store):
        kube_store.custom_api.list_cluster_custom_object.return_value = {
            "items": [self._missing_replica_count("broken"), _stored(make_app(name="web"))]
        }
        controller = AppController(store=kube_store, reconciler=AsyncMock())

        assert await controller.enqueue_all() == 1
        assert controller.queue.get_nowait() == KEY

    async def test_get_malformed_raises_invalid(self, kube_store):
        kube_store.custom_api.get_namespaced_custom_object.return_value = (
            self._missing_replica_count("web")
        )

        with pytest.raises(InvalidError, match="replicaCount"):
            await kube_store.get(MyApp, KEY)
