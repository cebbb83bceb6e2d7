"""
Unit tests for myapp_client.client and myapp_client.cli.

Tests the HTTP client functions and the CLI output.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from myapp_client.cli import format_status, get_server_url, main
from myapp_client.client import apply_app, delete_app, get_app, get_status, list_apps

MANIFEST = {
    "apiVersion": "jk.jk.com/v1",
    "kind": "MyApp",
    "metadata": {"name": "web", "namespace": "default", "uid": "uid-1"},
    "spec": {"image": "app:v1", "replicaCount": 2, "containerPort": 8080, "servicePort": 80},
}


def _response(status_code=200, payload=None, reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} {reason}"
        )
    return response


class TestApplyApp:
    @patch("myapp_client.client.requests.put")
    def test_successful_apply(self, mock_put):
        mock_put.return_value = _response(201, MANIFEST, "Created")

        result = apply_app("default", "web", "app:v1", 2, 8080, 80, server_url="http://test:8000")

        assert result == MANIFEST
        mock_put.assert_called_once()
        assert mock_put.call_args.args[0] == "http://test:8000/apps/default/web"
        assert mock_put.call_args.kwargs["json"] == MANIFEST["spec"]

    @patch("myapp_client.client.requests.put")
    def test_validation_error_includes_detail(self, mock_put):
        mock_put.return_value = _response(
            409, {"detail": "MyApp default/web: the object has been modified"}, "Conflict"
        )

        with pytest.raises(RuntimeError, match="409 Conflict: MyApp default/web"):
            apply_app("default", "web", "app:v1", 2, 8080, 80)

    @patch("myapp_client.client.requests.put")
    def test_network_error_raises_exception(self, mock_put):
        mock_put.side_effect = requests.exceptions.ConnectionError("Connection refused")

        with pytest.raises(RuntimeError, match="Error contacting MyApp server"):
            apply_app("default", "web", "app:v1", 2, 8080, 80)


class TestGetApp:
    @patch("myapp_client.client.requests.get")
    def test_found(self, mock_get):
        mock_get.return_value = _response(200, MANIFEST)
        assert get_app("default", "web") == MANIFEST

    @patch("myapp_client.client.requests.get")
    def test_not_found_returns_none(self, mock_get):
        mock_get.return_value = _response(404, {"detail": "MyApp not found"}, "Not Found")
        assert get_app("default", "web") is None


class TestListApps:
    @patch("myapp_client.client.requests.get")
    def test_namespace_param(self, mock_get):
        mock_get.return_value = _response(200, [MANIFEST])

        assert list_apps("default", server_url="http://test:8000") == [MANIFEST]
        mock_get.assert_called_once_with(
            "http://test:8000/apps", params={"namespace": "default"}, timeout=30
        )

    @patch("myapp_client.client.requests.get")
    def test_all_namespaces(self, mock_get):
        mock_get.return_value = _response(200, [])

        list_apps(None)
        assert mock_get.call_args.kwargs["params"] == {}


class TestDeleteApp:
    @patch("myapp_client.client.requests.delete")
    def test_not_found_raises(self, mock_delete):
        mock_delete.return_value = _response(404, {"detail": "MyApp default/web not found"}, "Not Found")

        with pytest.raises(RuntimeError, match="not found"):
            delete_app("default", "web")


class TestStatus:
    STATUS = {
        "app": MANIFEST,
        "workload": {"spec": {"replicas": 2}},
        "endpoint": {
            "spec": {
                "clusterIP": "10.96.0.10",
                "ports": [{"port": 80, "targetPort": 8080, "protocol": "TCP"}],
            }
        },
        "synced": True,
    }

    @patch("myapp_client.client.requests.get")
    def test_get_status(self, mock_get):
        mock_get.return_value = _response(200, self.STATUS)
        assert get_status("default", "web") == self.STATUS

    def test_format_status(self):
        lines = format_status(self.STATUS)

        assert "MyApp:      default/web" in lines
        assert "Synced:     yes" in lines
        assert "Deployment: 2 replicas" in lines
        assert "Service:    10.96.0.10 (80->8080/TCP)" in lines

    def test_format_status_without_dependents(self):
        lines = format_status({**self.STATUS, "workload": None, "endpoint": None, "synced": False})

        assert "Synced:     no" in lines
        assert "Deployment: <none>" in lines
        assert "Service:    <none>" in lines


class TestCli:
    def test_server_url_from_env(self, monkeypatch):
        monkeypatch.setenv("MYAPP_SERVER_URL", "http://remote:9000")
        assert get_server_url() == "http://remote:9000"

    @patch("myapp_client.cli.apply_app")
    def test_apply_command(self, mock_apply, monkeypatch, capsys):
        mock_apply.return_value = MANIFEST
        monkeypatch.setattr(
            "sys.argv",
            ["myapp", "-n", "default", "apply", "web", "--image", "app:v1",
             "--replicas", "2", "--container-port", "8080", "--service-port", "80"],
        )

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert "myapp default/web applied" in capsys.readouterr().out
        assert mock_apply.call_args.kwargs["replicas"] == 2

    @patch("myapp_client.cli.list_apps")
    def test_list_json(self, mock_list, monkeypatch, capsys):
        mock_list.return_value = [MANIFEST]
        monkeypatch.setattr("sys.argv", ["myapp", "list", "--json", "-A"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 0
        assert json.loads(capsys.readouterr().out) == [MANIFEST]
        assert mock_list.call_args.args[0] is None

    @patch("myapp_client.cli.get_app")
    def test_get_missing_exits_1(self, mock_get, monkeypatch, capsys):
        mock_get.return_value = None
        monkeypatch.setattr("sys.argv", ["myapp", "get", "web"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "not found" in capsys.readouterr().err

    @patch("myapp_client.cli.delete_app")
    def test_error_exits_1(self, mock_delete, monkeypatch, capsys):
        mock_delete.side_effect = RuntimeError("Error contacting MyApp server: refused")
        monkeypatch.setattr("sys.argv", ["myapp", "delete", "web"])

        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        assert "Error contacting MyApp server" in capsys.readouterr().err
