from typing import Any

import requests

DEFAULT_SERVER_URL = "http://localhost:8000"


def _raise_for_status(response: requests.Response) -> None:
    """raise_for_status with the server's detail message included."""
    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        message = f"{response.status_code} {response.reason}"
        if detail:
            message = f"{message}: {detail}"
        raise RuntimeError(message) from e


def apply_app(
    namespace: str,
    name: str,
    image: str,
    replicas: int,
    container_port: int,
    service_port: int,
    server_url: str = DEFAULT_SERVER_URL,
) -> dict[str, Any]:
    """
    Create a MyApp or replace its spec.

    Returns:
        The stored MyApp manifest

    Raises:
        RuntimeError: If the request fails or the server rejects the spec
    """
    try:
        response = requests.put(
            f"{server_url}/apps/{namespace}/{name}",
            json={
                "image": image,
                "replicaCount": replicas,
                "containerPort": container_port,
                "servicePort": service_port,
            },
            timeout=30,
        )
        _raise_for_status(response)
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error contacting MyApp server: {e}")


def get_app(
    namespace: str, name: str, server_url: str = DEFAULT_SERVER_URL
) -> dict[str, Any] | None:
    """
    Fetch one MyApp.

    Returns:
        The MyApp manifest, or None if it does not exist
    """
    try:
        response = requests.get(f"{server_url}/apps/{namespace}/{name}", timeout=30)
        if response.status_code == 404:
            return None
        _raise_for_status(response)
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error contacting MyApp server: {e}")


def list_apps(
    namespace: str | None = None, server_url: str = DEFAULT_SERVER_URL
) -> list[dict[str, Any]]:
    """List MyApps, optionally in one namespace."""
    try:
        params = {"namespace": namespace} if namespace else {}
        response = requests.get(f"{server_url}/apps", params=params, timeout=30)
        _raise_for_status(response)
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error contacting MyApp server: {e}")


def delete_app(namespace: str, name: str, server_url: str = DEFAULT_SERVER_URL) -> None:
    """Delete a MyApp (its dependents go with it)."""
    try:
        response = requests.delete(f"{server_url}/apps/{namespace}/{name}", timeout=30)
        _raise_for_status(response)
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error contacting MyApp server: {e}")


def get_status(
    namespace: str, name: str, server_url: str = DEFAULT_SERVER_URL
) -> dict[str, Any]:
    """
    Fetch a MyApp with its Deployment and Service.

    Returns:
        Dictionary with "app", "workload", "endpoint" and "synced" keys
    """
    try:
        response = requests.get(
            f"{server_url}/apps/{namespace}/{name}/status", timeout=30
        )
        _raise_for_status(response)
        return response.json()
    except requests.exceptions.RequestException as e:
        raise RuntimeError(f"Error contacting MyApp server: {e}")
