import argparse
import json
import os
import sys
from typing import Any

from .client import DEFAULT_SERVER_URL, apply_app, delete_app, get_app, get_status, list_apps


def get_server_url() -> str:
    """
    Get the MyApp server URL from environment variable or use default.

    Environment variables:
    - MYAPP_SERVER_URL: Custom server URL
    """
    return os.environ.get("MYAPP_SERVER_URL", DEFAULT_SERVER_URL)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="MyApp CLI")
    parser.add_argument(
        "-n",
        "--namespace",
        default="default",
        help="Namespace of the app (default: default)",
    )
    subparsers = parser.add_subparsers(dest="command")

    # myapp apply NAME --image IMG --replicas N --container-port P --service-port P
    apply_parser = subparsers.add_parser("apply", help="Create or update an app")
    apply_parser.add_argument("name", help="App name")
    apply_parser.add_argument("--image", required=True, help="Container image")
    apply_parser.add_argument("--replicas", type=int, default=1, help="Replica count (default: 1)")
    apply_parser.add_argument(
        "--container-port", type=int, required=True, help="Port the container listens on"
    )
    apply_parser.add_argument(
        "--service-port", type=int, required=True, help="Port the Service exposes"
    )

    get_parser = subparsers.add_parser("get", help="Show an app manifest")
    get_parser.add_argument("name", help="App name")

    list_parser = subparsers.add_parser("list", help="List apps")
    list_parser.add_argument(
        "--json", dest="json_mode", action="store_true", help="Output in JSON format"
    )
    list_parser.add_argument(
        "-A",
        "--all-namespaces",
        action="store_true",
        help="List apps in every namespace",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete an app")
    delete_parser.add_argument("name", help="App name")

    status_parser = subparsers.add_parser(
        "status", help="Show an app with its Deployment and Service"
    )
    status_parser.add_argument("name", help="App name")

    return parser


def format_status(status: dict[str, Any]) -> list[str]:
    """Human-readable lines for a status response."""
    app = status["app"]
    spec = app["spec"]
    meta = app["metadata"]
    lines = [
        f"MyApp:      {meta['namespace']}/{meta['name']}",
        f"Image:      {spec['image']}",
        f"Replicas:   {spec['replicaCount']}",
        f"Ports:      {spec['servicePort']} -> {spec['containerPort']}",
        f"Synced:     {'yes' if status['synced'] else 'no'}",
    ]

    workload = status.get("workload")
    if workload:
        lines.append(f"Deployment: {workload['spec'].get('replicas')} replicas")
    else:
        lines.append("Deployment: <none>")

    endpoint = status.get("endpoint")
    if endpoint:
        ports = ", ".join(
            f"{p['port']}->{p['targetPort']}/{p.get('protocol', 'TCP')}"
            for p in endpoint["spec"].get("ports", [])
        )
        cluster_ip = endpoint["spec"].get("clusterIP") or "<pending>"
        lines.append(f"Service:    {cluster_ip} ({ports})")
    else:
        lines.append("Service:    <none>")
    return lines


def main():
    """Main entry point for the MyApp CLI."""
    parser = build_parser()
    args = parser.parse_args()
    server_url = get_server_url()

    try:
        if args.command == "apply":
            result = apply_app(
                args.namespace,
                args.name,
                image=args.image,
                replicas=args.replicas,
                container_port=args.container_port,
                service_port=args.service_port,
                server_url=server_url,
            )
            meta = result["metadata"]
            print(f"myapp {meta['namespace']}/{meta['name']} applied")
            sys.exit(0)

        elif args.command == "get":
            result = get_app(args.namespace, args.name, server_url=server_url)
            if result is None:
                print(f"Error: myapp {args.namespace}/{args.name} not found", file=sys.stderr)
                sys.exit(1)
            print(json.dumps(result, indent=2))
            sys.exit(0)

        elif args.command == "list":
            namespace = None if args.all_namespaces else args.namespace
            apps = list_apps(namespace, server_url=server_url)

            if args.json_mode:
                print(json.dumps(apps, indent=2))
                sys.exit(0)

            if not apps:
                print("No apps found.")
                sys.exit(0)

            print(f"{'NAMESPACE':<16} {'NAME':<24} {'IMAGE':<32} {'REPLICAS':<9} {'PORTS':<12}")
            print("-" * 96)
            for item in apps:
                meta = item["metadata"]
                spec = item["spec"]
                ports = f"{spec['servicePort']}->{spec['containerPort']}"
                print(
                    f"{meta['namespace']:<16} {meta['name']:<24} {spec['image']:<32} "
                    f"{spec['replicaCount']:<9} {ports:<12}"
                )
            sys.exit(0)

        elif args.command == "delete":
            delete_app(args.namespace, args.name, server_url=server_url)
            print(f"myapp {args.namespace}/{args.name} deleted")
            sys.exit(0)

        elif args.command == "status":
            status = get_status(args.namespace, args.name, server_url=server_url)
            for line in format_status(status):
                print(line)
            sys.exit(0)

    except RuntimeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
